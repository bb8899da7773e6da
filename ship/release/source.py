"""Read side of the VCS: tags, commit ranges and HEAD.

The orchestrator reads through ``HistorySource`` only, so a forecast never
needs write access and tests can feed history from memory.
"""

from __future__ import annotations

from typing import Protocol

from ship.core.result import Err, Ok, Result
from ship.git.repository import GitCommit, GitError, Repository
from ship.release.errors import ReleaseError
from ship.release.model import CommitRecord


class HistorySource(Protocol):
    def list_tags(self) -> Result[list[str], ReleaseError]: ...

    def commits_since(self, tag: str | None) -> Result[list[CommitRecord], ReleaseError]: ...

    def head_sha(self) -> Result[str, ReleaseError]: ...


def _vcs_error(e: GitError) -> ReleaseError:
    return ReleaseError(kind="vcs_failed", message=f"git {e.command} failed", hint=e.message)


def to_commit_record(c: GitCommit) -> CommitRecord:
    return CommitRecord(
        sha=c.sha,
        message=c.message,
        author=c.author,
        timestamp=c.date,
        parents=c.parents,
    )


class GitHistorySource:
    def __init__(self, repo: Repository) -> None:
        self.repo = repo

    def list_tags(self) -> Result[list[str], ReleaseError]:
        result = self.repo.list_tags()
        if isinstance(result, Err):
            return Err(_vcs_error(result.error))
        return result

    def commits_since(self, tag: str | None) -> Result[list[CommitRecord], ReleaseError]:
        result = self.repo.commits_since(tag)
        if isinstance(result, Err):
            return Err(_vcs_error(result.error))
        return Ok([to_commit_record(c) for c in result.value])

    def head_sha(self) -> Result[str, ReleaseError]:
        result = self.repo.head_sha()
        if isinstance(result, Err):
            return Err(_vcs_error(result.error))
        return result
