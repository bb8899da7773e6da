"""Changelog document maintenance.

New entries go directly below the ``# Changelog`` title so the newest
release is always first.
"""

from __future__ import annotations

from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.git.repository import Repository
from ship.platform.files import atomic_write_text
from ship.release.errors import ReleaseError

CHANGELOG_TITLE = "# Changelog"


def insert_entry(document: str, notes: str) -> str:
    """Return ``document`` with ``notes`` inserted as the newest entry."""
    entry = notes.strip() + "\n"
    text = document.lstrip("\ufeff")

    if not text.strip():
        return f"{CHANGELOG_TITLE}\n\n{entry}"

    lines = text.splitlines()
    if lines and lines[0].strip() == CHANGELOG_TITLE:
        rest = "\n".join(lines[1:]).strip("\n")
        if not rest:
            return f"{CHANGELOG_TITLE}\n\n{entry}"
        return f"{CHANGELOG_TITLE}\n\n{entry}\n{rest}\n"

    body = text.strip("\n")
    return f"{CHANGELOG_TITLE}\n\n{entry}\n{body}\n"


class GitChangelog:
    """Changelog kept in the source repository and pushed to the release branch."""

    def __init__(self, repo: Repository, *, rel_path: str, branch: str) -> None:
        self.repo = repo
        self.rel_path = rel_path
        self.branch = branch

    @property
    def path(self) -> Path:
        return self.repo.path / self.rel_path

    def append(self, tag: str, notes: str) -> Result[str, ReleaseError]:
        try:
            current = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
            atomic_write_text(self.path, insert_entry(current, notes))
        except OSError as e:
            return Err(
                ReleaseError(
                    kind="publish_partial_failure",
                    message=f"failed to write {self.rel_path}: {e}",
                )
            )

        sha = self.repo.commit_file(
            self.rel_path,
            message=f"chore(release): {tag} [skip ci]",
        )
        if isinstance(sha, Err):
            return Err(
                ReleaseError(
                    kind="publish_partial_failure",
                    message=f"failed to commit {self.rel_path}",
                    hint=sha.error.message,
                )
            )

        pushed = self.repo.push_branch(self.branch)
        if isinstance(pushed, Err):
            return Err(
                ReleaseError(
                    kind="publish_partial_failure",
                    message=f"failed to push changelog commit to {self.branch}",
                    hint=pushed.error.message,
                )
            )

        return Ok(sha.value)
