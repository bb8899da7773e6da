"""Git repository abstraction.

Everything a release run needs from the local checkout: tags, the commit
range since a tag, creating and pushing a tag, and committing the changelog
back. All operations return Result types.

Usage:
    repo = Repository(Path("."))

    match repo.commits_since("v1.2.0"):
        case Ok(commits):
            for c in commits:
                print(c.sha[:8], c.message.splitlines()[0])
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.platform.process import ProcessError
from ship.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitCommit",
    "GitError",
    "Repository",
]

# Unit/record separators keep multi-line commit bodies unambiguous.
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%aI", "%P", "%B"]) + _RECORD_SEP


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class GitCommit:
    sha: str
    author: str
    date: str
    parents: tuple[str, ...]
    message: str


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root
        remote: Remote used for pushes
    """

    def __init__(self, path: Path, *, remote: str = "origin") -> None:
        self.path = path
        self.remote = remote

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    def current_branch(self) -> str | None:
        """Current branch name, None on detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def head_sha(self) -> Result[str, GitError]:
        result = self._run(["rev-parse", "HEAD"])
        match result:
            case Err(e):
                return Err(self._error("rev-parse HEAD", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def list_tags(self) -> Result[list[str], GitError]:
        result = self._run(["tag", "--list"])
        match result:
            case Err(e):
                return Err(self._error("tag --list", e))
            case Ok(stdout):
                return Ok([ln.strip() for ln in stdout.splitlines() if ln.strip()])

    def tag_exists(self, tag: str) -> Result[bool, GitError]:
        result = self._run(["tag", "--list", tag])
        match result:
            case Err(e):
                return Err(self._error("tag --list", e))
            case Ok(stdout):
                return Ok(stdout.strip() == tag)

    def remote_tag_exists(self, tag: str) -> Result[bool, GitError]:
        result = self._run(["ls-remote", "--tags", self.remote, f"refs/tags/{tag}"])
        match result:
            case Err(e):
                return Err(self._error("ls-remote --tags", e))
            case Ok(stdout):
                return Ok(bool(stdout.strip()))

    def commits_since(self, tag: str | None) -> Result[list[GitCommit], GitError]:
        """Commits reachable from HEAD but not from ``tag``, oldest first.

        With ``tag=None`` the whole history of HEAD is returned.
        """
        rev = "HEAD" if tag is None else f"{tag}..HEAD"
        result = self._run(["log", "--reverse", f"--format={_LOG_FORMAT}", rev])
        match result:
            case Err(e):
                # An unborn branch has no history yet.
                if "does not have any commits" in e.stderr:
                    return Ok([])
                return Err(self._error(f"log {rev}", e))
            case Ok(stdout):
                return Ok(self._parse_log(stdout))

    def create_tag(self, tag: str, *, sha: str, message: str) -> Result[None, GitError]:
        result = self._run(["tag", "-a", tag, sha, "-m", message])
        if isinstance(result, Err):
            return Err(self._error(f"tag {tag}", result.error))
        return Ok(None)

    def delete_tag(self, tag: str) -> Result[None, GitError]:
        result = self._run(["tag", "-d", tag])
        if isinstance(result, Err):
            return Err(self._error(f"tag -d {tag}", result.error))
        return Ok(None)

    def push_tag(self, tag: str) -> Result[None, GitError]:
        result = self._run(["push", self.remote, f"refs/tags/{tag}"])
        if isinstance(result, Err):
            return Err(self._error(f"push {tag}", result.error))
        return Ok(None)

    def delete_remote_tag(self, tag: str) -> Result[None, GitError]:
        result = self._run(["push", "--delete", self.remote, f"refs/tags/{tag}"])
        if isinstance(result, Err):
            return Err(self._error(f"push --delete {tag}", result.error))
        return Ok(None)

    def commit_file(self, rel_path: str, *, message: str) -> Result[str, GitError]:
        """Stage one file and commit it; returns the new commit sha."""
        added = self._run(["add", "--", rel_path])
        if isinstance(added, Err):
            return Err(self._error("add", added.error))

        committed = self._run(["commit", "-m", message, "--", rel_path])
        if isinstance(committed, Err):
            return Err(self._error("commit", committed.error))

        return self.head_sha()

    def push_branch(self, branch: str) -> Result[None, GitError]:
        result = self._run(["push", self.remote, f"HEAD:refs/heads/{branch}"])
        if isinstance(result, Err):
            return Err(self._error(f"push {branch}", result.error))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push", "ls-remote"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    @staticmethod
    def _error(command: str, e: ProcessError) -> GitError:
        return GitError(
            command=command,
            message=e.stderr.strip() or e.stdout.strip() or f"git {command} failed",
            returncode=e.returncode,
        )

    @staticmethod
    def _parse_log(output: str) -> list[GitCommit]:
        commits: list[GitCommit] = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record.strip():
                continue
            parts = record.split(_FIELD_SEP, 4)
            if len(parts) != 5:
                continue
            sha, author, date, parents, message = parts
            commits.append(
                GitCommit(
                    sha=sha.strip(),
                    author=author,
                    date=date,
                    parents=tuple(parents.split()),
                    message=message.strip(),
                )
            )
        return commits
