"""Git operations used by a release run."""

from .repository import GitCommit, GitError, Repository

__all__ = [
    "GitCommit",
    "GitError",
    "Repository",
]
