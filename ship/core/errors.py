"""Exit codes for the ``ship`` CLI.

The values are process exit codes consumed by CI jobs and must stay stable:
- 0: Success (including "nothing to release")
- 1: User error (bad arguments, unknown branch name)
- 2: Configuration error (invalid release.toml)
- 3: Build error (at least one target failed)
- 4: Publish error (tag/release creation failed, run cancelled or locked)
- 5: Degraded success (release exists, changelog commit must be redone)
- 6: Conflict (the version was already published)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    CONFIG_ERROR = 2
    BUILD_ERROR = 3
    PUBLISH_ERROR = 4
    DEGRADED = 5
    CONFLICT = 6

    def __str__(self) -> str:
        """Return human-readable name."""
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK

    @property
    def is_error(self) -> bool:
        return self != ErrorCode.OK
