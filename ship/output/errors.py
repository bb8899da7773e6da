"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ship.core.errors import ErrorCode
from ship.output.console import Style
from ship.release.errors import ReleaseError

if TYPE_CHECKING:
    from ship.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a release error with its hint on a dimmed second line."""
    match error.kind:
        case "publish_conflict":
            console.warning(f"already published: {error.message}")
        case "publish_partial_failure":
            console.warning(error.message)
            console.print(
                "action required: the release exists but the changelog commit must be redone "
                "manually",
                Style.BOLD,
            )
        case _:
            console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def release_error_exit_code(error: ReleaseError) -> int:
    match error.kind:
        case "configuration_error":
            return int(ErrorCode.CONFIG_ERROR)
        case "invalid_input":
            return int(ErrorCode.USER_ERROR)
        case "build_target_failure":
            return int(ErrorCode.BUILD_ERROR)
        case "publish_conflict":
            return int(ErrorCode.CONFLICT)
        case "publish_partial_failure":
            return int(ErrorCode.DEGRADED)
        case "publish_failed" | "vcs_failed" | "gh_missing" | "cancelled" | "run_locked":
            return int(ErrorCode.PUBLISH_ERROR)
