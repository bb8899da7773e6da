"""Error payload for the release bounded context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "configuration_error",
    "build_target_failure",
    "publish_conflict",
    "publish_partial_failure",
    "publish_failed",
    "vcs_failed",
    "gh_missing",
    "cancelled",
    "run_locked",
    "invalid_input",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    Stable across resolver, dispatcher, publisher and orchestrator so the CLI
    can render any of them without knowing where they came from.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


def configuration_error(message: str, hint: str | None = None) -> ReleaseError:
    return ReleaseError(kind="configuration_error", message=message, hint=hint)
