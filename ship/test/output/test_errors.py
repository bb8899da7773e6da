from __future__ import annotations

from ship.core.errors import ErrorCode
from ship.output.console import MockConsole, Style
from ship.output.errors import print_release_error, release_error_exit_code
from ship.release.errors import ReleaseError


def test_plain_error_with_hint() -> None:
    console = MockConsole()
    print_release_error(ReleaseError(kind="vcs_failed", message="git push failed", hint="auth"), console)
    assert console.messages == ["error: git push failed", "hint: auth"]
    assert console.outputs[1].style == Style.DIM


def test_conflict_is_a_warning() -> None:
    console = MockConsole()
    print_release_error(ReleaseError(kind="publish_conflict", message="v1.0.0 exists"), console)
    assert not console.has_error()
    assert console.messages == ["warning: already published: v1.0.0 exists"]


def test_partial_failure_calls_for_action() -> None:
    console = MockConsole()
    print_release_error(
        ReleaseError(kind="publish_partial_failure", message="changelog push failed"), console
    )
    assert console.has_warning()
    assert console.find("action required")


def test_exit_codes() -> None:
    def code(kind: str) -> int:
        return release_error_exit_code(ReleaseError(kind=kind, message=""))  # type: ignore[arg-type]

    assert code("configuration_error") == ErrorCode.CONFIG_ERROR
    assert code("invalid_input") == ErrorCode.USER_ERROR
    assert code("build_target_failure") == ErrorCode.BUILD_ERROR
    assert code("publish_conflict") == ErrorCode.CONFLICT
    assert code("publish_partial_failure") == ErrorCode.DEGRADED
    assert code("run_locked") == ErrorCode.PUBLISH_ERROR
    assert code("cancelled") == ErrorCode.PUBLISH_ERROR
