from __future__ import annotations

import sys
import threading
from pathlib import Path
from time import monotonic

from ship.core.result import Ok, Result
from ship.output.console import MockConsole
from ship.platform.files import sha256_file
from ship.release.backends import CommandBackend
from ship.release.dispatcher import BuildRequest, dispatch, inject_version, plan_requests
from ship.release.model import BuildTarget, ResolutionResult
from ship.release.semver import PreRelease, SemVer, Version
from ship.test.release._fakes import FakeBackend

LINUX = BuildTarget(os="linux", arch="x86_64")
MACOS = BuildTarget(os="macos", arch="arm64")
WINDOWS = BuildTarget(os="windows", arch="x86_64")

V130 = Version(SemVer(1, 3, 0))


def _releasing(version: Version = V130) -> ResolutionResult:
    return ResolutionResult(
        would_release=True,
        release_type="minor",
        channel="stable",
        branch="main",
        next_version=version,
        git_tag=f"v{version}",
        release_notes=f"## v{version}\n",
    )


NOT_RELEASING = ResolutionResult(
    would_release=False, release_type="none", channel="stable", branch="main"
)


def test_skipped_when_nothing_to_release(tmp_path: Path) -> None:
    backend = FakeBackend()
    outcome = dispatch(
        resolution=NOT_RELEASING,
        targets=[LINUX],
        backend=backend,
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )
    assert outcome.status == "skipped"
    assert backend.requests == []


def test_all_targets_succeed(tmp_path: Path) -> None:
    outcome = dispatch(
        resolution=_releasing(),
        targets=[LINUX, MACOS, WINDOWS],
        backend=FakeBackend(),
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )

    assert outcome.succeeded
    assert [a.name for a in outcome.artifacts] == [
        "widget-1.3.0-linux-x86_64.zip",
        "widget-1.3.0-macos-arm64.zip",
        "widget-1.3.0-windows-x86_64.zip",
    ]
    for a in outcome.artifacts:
        assert a.sha256 == sha256_file(a.path)
        assert a.checksum_path.read_text(encoding="utf-8") == f"{a.sha256}  {a.name}\n"
        assert a.size == a.path.stat().st_size


def test_one_failing_target_does_not_stop_siblings(tmp_path: Path) -> None:
    console = MockConsole()
    outcome = dispatch(
        resolution=_releasing(),
        targets=[LINUX, MACOS, WINDOWS],
        backend=FakeBackend(fail={MACOS.id}),
        name="widget",
        out_dir=tmp_path,
        console=console,
    )

    assert outcome.status == "failed"
    assert [a.target for a in outcome.artifacts] == [LINUX, WINDOWS]
    assert [f.target for f in outcome.failures] == [MACOS]
    assert "compile failed" in outcome.failures[0].message
    assert console.find("macos-arm64: compile failed")
    # Successful artifacts stay on disk for inspection.
    assert all(a.path.is_file() for a in outcome.artifacts)


def test_backend_exception_is_target_failure(tmp_path: Path) -> None:
    outcome = dispatch(
        resolution=_releasing(),
        targets=[LINUX, WINDOWS],
        backend=FakeBackend(raise_on={LINUX.id}),
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )
    assert outcome.status == "failed"
    assert "RuntimeError" in outcome.failures[0].message
    assert [a.target for a in outcome.artifacts] == [WINDOWS]


def test_backend_claiming_success_without_file(tmp_path: Path) -> None:
    class LyingBackend:
        def build(self, request: BuildRequest) -> Result[Path, str]:
            return Ok(request.output)

    outcome = dispatch(
        resolution=_releasing(),
        targets=[LINUX],
        backend=LyingBackend(),
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )
    assert outcome.status == "failed"
    assert "produced no file" in outcome.failures[0].message


def test_no_targets_succeeds_with_no_artifacts(tmp_path: Path) -> None:
    outcome = dispatch(
        resolution=_releasing(),
        targets=[],
        backend=FakeBackend(),
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )
    assert outcome.succeeded
    assert outcome.artifacts == ()


def test_cancel_reports_pending_targets(tmp_path: Path) -> None:
    gate = threading.Event()
    cancel = threading.Event()
    cancel.set()
    try:
        outcome = dispatch(
            resolution=_releasing(),
            targets=[LINUX, MACOS],
            backend=FakeBackend(block=gate),
            name="widget",
            out_dir=tmp_path,
            console=MockConsole(),
            cancel=cancel,
        )
    finally:
        gate.set()

    assert outcome.status == "failed"
    assert {f.message for f in outcome.failures} == {"cancelled"}


def test_timeout_reports_pending_targets(tmp_path: Path) -> None:
    gate = threading.Event()
    try:
        outcome = dispatch(
            resolution=_releasing(),
            targets=[LINUX],
            backend=FakeBackend(block=gate),
            name="widget",
            out_dir=tmp_path,
            console=MockConsole(),
            timeout=0.05,
        )
    finally:
        gate.set()

    assert outcome.status == "failed"
    assert outcome.failures[0].message == "timed out"


def test_hung_build_command_is_killed_by_backend_timeout(tmp_path: Path) -> None:
    backend = CommandBackend(
        command=(sys.executable, "-c", "import time; time.sleep(30)"),
        cwd=tmp_path,
        timeout=0.5,
    )
    started = monotonic()

    outcome = dispatch(
        resolution=_releasing(),
        targets=[LINUX],
        backend=backend,
        name="widget",
        out_dir=tmp_path,
        console=MockConsole(),
    )

    assert monotonic() - started < 15
    assert outcome.status == "failed"
    assert "timed out" in outcome.failures[0].message


def test_plan_is_deterministic(tmp_path: Path) -> None:
    version = Version(SemVer(2, 0, 0), PreRelease("rc", 1))
    a = plan_requests(name="widget", version=version, targets=[LINUX, MACOS], out_dir=tmp_path)
    b = plan_requests(name="widget", version=version, targets=[LINUX, MACOS], out_dir=tmp_path)

    assert a == b
    assert a[0].output == tmp_path / "widget-2.0.0-rc.1-linux-x86_64.zip"
    assert a[0].version == "2.0.0-rc.1"


def test_inject_version() -> None:
    target = BuildTarget(
        os="windows",
        arch="x86_64",
        options=(("product_version", "{major}.{minor}.{patch}.0"), ("title", "W {version} {os}")),
    )
    opts = inject_version(target, Version(SemVer(1, 3, 0), PreRelease("beta", 2)))
    assert opts == {
        "product_version": "1.3.0.0",
        "title": "W 1.3.0-beta.2 windows",
        "version": "1.3.0-beta.2",
    }
