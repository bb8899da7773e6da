from __future__ import annotations

import threading
from pathlib import Path

from ship.core.result import Err, Ok
from ship.output.console import MockConsole
from ship.release.model import BuildArtifact, BuildTarget, ResolutionResult
from ship.release.publisher import publish
from ship.release.semver import PreRelease, SemVer, Version
from ship.test.release._fakes import MemoryChangelog, MemoryReleaseStore

HEAD = "1234567890abcdef1234567890abcdef12345678"


def _resolution(prerelease: bool = False) -> ResolutionResult:
    if prerelease:
        version = Version(SemVer(1, 3, 0), PreRelease("rc", 1))
        return ResolutionResult(
            would_release=True,
            release_type="minor",
            channel="rc",
            branch="release/1.3",
            next_version=version,
            git_tag="v1.3.0-rc.1",
            release_notes="## v1.3.0-rc.1\n",
        )
    return ResolutionResult(
        would_release=True,
        release_type="minor",
        channel="stable",
        branch="main",
        next_version=Version(SemVer(1, 3, 0)),
        git_tag="v1.3.0",
        release_notes="## v1.3.0\n\n### Features\n\n- add export (bbbbbbbb)\n",
    )


def _artifact(tmp_path: Path) -> BuildArtifact:
    path = tmp_path / "widget-1.3.0-linux-x86_64.zip"
    path.write_bytes(b"zip")
    checksum = tmp_path / (path.name + ".sha256")
    checksum.write_text("x  widget-1.3.0-linux-x86_64.zip\n", encoding="utf-8")
    return BuildArtifact(
        name=path.name,
        path=path,
        sha256="x",
        size=3,
        target=BuildTarget(os="linux", arch="x86_64"),
        checksum_path=checksum,
    )


def test_publish_creates_tag_release_assets_and_changelog(tmp_path: Path) -> None:
    store = MemoryReleaseStore()
    changelog = MemoryChangelog()
    resolution = _resolution()

    result = publish(
        resolution=resolution,
        artifacts=[_artifact(tmp_path)],
        head_sha=HEAD,
        store=store,
        changelog=changelog,
        console=MockConsole(),
    )

    assert isinstance(result, Ok)
    outcome = result.value
    assert not outcome.degraded
    assert outcome.changelog_commit == "c" * 40
    assert store.calls == ["tag v1.3.0", "release v1.3.0", "upload v1.3.0 2"]
    assert store.tags == {"v1.3.0": HEAD}
    assert store.notes["v1.3.0"] == resolution.release_notes
    assert store.releases["v1.3.0"].assets == (
        "widget-1.3.0-linux-x86_64.zip",
        "widget-1.3.0-linux-x86_64.zip.sha256",
    )
    assert changelog.entries == [("v1.3.0", resolution.release_notes)]

    record = outcome.record
    assert record.tag == "v1.3.0"
    assert record.changelog == resolution.release_notes
    assert record.url.endswith("/v1.3.0")
    assert not record.prerelease


def test_prerelease_flag(tmp_path: Path) -> None:
    store = MemoryReleaseStore()
    result = publish(
        resolution=_resolution(prerelease=True),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=MemoryChangelog(),
        console=MockConsole(),
    )
    assert isinstance(result, Ok)
    assert result.value.record.prerelease
    assert store.releases["v1.3.0-rc.1"].prerelease
    # No artifacts: nothing to upload.
    assert store.calls == ["tag v1.3.0-rc.1", "release v1.3.0-rc.1"]


def test_publishing_twice_is_a_conflict_and_changes_nothing(tmp_path: Path) -> None:
    store = MemoryReleaseStore()
    changelog = MemoryChangelog()
    kwargs = dict(
        resolution=_resolution(),
        artifacts=[_artifact(tmp_path)],
        head_sha=HEAD,
        store=store,
        changelog=changelog,
        console=MockConsole(),
    )

    first = publish(**kwargs)  # type: ignore[arg-type]
    assert isinstance(first, Ok)
    calls_after_first = list(store.calls)

    second = publish(**kwargs)  # type: ignore[arg-type]
    assert isinstance(second, Err)
    assert second.error.kind == "publish_conflict"
    assert store.calls == calls_after_first
    assert len(changelog.entries) == 1


def test_existing_release_without_tag_is_a_conflict() -> None:
    store = MemoryReleaseStore()
    store.create_release("v1.3.0", title="v1.3.0", notes="", prerelease=False)
    store.calls.clear()

    result = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=MemoryChangelog(),
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "publish_conflict"
    assert "release exists" in result.error.message
    assert store.calls == []


def test_changelog_failure_is_degraded_success(tmp_path: Path) -> None:
    store = MemoryReleaseStore()
    result = publish(
        resolution=_resolution(),
        artifacts=[_artifact(tmp_path)],
        head_sha=HEAD,
        store=store,
        changelog=MemoryChangelog(fail=True),
        console=MockConsole(),
    )

    assert isinstance(result, Ok)
    outcome = result.value
    assert outcome.degraded
    assert outcome.changelog_commit is None
    assert outcome.changelog_error is not None
    assert outcome.changelog_error.kind == "publish_partial_failure"
    assert "push rejected" in (outcome.changelog_error.hint or "")
    # Nothing published is rolled back, and the release can still be looked up.
    assert "v1.3.0" in store.tags
    queried = store.get_release("v1.3.0")
    assert isinstance(queried, Ok)
    assert queried.value is not None
    assert queried.value.tag == outcome.record.tag


def test_tag_failure_is_publish_failed() -> None:
    store = MemoryReleaseStore(fail_on={"tag"})
    changelog = MemoryChangelog()
    result = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=changelog,
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert store.releases == {}
    assert changelog.entries == []


def test_release_failure_removes_tag_and_allows_rerun() -> None:
    store = MemoryReleaseStore(fail_on={"release"})
    changelog = MemoryChangelog()
    result = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=changelog,
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert "Reconcile manually" not in (result.error.hint or "")
    assert store.tags == {}
    assert store.releases == {}
    assert store.calls == ["tag v1.3.0", "release v1.3.0", "delete v1.3.0"]

    store.fail_on.clear()
    again = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=changelog,
        console=MockConsole(),
    )
    assert isinstance(again, Ok)
    assert store.tags == {"v1.3.0": HEAD}
    assert "v1.3.0" in store.releases


def test_release_failure_with_failed_tag_rollback_asks_for_reconciliation() -> None:
    store = MemoryReleaseStore(fail_on={"release", "delete"})
    result = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=MemoryChangelog(),
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert "tag v1.3.0 already exists" in result.error.message
    assert "Reconcile manually" in (result.error.hint or "")
    assert store.tags == {"v1.3.0": HEAD}


def test_upload_failure_never_reaches_changelog(tmp_path: Path) -> None:
    changelog = MemoryChangelog()
    result = publish(
        resolution=_resolution(),
        artifacts=[_artifact(tmp_path)],
        head_sha=HEAD,
        store=MemoryReleaseStore(fail_on={"upload"}),
        changelog=changelog,
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "publish_failed"
    assert changelog.entries == []


def test_cancel_before_tag_creates_nothing() -> None:
    cancel = threading.Event()
    cancel.set()
    store = MemoryReleaseStore()
    result = publish(
        resolution=_resolution(),
        artifacts=[],
        head_sha=HEAD,
        store=store,
        changelog=MemoryChangelog(),
        console=MockConsole(),
        cancel=cancel,
    )
    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert store.calls == []


def test_refuses_non_releasing_resolution() -> None:
    result = publish(
        resolution=ResolutionResult(
            would_release=False, release_type="none", channel="stable", branch="main"
        ),
        artifacts=[],
        head_sha=HEAD,
        store=MemoryReleaseStore(),
        changelog=MemoryChangelog(),
        console=MockConsole(),
    )
    assert isinstance(result, Err)
    assert result.error.kind == "invalid_input"
