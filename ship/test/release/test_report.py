from __future__ import annotations

import json
from pathlib import Path

from ship.output.console import MockConsole
from ship.release.model import ResolutionResult
from ship.release.report import ForecastReport, append_github_outputs, print_forecast
from ship.release.semver import SemVer, Version

RELEASING = ResolutionResult(
    would_release=True,
    release_type="minor",
    channel="stable",
    branch="main",
    next_version=Version(SemVer(1, 3, 0)),
    previous_version=Version(SemVer(1, 2, 0)),
    git_tag="v1.3.0",
    release_notes="## v1.3.0\n",
)

NOT_RELEASING = ResolutionResult(
    would_release=False,
    release_type="none",
    channel="none",
    branch="feature/x",
    reason="branch 'feature/x' is not a release branch",
)


def test_report_json() -> None:
    report = ForecastReport.from_resolution(RELEASING)
    data = json.loads(report.to_json())
    assert data == {
        "would_release": True,
        "version": "1.3.0",
        "release_type": "minor",
        "channel": "stable",
        "git_tag": "v1.3.0",
        "branch": "main",
        "previous_version": "1.2.0",
        "reason": "",
    }


def test_github_outputs(tmp_path: Path) -> None:
    out = tmp_path / "github_output"
    out.write_text("existing=1\n", encoding="utf-8")

    append_github_outputs(out, ForecastReport.from_resolution(NOT_RELEASING))

    assert out.read_text(encoding="utf-8") == (
        "existing=1\n"
        "would_release=false\n"
        "version=\n"
        "release_type=none\n"
        "channel=none\n"
        "git_tag=\n"
    )


def test_print_forecast() -> None:
    console = MockConsole()
    print_forecast(ForecastReport.from_resolution(RELEASING), console)
    assert "next: 1.3.0 (minor)" in console.messages
    assert "OK would release v1.3.0" in console.messages

    console = MockConsole()
    print_forecast(ForecastReport.from_resolution(NOT_RELEASING), console)
    assert "previous: (none)" in console.messages
    assert console.find("no release: branch 'feature/x' is not a release branch")
