"""Forecast report: the resolver's result as consumed by PR checks and CI."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from ship.output.console import ConsoleProtocol, Style
from ship.release.model import ReleaseChannel, ReleaseType, ResolutionResult


@dataclass(frozen=True, slots=True)
class ForecastReport:
    would_release: bool
    version: str
    release_type: ReleaseType
    channel: ReleaseChannel
    git_tag: str
    branch: str
    previous_version: str
    reason: str = ""

    @classmethod
    def from_resolution(cls, resolution: ResolutionResult) -> ForecastReport:
        return cls(
            would_release=resolution.would_release,
            version=str(resolution.next_version) if resolution.next_version else "",
            release_type=resolution.release_type,
            channel=resolution.channel,
            git_tag=resolution.git_tag,
            branch=resolution.branch,
            previous_version=(
                str(resolution.previous_version) if resolution.previous_version else ""
            ),
            reason=resolution.reason,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "would_release": self.would_release,
            "version": self.version,
            "release_type": self.release_type,
            "channel": self.channel,
            "git_tag": self.git_tag,
            "branch": self.branch,
            "previous_version": self.previous_version,
            "reason": self.reason,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2) + "\n"

    def github_outputs(self) -> str:
        """``key=value`` lines in the format of the ``$GITHUB_OUTPUT`` file."""
        pairs = [
            ("would_release", "true" if self.would_release else "false"),
            ("version", self.version),
            ("release_type", self.release_type),
            ("channel", self.channel),
            ("git_tag", self.git_tag),
        ]
        return "".join(f"{k}={v}\n" for k, v in pairs)


def append_github_outputs(path: Path, report: ForecastReport) -> None:
    with path.open("a", encoding="utf-8") as f:
        f.write(report.github_outputs())


def print_forecast(report: ForecastReport, console: ConsoleProtocol) -> None:
    console.header("Release forecast")
    console.field("branch", report.branch)
    console.field("channel", report.channel)
    console.field("previous", report.previous_version or "(none)")
    if report.would_release:
        console.field("next", f"{report.version} ({report.release_type})")
        console.field("tag", report.git_tag)
        console.success(f"would release {report.git_tag}")
    else:
        console.print(f"no release: {report.reason}", Style.DIM)
