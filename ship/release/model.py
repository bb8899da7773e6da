from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from ship.release.semver import Version


ReleaseChannel = Literal["stable", "rc", "beta", "none"]
ReleaseType = Literal["major", "minor", "patch", "none"]
ReleaseBump = Literal["major", "minor", "patch"]
Classification = Literal["breaking", "feature", "fix", "other"]
RunMode = Literal["forecast", "commit"]

CHANNELS: tuple[ReleaseChannel, ...] = ("stable", "rc", "beta", "none")


@dataclass(frozen=True, slots=True)
class CommitRecord:
    """One commit from VCS history, never mutated."""

    sha: str
    message: str
    author: str = ""
    timestamp: str = ""
    parents: tuple[str, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:8]

    @property
    def subject(self) -> str:
        lines = self.message.strip().splitlines()
        return lines[0].strip() if lines else ""


@dataclass(frozen=True, slots=True)
class ClassifiedCommit:
    commit: CommitRecord
    classification: Classification
    subject: str
    scope: str | None = None
    # The header did not parse as a conventional commit; classified as "other".
    ambiguous: bool = False


@dataclass(frozen=True, slots=True)
class ResolutionResult:
    """Outcome of version resolution for one run.

    When ``would_release`` is False the version, tag and notes are empty;
    ``reason`` says why nothing is released.
    """

    would_release: bool
    release_type: ReleaseType
    channel: ReleaseChannel
    branch: str
    next_version: Version | None = None
    previous_version: Version | None = None
    git_tag: str = ""
    release_notes: str = ""
    commits: tuple[ClassifiedCommit, ...] = ()
    reason: str = ""

    def __post_init__(self) -> None:
        if self.would_release:
            if self.release_type == "none" or self.next_version is None or not self.git_tag:
                raise ValueError("a releasing resolution needs a release type, version and tag")
            if self.channel == "none":
                raise ValueError("cannot release on channel 'none'")
            return
        if self.release_type != "none" or self.next_version is not None or self.git_tag:
            raise ValueError("a non-releasing resolution must not carry a version or tag")
        if self.release_notes:
            raise ValueError("a non-releasing resolution must not carry release notes")

    @property
    def is_prerelease(self) -> bool:
        return self.channel in ("rc", "beta")


@dataclass(frozen=True, slots=True)
class BuildTarget:
    """One (platform, architecture) pair plus its backend options."""

    os: str
    arch: str
    ext: str = "zip"
    options: tuple[tuple[str, str], ...] = ()

    @property
    def id(self) -> str:
        return f"{self.os}-{self.arch}"

    def option_map(self) -> dict[str, str]:
        return dict(self.options)


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    name: str
    path: Path
    sha256: str
    size: int
    target: BuildTarget
    checksum_path: Path

    @property
    def files(self) -> tuple[Path, Path]:
        """The binary and its checksum file, in upload order."""
        return (self.path, self.checksum_path)


@dataclass(frozen=True, slots=True)
class ReleaseRecord:
    tag: str
    artifacts: tuple[BuildArtifact, ...]
    changelog: str
    published_at: datetime
    url: str = ""
    prerelease: bool = False
