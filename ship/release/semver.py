from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering

from ship.release.model import ReleaseBump


_VERSION_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([A-Za-z][0-9A-Za-z-]*)\.(0|[1-9]\d*))?$"
)


@dataclass(frozen=True, slots=True, order=True)
class SemVer:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def bump(self, kind: ReleaseBump) -> SemVer:
        match kind:
            case "major":
                return SemVer(self.major + 1, 0, 0)
            case "minor":
                return SemVer(self.major, self.minor + 1, 0)
            case "patch":
                return SemVer(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected bump kind: {kind}")


@dataclass(frozen=True, slots=True)
class PreRelease:
    """Channel-scoped prerelease suffix, e.g. ``rc.2``."""

    label: str
    number: int

    def __str__(self) -> str:
        return f"{self.label}.{self.number}"


@total_ordering
@dataclass(frozen=True, slots=True)
class Version:
    """A released (or to-be-released) version.

    A prerelease sorts before the release of the same base:
    ``1.3.0-rc.1 < 1.3.0-rc.2 < 1.3.0``.
    """

    base: SemVer
    prerelease: PreRelease | None = None

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def sort_key(self) -> tuple[SemVer, int, str, int]:
        if self.prerelease is None:
            return (self.base, 1, "", 0)
        return (self.base, 0, self.prerelease.label, self.prerelease.number)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        if self.prerelease is None:
            return str(self.base)
        return f"{self.base}-{self.prerelease}"


def parse_version(text: str) -> Version | None:
    """Parse ``MAJOR.MINOR.PATCH`` with an optional ``-label.N`` suffix."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    base = SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    if m.group(4) is None:
        return Version(base)
    return Version(base, PreRelease(m.group(4), int(m.group(5))))


def parse_tag(tag: str, *, prefix: str = "v") -> Version | None:
    if not tag.startswith(prefix):
        return None
    return parse_version(tag[len(prefix) :])


def format_tag(version: Version, *, prefix: str = "v") -> str:
    return f"{prefix}{version}"
