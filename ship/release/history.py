from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ship.release.semver import PreRelease, SemVer, Version, format_tag, parse_tag


def _empty_counters() -> dict[tuple[SemVer, str], int]:
    return {}


def _empty_bases() -> dict[str, SemVer]:
    return {}


@dataclass(frozen=True, slots=True)
class ReleaseHistory:
    """What has already been released, derived from the repository's tags."""

    latest_stable: Version | None = None
    # (base, label) -> highest prerelease number released
    prerelease_max: dict[tuple[SemVer, str], int] = field(default_factory=_empty_counters)
    # label -> highest base that has a prerelease with that label
    latest_prerelease_base: dict[str, SemVer] = field(default_factory=_empty_bases)
    existing_tags: frozenset[str] = frozenset()
    tag_prefix: str = "v"

    def latest_for(self, label: str | None) -> Version | None:
        """Most recent release relevant to a channel.

        For stable that is the latest stable release. For a prerelease channel
        it is whichever of the latest stable release and the latest prerelease
        with that label sorts higher.
        """
        candidates: list[Version] = []
        if self.latest_stable is not None:
            candidates.append(self.latest_stable)
        if label is not None:
            base = self.latest_prerelease_base.get(label)
            if base is not None:
                n = self.prerelease_max[(base, label)]
                candidates.append(Version(base, PreRelease(label, n)))
        return max(candidates) if candidates else None

    def latest_tag_for(self, label: str | None) -> str | None:
        v = self.latest_for(label)
        return None if v is None else format_tag(v, prefix=self.tag_prefix)


def compute_history(tags: Iterable[str], *, prefix: str = "v") -> ReleaseHistory:
    """Build history from raw tag names; tags that are not versions are ignored."""
    stable: list[Version] = []
    pre_max: dict[tuple[SemVer, str], int] = {}
    pre_base: dict[str, SemVer] = {}
    seen: set[str] = set()

    for tag in tags:
        seen.add(tag)
        v = parse_tag(tag, prefix=prefix)
        if v is None:
            continue

        if v.prerelease is None:
            stable.append(v)
            continue

        key = (v.base, v.prerelease.label)
        prev = pre_max.get(key)
        pre_max[key] = v.prerelease.number if prev is None else max(prev, v.prerelease.number)

        prev_base = pre_base.get(v.prerelease.label)
        if prev_base is None or v.base > prev_base:
            pre_base[v.prerelease.label] = v.base

    return ReleaseHistory(
        latest_stable=max(stable) if stable else None,
        prerelease_max=pre_max,
        latest_prerelease_base=pre_base,
        existing_tags=frozenset(seen),
        tag_prefix=prefix,
    )
