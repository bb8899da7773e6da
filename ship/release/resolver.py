"""Version resolution: commits since the last release -> next version.

``resolve`` is pure. Forecast and commit mode run exactly the same
computation; only the caller decides whether to act on the result.
"""

from __future__ import annotations

from collections.abc import Sequence

from ship.release.branches import BranchPolicy, ChannelMatch
from ship.release.commits import ReleasePolicyEngine, highest
from ship.release.history import ReleaseHistory
from ship.release.model import (
    Classification,
    CommitRecord,
    ReleaseBump,
    ReleaseType,
    ResolutionResult,
)
from ship.release.semver import PreRelease, SemVer, Version, format_tag

DEFAULT_INITIAL_VERSION = SemVer(1, 0, 0)

_BUMP_FOR: dict[Classification, ReleaseType] = {
    "breaking": "major",
    "feature": "minor",
    "fix": "patch",
    "other": "none",
}


def resolve(
    *,
    commits: Sequence[CommitRecord],
    branch: str,
    policy: BranchPolicy,
    history: ReleaseHistory,
    engine: ReleasePolicyEngine,
    initial_version: SemVer = DEFAULT_INITIAL_VERSION,
) -> ResolutionResult:
    match = policy.resolve_channel(branch)
    if match.channel == "none":
        return ResolutionResult(
            would_release=False,
            release_type="none",
            channel="none",
            branch=branch,
            reason=f"branch '{branch}' is not a release branch",
        )

    previous = history.latest_for(match.prerelease_label)

    if not commits:
        return ResolutionResult(
            would_release=False,
            release_type="none",
            channel=match.channel,
            branch=branch,
            previous_version=previous,
            reason="no commits since the last release",
        )

    classified = tuple(engine.classify(c) for c in commits)
    release_type = _BUMP_FOR[highest([c.classification for c in classified])]

    if release_type == "none":
        return ResolutionResult(
            would_release=False,
            release_type="none",
            channel=match.channel,
            branch=branch,
            previous_version=previous,
            commits=classified,
            reason="no feat, fix or breaking commits since the last release",
        )

    version = next_version(
        history=history,
        bump=release_type,
        match=match,
        initial_version=initial_version,
    )
    tag = format_tag(version, prefix=history.tag_prefix)

    return ResolutionResult(
        would_release=True,
        release_type=release_type,
        channel=match.channel,
        branch=branch,
        next_version=version,
        previous_version=previous,
        git_tag=tag,
        release_notes=engine.render(tag, classified),
        commits=classified,
    )


def next_version(
    *,
    history: ReleaseHistory,
    bump: ReleaseBump,
    match: ChannelMatch,
    initial_version: SemVer = DEFAULT_INITIAL_VERSION,
) -> Version:
    """Apply ``bump`` to the last stable release.

    Prerelease channels keep their own counter per base: ``1.3.0-rc.1``,
    ``1.3.0-rc.2``... If the channel already carries prereleases of a higher
    base than the bump yields, that base is continued so versions never go
    backwards within a channel.
    """
    if history.latest_stable is None:
        base = initial_version
    else:
        base = history.latest_stable.base.bump(bump)

    label = match.prerelease_label
    if match.channel == "stable" or label is None:
        return Version(base)

    existing = history.latest_prerelease_base.get(label)
    if existing is not None and existing > base:
        base = existing

    n = history.prerelease_max.get((base, label), 0) + 1
    return Version(base, PreRelease(label, n))

