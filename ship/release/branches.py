"""Branch strategy policy: branch name -> release channel.

Rules are evaluated in declared order and the first match wins. A branch
that matches ``release/*`` and a later ``release/1.x`` rule is governed by
whichever of the two was declared first, so keep specific rules above
general ones.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Literal

from ship.core.result import Err, Ok, Result
from ship.release.errors import ReleaseError, configuration_error
from ship.release.model import CHANNELS, ReleaseChannel

RuleKind = Literal["exact", "glob", "regex"]

_TEMPLATE_RE = re.compile(r"^([A-Za-z][0-9A-Za-z-]*)\.\{n\}$")


@dataclass(frozen=True, slots=True)
class ExactRule:
    pattern: str
    channel: ReleaseChannel
    prerelease: str = ""
    kind: Literal["exact"] = "exact"

    def matches(self, branch: str) -> bool:
        return branch == self.pattern


@dataclass(frozen=True, slots=True)
class GlobRule:
    pattern: str
    channel: ReleaseChannel
    prerelease: str = ""
    kind: Literal["glob"] = "glob"

    def matches(self, branch: str) -> bool:
        return fnmatchcase(branch, self.pattern)


@dataclass(frozen=True, slots=True)
class RegexRule:
    pattern: str
    channel: ReleaseChannel
    prerelease: str = ""
    kind: Literal["regex"] = "regex"

    def matches(self, branch: str) -> bool:
        return re.fullmatch(self.pattern, branch) is not None


BranchRule = ExactRule | GlobRule | RegexRule


@dataclass(frozen=True, slots=True)
class ChannelMatch:
    channel: ReleaseChannel
    prerelease_template: str = ""
    rule: BranchRule | None = None

    @property
    def prerelease_label(self) -> str | None:
        """Label used in the version suffix (``rc`` for ``rc.{n}``)."""
        m = _TEMPLATE_RE.match(self.prerelease_template)
        return m.group(1) if m else None


NO_CHANNEL = ChannelMatch(channel="none")


@dataclass(frozen=True, slots=True)
class BranchPolicy:
    rules: tuple[BranchRule, ...]

    def resolve_channel(self, branch: str) -> ChannelMatch:
        for rule in self.rules:
            if rule.matches(branch):
                return ChannelMatch(
                    channel=rule.channel,
                    prerelease_template=rule.prerelease,
                    rule=rule,
                )
        return NO_CHANNEL


DEFAULT_POLICY = BranchPolicy(
    rules=(
        ExactRule("main", "stable"),
        ExactRule("master", "stable"),
        GlobRule("release/*", "rc", "rc.{n}"),
        ExactRule("beta", "beta", "beta.{n}"),
        ExactRule("next", "beta", "beta.{n}"),
    )
)


def make_rule(
    *,
    kind: RuleKind,
    pattern: str,
    channel: str,
    prerelease: str = "",
) -> Result[BranchRule, ReleaseError]:
    """Build and validate a single rule."""
    if not pattern:
        return Err(configuration_error(f"empty {kind} branch pattern"))

    if channel not in CHANNELS:
        return Err(
            configuration_error(
                f"unknown channel '{channel}' for branch rule '{pattern}'",
                hint="Expected one of: " + ", ".join(CHANNELS),
            )
        )
    ch: ReleaseChannel = channel  # type: ignore[assignment]

    if ch in ("rc", "beta"):
        if _TEMPLATE_RE.match(prerelease) is None:
            return Err(
                configuration_error(
                    f"branch rule '{pattern}' needs a prerelease template like '{ch}.{{n}}'",
                    hint=f"got: {prerelease!r}",
                )
            )
    elif prerelease:
        return Err(
            configuration_error(
                f"branch rule '{pattern}' on channel '{ch}' must not set a prerelease template"
            )
        )

    match kind:
        case "exact":
            return Ok(ExactRule(pattern, ch, prerelease))
        case "glob":
            return Ok(GlobRule(pattern, ch, prerelease))
        case "regex":
            try:
                re.compile(pattern)
            except re.error as e:
                return Err(configuration_error(f"invalid branch regex '{pattern}': {e}"))
            return Ok(RegexRule(pattern, ch, prerelease))


def make_policy(rules: list[BranchRule]) -> Result[BranchPolicy, ReleaseError]:
    """Build a policy, rejecting exact duplicates (a later copy could never match)."""
    seen: set[tuple[str, str]] = set()
    for rule in rules:
        key = (rule.kind, rule.pattern)
        if key in seen:
            return Err(configuration_error(f"duplicate branch rule: {rule.kind} '{rule.pattern}'"))
        seen.add(key)
    return Ok(BranchPolicy(rules=tuple(rules)))
