"""Release policy engine: commit classification and notes rendering.

The resolver only depends on ``ReleasePolicyEngine``; the conventional-commit
implementation below is the production one.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from ship.release.model import Classification, ClassifiedCommit, CommitRecord

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()\r\n]*)\))?(?P<bang>!)?:[ \t]+(?P<subject>\S.*)$"
)
_BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:[ \t]*\S", re.MULTILINE)

SEVERITY: dict[Classification, int] = {
    "other": 0,
    "fix": 1,
    "feature": 2,
    "breaking": 3,
}

_SECTIONS: tuple[tuple[Classification, str], ...] = (
    ("breaking", "Breaking Changes"),
    ("feature", "Features"),
    ("fix", "Bug Fixes"),
)

_FEATURE_TYPES = frozenset({"feat", "feature"})
_FIX_TYPES = frozenset({"fix", "perf"})


class ReleasePolicyEngine(Protocol):
    def classify(self, commit: CommitRecord) -> ClassifiedCommit: ...

    def render(self, tag: str, commits: Sequence[ClassifiedCommit]) -> str: ...


@dataclass(frozen=True, slots=True)
class ConventionalCommitsEngine:
    """Conventional Commits classification.

    ``feat`` is a feature, ``fix``/``perf`` are fixes, a ``!`` after the type
    or a ``BREAKING CHANGE:`` footer is breaking. Anything else, including a
    header that does not parse, is ``other`` and never fails the run.
    """

    def classify(self, commit: CommitRecord) -> ClassifiedCommit:
        subject = commit.subject
        m = _HEADER_RE.match(subject)
        if m is None:
            return ClassifiedCommit(
                commit=commit,
                classification="other",
                subject=subject,
                ambiguous=True,
            )

        kind = m.group("type").lower()
        scope = (m.group("scope") or "").strip() or None
        breaking = m.group("bang") is not None or _has_breaking_footer(commit.message)

        classification: Classification
        if breaking:
            classification = "breaking"
        elif kind in _FEATURE_TYPES:
            classification = "feature"
        elif kind in _FIX_TYPES:
            classification = "fix"
        else:
            classification = "other"

        return ClassifiedCommit(
            commit=commit,
            classification=classification,
            subject=m.group("subject").strip(),
            scope=scope,
        )

    def render(self, tag: str, commits: Sequence[ClassifiedCommit]) -> str:
        return render_notes(tag, commits)


def _has_breaking_footer(message: str) -> bool:
    # The footer lives after the header line; a header can't be a footer.
    body = message.strip().partition("\n")[2]
    return _BREAKING_FOOTER_RE.search(body) is not None


def render_notes(tag: str, commits: Sequence[ClassifiedCommit]) -> str:
    """Group commits by classification, preserving commit order within a group."""
    lines: list[str] = [f"## {tag}"]
    for classification, title in _SECTIONS:
        entries = [c for c in commits if c.classification == classification]
        if not entries:
            continue
        lines.append("")
        lines.append(f"### {title}")
        lines.append("")
        for c in entries:
            scope = f"**{c.scope}:** " if c.scope else ""
            lines.append(f"- {scope}{c.subject} ({c.commit.short_sha})")
    return "\n".join(lines) + "\n"


def highest(classifications: Sequence[Classification]) -> Classification:
    """Highest severity in the sequence; ``other`` when empty."""
    best: Classification = "other"
    for c in classifications:
        if SEVERITY[c] > SEVERITY[best]:
            best = c
    return best
