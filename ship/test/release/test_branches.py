from __future__ import annotations

from ship.core.result import Err, Ok
from ship.release.branches import (
    DEFAULT_POLICY,
    BranchPolicy,
    ExactRule,
    GlobRule,
    RegexRule,
    make_policy,
    make_rule,
)


def test_default_policy() -> None:
    assert DEFAULT_POLICY.resolve_channel("main").channel == "stable"
    assert DEFAULT_POLICY.resolve_channel("master").channel == "stable"
    rc = DEFAULT_POLICY.resolve_channel("release/2.1")
    assert rc.channel == "rc"
    assert rc.prerelease_label == "rc"
    assert DEFAULT_POLICY.resolve_channel("beta").prerelease_label == "beta"


def test_unmatched_branch_is_none() -> None:
    match = DEFAULT_POLICY.resolve_channel("feature/login")
    assert match.channel == "none"
    assert match.rule is None
    assert match.prerelease_label is None


def test_first_match_wins() -> None:
    policy = BranchPolicy(
        rules=(
            GlobRule("release/*", "rc", "rc.{n}"),
            ExactRule("release/1.x", "stable"),
        )
    )
    assert policy.resolve_channel("release/1.x").channel == "rc"

    reordered = BranchPolicy(rules=tuple(reversed(policy.rules)))
    assert reordered.resolve_channel("release/1.x").channel == "stable"


def test_glob_is_case_sensitive() -> None:
    assert DEFAULT_POLICY.resolve_channel("Main").channel == "none"


def test_regex_must_match_whole_branch() -> None:
    rule = RegexRule(r"hotfix/\d+", "stable")
    assert rule.matches("hotfix/12")
    assert not rule.matches("hotfix/12-extra")


def test_make_rule_validates_channel() -> None:
    result = make_rule(kind="exact", pattern="main", channel="nightly")
    assert isinstance(result, Err)
    assert result.error.kind == "configuration_error"


def test_make_rule_requires_prerelease_template() -> None:
    missing = make_rule(kind="glob", pattern="release/*", channel="rc")
    assert isinstance(missing, Err)

    bad = make_rule(kind="glob", pattern="release/*", channel="rc", prerelease="rc-{n}")
    assert isinstance(bad, Err)

    ok = make_rule(kind="glob", pattern="release/*", channel="rc", prerelease="rc.{n}")
    assert isinstance(ok, Ok)
    assert isinstance(ok.value, GlobRule)


def test_make_rule_rejects_template_on_stable() -> None:
    result = make_rule(kind="exact", pattern="main", channel="stable", prerelease="rc.{n}")
    assert isinstance(result, Err)


def test_make_rule_rejects_invalid_regex() -> None:
    result = make_rule(kind="regex", pattern="release/(", channel="stable")
    assert isinstance(result, Err)
    assert "invalid branch regex" in result.error.message


def test_make_policy_rejects_duplicates() -> None:
    result = make_policy([ExactRule("main", "stable"), ExactRule("main", "beta", "beta.{n}")])
    assert isinstance(result, Err)
    assert "duplicate" in result.error.message
