"""Typed loading of ``release.toml``.

Everything a run needs that is not derived from VCS state: the project name
used in artifact names, the branch policy, the build target matrix and the
build command. Any problem here is a ``configuration_error`` and aborts the
run before the resolver is invoked.
"""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.core.structured import (
    StrDict,
    as_str_dict,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)
from ship.release.branches import DEFAULT_POLICY, BranchPolicy, BranchRule, make_policy, make_rule
from ship.release.errors import ReleaseError, configuration_error
from ship.release.model import BuildTarget
from ship.release.semver import SemVer, parse_version
from ship.release.timeouts import BUILD_STAGE_TIMEOUT_SECONDS

CONFIG_FILENAME = "release.toml"

DEFAULT_TAG_PREFIX = "v"
DEFAULT_CHANGELOG = "CHANGELOG.md"
DEFAULT_OUT_DIR = "dist"
DEFAULT_MAX_WORKERS = 4

_RULE_KINDS = ("exact", "glob", "regex")


@dataclass(frozen=True, slots=True)
class BuildConfig:
    command: tuple[str, ...] = ()
    max_workers: int = DEFAULT_MAX_WORKERS
    timeout_seconds: float = BUILD_STAGE_TIMEOUT_SECONDS
    out_dir: str = DEFAULT_OUT_DIR


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    name: str
    tag_prefix: str = DEFAULT_TAG_PREFIX
    initial_version: SemVer = SemVer(1, 0, 0)
    changelog: str = DEFAULT_CHANGELOG
    policy: BranchPolicy = DEFAULT_POLICY
    build: BuildConfig = field(default_factory=BuildConfig)
    targets: tuple[BuildTarget, ...] = ()


def artifact_name(*, name: str, version: str, target: BuildTarget) -> str:
    return f"{name}-{version}-{target.os}-{target.arch}.{target.ext}"


def _parse_rules(raw: list[object]) -> Result[list[BranchRule], ReleaseError]:
    rules: list[BranchRule] = []
    for i, item in enumerate(raw):
        table = as_str_dict(item)
        if table is None:
            return Err(configuration_error(f"branches[{i}] must be a table"))

        kinds = [k for k in _RULE_KINDS if k in table]
        if len(kinds) != 1:
            return Err(
                configuration_error(
                    f"branches[{i}] must set exactly one of: exact, glob, regex",
                )
            )
        kind = kinds[0]
        pattern = get_str(table, kind)
        channel = get_str(table, "channel")
        if pattern is None or channel is None:
            return Err(configuration_error(f"branches[{i}] needs a pattern and a channel"))

        rule = make_rule(
            kind=kind,  # type: ignore[arg-type]
            pattern=pattern,
            channel=channel,
            prerelease=get_str(table, "prerelease") or "",
        )
        if isinstance(rule, Err):
            return rule
        rules.append(rule.value)
    return Ok(rules)


def _parse_targets(raw: list[object]) -> Result[list[BuildTarget], ReleaseError]:
    targets: list[BuildTarget] = []
    for i, item in enumerate(raw):
        table = as_str_dict(item)
        if table is None:
            return Err(configuration_error(f"targets[{i}] must be a table"))

        os_name = get_str(table, "os")
        arch = get_str(table, "arch")
        if os_name is None or arch is None:
            return Err(configuration_error(f"targets[{i}] needs 'os' and 'arch'"))
        ext = (get_str(table, "ext") or "zip").lstrip(".")

        options: list[tuple[str, str]] = []
        opts = get_table(table, "options") or {}
        for key, value in opts.items():
            if not isinstance(value, str):
                return Err(
                    configuration_error(f"targets[{i}].options.{key} must be a string")
                )
            options.append((key, value))

        targets.append(BuildTarget(os=os_name, arch=arch, ext=ext, options=tuple(options)))
    return Ok(targets)


def validate_targets(
    *, name: str, targets: tuple[BuildTarget, ...]
) -> Result[None, ReleaseError]:
    """Artifact names must be unique across the whole target set."""
    seen: dict[str, str] = {}
    for t in targets:
        fname = artifact_name(name=name, version="0.0.0", target=t)
        if fname in seen:
            return Err(
                configuration_error(
                    f"targets {seen[fname]} and {t.id} produce the same artifact name",
                    hint="Give one of them a different os, arch or ext.",
                )
            )
        seen[fname] = t.id
    return Ok(None)


def config_from_dict(data: Mapping[str, object]) -> Result[ReleaseConfig, ReleaseError]:
    project: StrDict = get_table(data, "project") or {}
    build: StrDict = get_table(data, "build") or {}

    name = get_str(project, "name")
    if name is None:
        return Err(configuration_error("missing [project].name"))

    initial = SemVer(1, 0, 0)
    initial_raw = get_str(project, "initial_version")
    if initial_raw is not None:
        parsed = parse_version(initial_raw)
        if parsed is None or parsed.is_prerelease:
            return Err(
                configuration_error(
                    f"invalid [project].initial_version: {initial_raw}",
                    hint="Expected: MAJOR.MINOR.PATCH",
                )
            )
        initial = parsed.base

    policy = DEFAULT_POLICY
    raw_rules = get_list(data, "branches")
    if raw_rules is not None:
        rules = _parse_rules(raw_rules)
        if isinstance(rules, Err):
            return rules
        made = make_policy(rules.value)
        if isinstance(made, Err):
            return made
        policy = made.value

    targets: tuple[BuildTarget, ...] = ()
    raw_targets = get_list(data, "targets")
    if raw_targets is not None:
        parsed_targets = _parse_targets(raw_targets)
        if isinstance(parsed_targets, Err):
            return parsed_targets
        targets = tuple(parsed_targets.value)
        valid = validate_targets(name=name, targets=targets)
        if isinstance(valid, Err):
            return valid

    command: tuple[str, ...] = ()
    if "command" in build:
        argv = get_str_list(build, "command")
        if not argv:
            return Err(configuration_error("[build].command must be a non-empty list of strings"))
        command = tuple(argv)

    max_workers = get_int(build, "max_workers")
    if max_workers is not None and max_workers < 1:
        return Err(configuration_error("[build].max_workers must be >= 1"))

    timeout = build.get("timeout_seconds")
    if timeout is not None and (
        isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0
    ):
        return Err(configuration_error("[build].timeout_seconds must be a positive number"))

    timeout_seconds = float(timeout) if timeout is not None else BUILD_STAGE_TIMEOUT_SECONDS
    tag_prefix = get_str(project, "tag_prefix")

    return Ok(
        ReleaseConfig(
            name=name,
            tag_prefix=DEFAULT_TAG_PREFIX if tag_prefix is None else tag_prefix,
            initial_version=initial,
            changelog=get_str(project, "changelog") or DEFAULT_CHANGELOG,
            policy=policy,
            build=BuildConfig(
                command=command,
                max_workers=max_workers or DEFAULT_MAX_WORKERS,
                timeout_seconds=timeout_seconds,
                out_dir=get_str(build, "out_dir") or DEFAULT_OUT_DIR,
            ),
            targets=targets,
        )
    )


def load_config(path: Path) -> Result[ReleaseConfig, ReleaseError]:
    """Load and validate ``release.toml``."""
    try:
        data_obj: object = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(
            configuration_error(
                f"config file not found: {path}",
                hint=f"Create a {CONFIG_FILENAME} or pass --config.",
            )
        )
    except PermissionError:
        return Err(configuration_error(f"permission denied reading: {path}"))
    except tomllib.TOMLDecodeError as e:
        return Err(configuration_error(f"invalid TOML syntax: {e}", hint=str(path)))
    except UnicodeDecodeError as e:
        return Err(configuration_error(f"error reading config: {e}", hint=str(path)))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(configuration_error("config root must be a TOML table", hint=str(path)))
    return config_from_dict(data)
