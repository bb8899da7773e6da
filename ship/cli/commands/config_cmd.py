from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.context import build_context
from ship.output.console import Style
from ship.release.config import artifact_name


def config(
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to release.toml"),
) -> None:
    """Validate release.toml and show branch rules and build targets."""
    ctx = build_context(config_path=config)
    cfg = ctx.config
    console = ctx.console

    console.header(f"{cfg.name}")
    console.field("tag prefix", cfg.tag_prefix)
    console.field("first version", str(cfg.initial_version))
    console.field("changelog", cfg.changelog)

    console.header("Branches (first match wins)")
    for i, rule in enumerate(cfg.policy.rules, start=1):
        suffix = f" [{rule.prerelease}]" if rule.prerelease else ""
        console.print(f"{i}. {rule.kind} {rule.pattern} -> {rule.channel}{suffix}")

    console.header("Targets")
    if not cfg.targets:
        console.print("(none: releases carry no binaries)", Style.DIM)
    for t in cfg.targets:
        console.print(f"{t.id}: {artifact_name(name=cfg.name, version='X.Y.Z', target=t)}")

    if not cfg.build.command and cfg.targets:
        console.warning("targets are configured but [build].command is empty")
    console.success("configuration is valid")
