from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from ship.core.errors import ErrorCode
from ship.core.result import Err
from ship.git.repository import Repository
from ship.output.console import ConsoleProtocol, RichConsole
from ship.output.errors import print_release_error
from ship.release.backends import CommandBackend
from ship.release.changelog import GitChangelog
from ship.release.commits import ConventionalCommitsEngine
from ship.release.config import CONFIG_FILENAME, ReleaseConfig, load_config
from ship.release.gh import GhReleaseStore
from ship.release.lock import FileRunLock
from ship.release.orchestrator import Orchestrator
from ship.release.source import GitHistorySource


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: ReleaseConfig
    console: ConsoleProtocol
    repo: Repository


def build_context(*, config_path: Path | None, stderr: bool = False) -> CLIContext:
    console = RichConsole(stderr=stderr)
    root = Path.cwd()
    path = config_path if config_path is not None else root / CONFIG_FILENAME
    if config_path is not None:
        root = path.resolve().parent

    loaded = load_config(path)
    if isinstance(loaded, Err):
        print_release_error(loaded.error, console)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    return CLIContext(root=root, config=loaded.value, console=console, repo=Repository(root))


def detect_branch(ctx: CLIContext, explicit: str | None) -> str:
    """``--branch``, then ``GITHUB_REF_NAME``, then the checked-out branch."""
    branch = explicit or os.environ.get("GITHUB_REF_NAME") or ctx.repo.current_branch()
    if not branch:
        ctx.console.error("cannot determine the branch (detached HEAD?)")
        ctx.console.info("pass --branch")
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return branch


def detect_repository(ctx: CLIContext, explicit: str | None) -> str:
    """``owner/name`` from ``--repo`` or ``GITHUB_REPOSITORY``; the folder name otherwise."""
    return explicit or os.environ.get("GITHUB_REPOSITORY") or ctx.root.name


def build_orchestrator(
    ctx: CLIContext,
    *,
    branch: str,
    slug: str | None,
    out_dir: Path | None = None,
) -> Orchestrator:
    config = ctx.config
    return Orchestrator(
        config=config,
        source=GitHistorySource(ctx.repo),
        engine=ConventionalCommitsEngine(),
        backend=CommandBackend(
            command=config.build.command,
            cwd=ctx.root,
            timeout=config.build.timeout_seconds,
        ),
        store=GhReleaseStore(ctx.repo, slug=slug),
        changelog=GitChangelog(ctx.repo, rel_path=config.changelog, branch=branch),
        lock=FileRunLock(ctx.root),
        console=ctx.console,
        out_dir=out_dir if out_dir is not None else ctx.root / config.build.out_dir,
    )
