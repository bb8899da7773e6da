from __future__ import annotations

import signal
from pathlib import Path

import typer

from ship.cli.commands._helpers import exit_with_code, print_run, run_exit_code
from ship.cli.context import build_context, build_orchestrator, detect_branch, detect_repository
from ship.core.result import Err
from ship.output.errors import print_release_error, release_error_exit_code
from ship.release.gh import ensure_gh_available
from ship.release.orchestrator import RunRequest


def release(
    branch: str | None = typer.Option(None, "--branch", "-b", help="Branch being released"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to release.toml"),
    repo: str | None = typer.Option(
        None, "--repo", help="GitHub repository owner/name (default: GITHUB_REPOSITORY)"
    ),
    out_dir: Path | None = typer.Option(
        None, "--out-dir", help="Artifact directory (default: [build].out_dir)"
    ),
) -> None:
    """Resolve, build every target and publish the release."""
    ctx = build_context(config_path=config)

    gh = ensure_gh_available()
    if isinstance(gh, Err):
        print_release_error(gh.error, ctx.console)
        exit_with_code(release_error_exit_code(gh.error))

    name = detect_branch(ctx, branch)
    slug = detect_repository(ctx, repo)
    orchestrator = build_orchestrator(
        ctx,
        branch=name,
        slug=repo,
        out_dir=out_dir.resolve() if out_dir is not None else None,
    )

    # CI cancellation arrives as SIGTERM; both signals stop at the next stage boundary.
    def _cancel(signum: int, frame: object) -> None:
        del signum, frame
        ctx.console.warning("cancellation requested; stopping at the next stage boundary")
        orchestrator.cancel.set()

    previous_int = signal.signal(signal.SIGINT, _cancel)
    previous_term = signal.signal(signal.SIGTERM, _cancel)
    try:
        run = orchestrator.run(RunRequest(repository=slug, branch=name, mode="commit"))
    finally:
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)

    print_run(run, ctx.console)
    code = run_exit_code(run)
    if code:
        exit_with_code(code)
