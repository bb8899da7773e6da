from __future__ import annotations

from pathlib import Path

import typer

from ship.cli.commands._helpers import exit_with_code
from ship.cli.context import build_context, build_orchestrator, detect_branch, detect_repository
from ship.core.errors import ErrorCode
from ship.output.errors import print_release_error, release_error_exit_code
from ship.release.orchestrator import RunRequest, RunState
from ship.release.report import ForecastReport, append_github_outputs, print_forecast


def forecast(
    branch: str | None = typer.Option(None, "--branch", "-b", help="Branch to forecast"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Path to release.toml"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON on stdout"),
    github_output: Path | None = typer.Option(
        None,
        "--github-output",
        envvar="GITHUB_OUTPUT",
        help="Append key=value outputs to this file (GitHub Actions)",
    ),
) -> None:
    """Compute the next version without building or publishing anything."""
    ctx = build_context(config_path=config, stderr=as_json)
    name = detect_branch(ctx, branch)
    orchestrator = build_orchestrator(ctx, branch=name, slug=None)

    run = orchestrator.run(
        RunRequest(repository=detect_repository(ctx, None), branch=name, mode="forecast")
    )
    if run.state == RunState.FAILED or run.resolution is None:
        if run.error is not None:
            print_release_error(run.error, ctx.console)
            exit_with_code(release_error_exit_code(run.error))
        exit_with_code(int(ErrorCode.PUBLISH_ERROR))

    report = ForecastReport.from_resolution(run.resolution)
    if github_output is not None:
        append_github_outputs(github_output, report)

    if as_json:
        typer.echo(report.to_json(), nl=False)
    else:
        print_forecast(report, ctx.console)
