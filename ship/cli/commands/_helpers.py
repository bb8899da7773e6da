"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from ship.core.errors import ErrorCode
from ship.output.console import ConsoleProtocol, Style
from ship.output.errors import print_release_error, release_error_exit_code
from ship.release.orchestrator import PipelineRun, RunState


def exit_with_code(code: int) -> NoReturn:
    raise typer.Exit(code=code)


def run_exit_code(run: PipelineRun) -> int:
    if run.state == RunState.DEGRADED_DONE:
        return int(ErrorCode.DEGRADED)
    if run.succeeded:
        return int(ErrorCode.OK)
    if run.error is not None:
        return release_error_exit_code(run.error)
    return int(ErrorCode.PUBLISH_ERROR)


def print_run(run: PipelineRun, console: ConsoleProtocol) -> None:
    """Summarize a commit-mode run."""
    console.header("Release run")
    console.field("states", " -> ".join(s.value for s in run.visited))

    if run.dispatch is not None and run.dispatch.artifacts:
        for a in run.dispatch.artifacts:
            console.print(f"  {a.name}  sha256:{a.sha256[:16]}", Style.DIM)

    if run.error is not None:
        print_release_error(run.error, console)

    record = run.record
    if record is not None:
        where = f" {record.url}" if record.url else ""
        if run.state == RunState.DEGRADED_DONE:
            console.warning(f"released {record.tag}{where} (changelog commit pending)")
        else:
            console.success(f"released {record.tag}{where}")
    elif run.state == RunState.SKIPPED and run.resolution is not None:
        console.print(f"no release: {run.resolution.reason}", Style.DIM)
