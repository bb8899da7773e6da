"""Pipeline orchestration: resolve -> dispatch -> publish.

Each stage's output is handed to the next by value inside ``PipelineRun``;
no stage reads another stage's state any other way. A run is a small state
machine:

    idle -> resolving -> skipped                       (nothing to release)
                      -> forecast                      (forecast mode)
                      -> dispatching -> failed         (a target failed)
                                     -> publishing -> done
                                                   -> degraded_done
                                                   -> failed
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import StrEnum
from pathlib import Path

from ship.core.result import Err, Ok, Result
from ship.output.console import ConsoleProtocol, Style
from ship.release.commits import ReleasePolicyEngine
from ship.release.config import ReleaseConfig
from ship.release.dispatcher import BuildBackend, DispatchOutcome, dispatch
from ship.release.errors import ReleaseError
from ship.release.fsm import StepOutcome, advance, finish, run_state_machine
from ship.release.history import compute_history
from ship.release.lock import RunLock, hold
from ship.release.model import CommitRecord, ReleaseRecord, ResolutionResult, RunMode
from ship.release.publisher import ChangelogWriter, PublishOutcome, ReleaseStore, publish
from ship.release.resolver import resolve
from ship.release.source import HistorySource


class RunState(StrEnum):
    IDLE = "idle"
    RESOLVING = "resolving"
    SKIPPED = "skipped"
    FORECAST = "forecast"
    DISPATCHING = "dispatching"
    PUBLISHING = "publishing"
    FAILED = "failed"
    DONE = "done"
    DEGRADED_DONE = "degraded_done"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {
        RunState.SKIPPED,
        RunState.FORECAST,
        RunState.FAILED,
        RunState.DONE,
        RunState.DEGRADED_DONE,
    }
)


@dataclass(frozen=True, slots=True)
class RunRequest:
    repository: str
    branch: str
    mode: RunMode = "forecast"


@dataclass(frozen=True, slots=True)
class PipelineRun:
    """Everything one run produced; scoped to the run and discarded after."""

    request: RunRequest
    state: RunState = RunState.IDLE
    head_sha: str = ""
    resolution: ResolutionResult | None = None
    dispatch: DispatchOutcome | None = None
    publish: PublishOutcome | None = None
    error: ReleaseError | None = None
    visited: tuple[RunState, ...] = (RunState.IDLE,)

    @property
    def record(self) -> ReleaseRecord | None:
        return self.publish.record if self.publish is not None else None

    @property
    def succeeded(self) -> bool:
        return self.state in (RunState.SKIPPED, RunState.FORECAST, RunState.DONE)

    def to(self, state: RunState, **changes: object) -> PipelineRun:
        return replace(self, state=state, visited=(*self.visited, state), **changes)  # type: ignore[arg-type]


type _Step = Result[StepOutcome[PipelineRun], ReleaseError]


def _cancelled(stage: str) -> ReleaseError:
    return ReleaseError(kind="cancelled", message=f"run cancelled before {stage}")


def _dispatch_error(outcome: DispatchOutcome) -> ReleaseError:
    failed = ", ".join(f.target.id for f in outcome.failures)
    details = "; ".join(f"{f.target.id}: {f.message}" for f in outcome.failures)
    return ReleaseError(
        kind="build_target_failure",
        message=f"{len(outcome.failures)} build target(s) failed: {failed}",
        hint=details or None,
    )


@dataclass
class Orchestrator:
    config: ReleaseConfig
    source: HistorySource
    engine: ReleasePolicyEngine
    backend: BuildBackend
    store: ReleaseStore
    changelog: ChangelogWriter
    lock: RunLock
    console: ConsoleProtocol
    out_dir: Path
    cancel: threading.Event = field(default_factory=threading.Event)

    def run(self, request: RunRequest) -> PipelineRun:
        initial = PipelineRun(request=request)

        match = self.config.policy.resolve_channel(request.branch)
        if request.mode == "forecast" or match.channel == "none":
            return self._drive(initial)

        with hold(self.lock, request.repository, match.channel) as acquired:
            if isinstance(acquired, Err):
                return initial.to(RunState.FAILED, error=acquired.error)
            return self._drive(initial)

    def _drive(self, initial: PipelineRun) -> PipelineRun:
        result = run_state_machine(
            initial_state=initial,
            get_step=lambda r: r.state.value,
            handlers={
                RunState.IDLE.value: self._idle,
                RunState.RESOLVING.value: self._resolving,
                RunState.DISPATCHING.value: self._dispatching,
                RunState.PUBLISHING.value: self._publishing,
            },
            on_transition=self._report_transition,
        )
        if isinstance(result, Err):
            return initial.to(RunState.FAILED, error=result.error)
        return result.value

    def _report_transition(self, before: PipelineRun, after: PipelineRun) -> None:
        self.console.print(f"state: {before.state} -> {after.state}", Style.DIM)

    def _idle(self, run: PipelineRun) -> _Step:
        if self.cancel.is_set():
            return Ok(finish(run.to(RunState.FAILED, error=_cancelled("resolving"))))
        return Ok(advance(run.to(RunState.RESOLVING)))

    def _resolving(self, run: PipelineRun) -> _Step:
        tags = self.source.list_tags()
        if isinstance(tags, Err):
            return Ok(finish(run.to(RunState.FAILED, error=tags.error)))

        history = compute_history(tags.value, prefix=self.config.tag_prefix)
        match = self.config.policy.resolve_channel(run.request.branch)

        commits: list[CommitRecord] = []
        if match.channel != "none":
            since = history.latest_tag_for(match.prerelease_label)
            found = self.source.commits_since(since)
            if isinstance(found, Err):
                return Ok(finish(run.to(RunState.FAILED, error=found.error)))
            commits = found.value

        resolution = resolve(
            commits=commits,
            branch=run.request.branch,
            policy=self.config.policy,
            history=history,
            engine=self.engine,
            initial_version=self.config.initial_version,
        )

        if not resolution.would_release:
            return Ok(finish(run.to(RunState.SKIPPED, resolution=resolution)))
        if run.request.mode == "forecast":
            return Ok(finish(run.to(RunState.FORECAST, resolution=resolution)))

        if self.cancel.is_set():
            return Ok(
                finish(
                    run.to(RunState.FAILED, resolution=resolution, error=_cancelled("building"))
                )
            )

        head = self.source.head_sha()
        if isinstance(head, Err):
            return Ok(finish(run.to(RunState.FAILED, resolution=resolution, error=head.error)))

        return Ok(
            advance(run.to(RunState.DISPATCHING, resolution=resolution, head_sha=head.value))
        )

    def _dispatching(self, run: PipelineRun) -> _Step:
        assert run.resolution is not None

        outcome = dispatch(
            resolution=run.resolution,
            targets=self.config.targets,
            backend=self.backend,
            name=self.config.name,
            out_dir=self.out_dir,
            console=self.console,
            max_workers=self.config.build.max_workers,
            timeout=self.config.build.timeout_seconds,
            cancel=self.cancel,
        )

        if not outcome.succeeded:
            error = _cancelled("publishing") if self.cancel.is_set() else _dispatch_error(outcome)
            return Ok(finish(run.to(RunState.FAILED, dispatch=outcome, error=error)))

        if self.cancel.is_set():
            return Ok(
                finish(run.to(RunState.FAILED, dispatch=outcome, error=_cancelled("publishing")))
            )

        return Ok(advance(run.to(RunState.PUBLISHING, dispatch=outcome)))

    def _publishing(self, run: PipelineRun) -> _Step:
        assert run.resolution is not None
        assert run.dispatch is not None

        published = publish(
            resolution=run.resolution,
            artifacts=run.dispatch.artifacts,
            head_sha=run.head_sha,
            store=self.store,
            changelog=self.changelog,
            console=self.console,
            cancel=self.cancel,
        )
        if isinstance(published, Err):
            return Ok(finish(run.to(RunState.FAILED, error=published.error)))

        outcome = published.value
        if outcome.degraded:
            return Ok(
                finish(
                    run.to(
                        RunState.DEGRADED_DONE,
                        publish=outcome,
                        error=outcome.changelog_error,
                    )
                )
            )
        return Ok(finish(run.to(RunState.DONE, publish=outcome)))
