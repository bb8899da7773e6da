from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from ship.core.result import Err, Ok, Result
from ship.release.errors import ReleaseError

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    session: S


@dataclass(frozen=True, slots=True)
class StepFinish[S]:
    session: S


StepOutcome = StepAdvance[S] | StepFinish[S]
StepHandler = Callable[[S], Result[StepOutcome[S], ReleaseError]]
OnTransition = Callable[[S, S], None]
GetStep = Callable[[S], str]

# Every pipeline run visits at most a handful of states; more means a handler loops.
_MAX_STEPS = 64


def advance[S](session: S) -> StepAdvance[S]:
    return StepAdvance(session=session)


def finish[S](session: S) -> StepFinish[S]:
    return StepFinish(session=session)


def run_state_machine(
    *,
    initial_state: S,
    get_step: GetStep[S],
    handlers: Mapping[str, StepHandler[S]],
    on_transition: OnTransition[S] | None = None,
) -> Result[S, ReleaseError]:
    """Drive ``initial_state`` through ``handlers`` until one finishes.

    Returns the final session. A step without a handler or a handler error
    stops the machine with that error.
    """
    current = initial_state

    for _ in range(_MAX_STEPS):
        step = get_step(current)
        handler = handlers.get(step)
        if handler is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"no handler for pipeline state: {step}",
                )
            )

        outcome = handler(current)
        if isinstance(outcome, Err):
            return outcome

        nxt = outcome.value.session
        if on_transition is not None and get_step(nxt) != step:
            on_transition(current, nxt)

        if isinstance(outcome.value, StepFinish):
            return Ok(nxt)
        current = nxt

    return Err(
        ReleaseError(
            kind="invalid_input",
            message=f"pipeline did not terminate after {_MAX_STEPS} steps",
        )
    )
