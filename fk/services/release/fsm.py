from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from fk.core.result import Err, Ok, Result
from fk.services.errors import ReleaseError

S = TypeVar("S")


@dataclass(frozen=True, slots=True)
class StepAdvance[S]:
    state: S


@dataclass(frozen=True, slots=True)
class StepFinish:
    pass


@dataclass(frozen=True, slots=True)
class Halted[S]:
    """The state the machine was in when a step failed, and why."""

    state: S
    error: ReleaseError


StepOutcome = StepAdvance[S] | StepFinish
StepHandler = Callable[[S], Result[StepOutcome[S], ReleaseError]]
SaveState = Callable[[S], Result[S, ReleaseError]]
GetStep = Callable[[S], str]


FINISH = StepFinish()


def advance[S](state: S) -> StepAdvance[S]:
    return StepAdvance(state=state)


def run_state_machine(
    *,
    initial_state: S,
    get_step: GetStep[S],
    handlers: Mapping[str, StepHandler[S]],
    save_state: SaveState[S],
) -> Result[S, Halted[S]]:
    """Run handlers until one finishes; each step's failure gates the next."""
    current = initial_state

    while True:
        step = get_step(current)
        handler = handlers.get(step)
        if handler is None:
            return Err(
                Halted(
                    state=current,
                    error=ReleaseError(kind="invalid_input", message=f"unknown pipeline step: {step}"),
                )
            )

        outcome = handler(current)
        if isinstance(outcome, Err):
            return Err(Halted(state=current, error=outcome.error))

        if isinstance(outcome.value, StepFinish):
            return Ok(current)

        current = outcome.value.state
        saved = save_state(current)
        if isinstance(saved, Err):
            return Err(Halted(state=current, error=saved.error))
        current = saved.value
