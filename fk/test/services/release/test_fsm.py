from __future__ import annotations

from dataclasses import dataclass, replace

from fk.core.result import Err, Ok, Result
from fk.services.errors import ReleaseError
from fk.services.release.fsm import FINISH, StepOutcome, advance, run_state_machine


@dataclass(frozen=True, slots=True)
class _State:
    step: str
    counter: int


def test_run_state_machine_advances_and_saves() -> None:
    saved: list[_State] = []

    def save_state(s: _State) -> Result[_State, ReleaseError]:
        saved.append(s)
        return Ok(s)

    def step_a(s: _State) -> Result[StepOutcome[_State], ReleaseError]:
        return Ok(advance(replace(s, step="b", counter=s.counter + 1)))

    def step_b(s: _State) -> Result[StepOutcome[_State], ReleaseError]:
        return Ok(FINISH)

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": step_b},
        save_state=save_state,
    )

    assert result == Ok(_State(step="b", counter=1))
    assert saved == [_State(step="b", counter=1)]


def test_unknown_step_halts() -> None:
    result = run_state_machine(
        initial_state=_State(step="missing", counter=0),
        get_step=lambda s: s.step,
        handlers={},
        save_state=lambda s: Ok(s),
    )

    assert isinstance(result, Err)
    assert result.error.error.kind == "invalid_input"
    assert result.error.state.step == "missing"


def test_handler_error_halts_at_failing_step() -> None:
    def step_a(s: _State) -> Result[StepOutcome[_State], ReleaseError]:
        return Ok(advance(replace(s, step="b")))

    def bad_step(_: _State) -> Result[StepOutcome[_State], ReleaseError]:
        return Err(ReleaseError(kind="build_failed", message="boom"))

    result = run_state_machine(
        initial_state=_State(step="a", counter=0),
        get_step=lambda s: s.step,
        handlers={"a": step_a, "b": bad_step},
        save_state=lambda s: Ok(s),
    )

    assert isinstance(result, Err)
    assert result.error.state.step == "b"
    assert result.error.error.message == "boom"
