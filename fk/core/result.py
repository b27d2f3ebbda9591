"""``Ok``/``Err`` results for failures that are part of normal operation.

A malformed tag, a conflicting merge or a rejected publish is data, not an
exception: services return ``Result[T, E]`` and callers branch on it with
``match`` or ``isinstance``.

    match validate(raw_tag, "1.2.3"):
        case Ok(tag):
            ...
        case Err(rejection):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NoReturn, TypeGuard


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def unwrap(self) -> T:
        return self.value

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def unwrap(self) -> NoReturn:
        """Raise ``ValueError``; only for callers that already ruled out failure."""
        raise ValueError(f"called unwrap on Err: {self.error}")

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    return isinstance(result, Err)
