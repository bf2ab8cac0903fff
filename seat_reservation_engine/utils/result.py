"""
Typed outcomes for ledger and confirmation operations.

Expected failures (a seat already taken, a hold that lapsed) are values, not
exceptions. Callers branch on ``isinstance(result, Ok)`` or ``result.is_ok``.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from .exceptions import ReservationEngineError

T = TypeVar("T")
E = TypeVar("E", bound=ReservationEngineError)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying one of the engine's error types."""
    error: E

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err[E]]
