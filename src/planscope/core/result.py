"""
Result Type Implementation.

Every fetch from an external collaborator returns an `Ok` or an `Err`
instead of raising, so background tasks can hand soft failures back to the
UI loop as plain values.
"""

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A successful fetch."""
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    """A failed fetch, carrying the error."""
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap on Err: {self.error}")


Result = Union[Ok[T], Err[E]]


def map_ok(result: Result[T, E], func: Callable[[T], U]) -> Result[U, E]:
    """
    Apply a function to the contained value if Ok, otherwise return Err.
    """
    if isinstance(result, Ok):
        return Ok(func(result.value))
    return result  # type: ignore
