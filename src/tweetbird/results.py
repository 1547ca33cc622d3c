"""Ok/Err result values passed between the executor, paginator and operations.

Expected upstream failures (HTTP errors, GraphQL errors, timeouts) travel as
Err values rather than exceptions. Only programmer errors raise.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """A failed call.

    ``transient`` marks a stale-query-ID signal (404 or a variable
    validation error); only those may trigger a query ID refresh.
    """

    reason: str
    status: int | None = None
    codes: tuple[int, ...] = field(default_factory=tuple)
    transient: bool = False

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err]
