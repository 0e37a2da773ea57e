"""Histories of operations and the models they are checked against."""

from __future__ import annotations

import abc
import dataclasses
import enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class EventKind(enum.Enum):
    """Whether an event is the call or the return of an operation."""

    CALL = "call"
    RETURN = "return"


@dataclasses.dataclass
class Operation:
    """One operation with its input, output, invocation and response times."""

    input: Any
    call: int
    output: Any
    finish: int


@dataclasses.dataclass
class Event(Generic[T]):
    """A call or return; call events carry the input, return events the output.

    Events of one operation share an ``id``.
    """

    kind: EventKind
    value: T
    id: int


class Model(abc.ABC):
    """The sequential specification a history is checked against."""

    def partition(self, history: list[Operation]) -> list[list[Operation]]:
        """Split a history so it is linearizable iff every part is.

        By default the history is not split.
        """
        return [list(history)]

    def partition_event(self, history: list[Event]) -> list[list[Event]]:
        """Split an event history so it is linearizable iff every part is.

        By default the history is not split.
        """
        return [list(history)]

    @abc.abstractmethod
    def init(self) -> Any:
        """The initial state of the system."""

    @abc.abstractmethod
    def step(self, state: Any, request: Any, response: Any) -> tuple[bool, Any]:
        """Whether ``request`` may give ``response`` from ``state``, and the new state.

        Must not change ``state``.
        """

    def equal(self, state1: Any, state2: Any) -> bool:
        """Whether two states are the same; ``==`` by default."""
        return state1 == state2