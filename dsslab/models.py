"""A key/value store model and a parser for its operation logs."""

from __future__ import annotations

import dataclasses
import enum
import re
from collections.abc import Iterable

from .model import Event, EventKind, Model, Operation


class KvOp(enum.Enum):
    """Operations the key/value store supports."""

    GET = "get"
    PUT = "put"
    APPEND = "append"


@dataclasses.dataclass(frozen=True)
class KvInput:
    """The request of one key/value operation."""

    op: KvOp
    key: str
    value: str = ""


@dataclasses.dataclass(frozen=True)
class KvOutput:
    """The response of one key/value operation."""

    value: str = ""


class KvModel(Model):
    """Sequential specification of a single key's value.

    Histories are partitioned by key, so the state is one string.
    """

    def partition(self, history: list[Operation]) -> list[list[Operation]]:
        """Group operations by the key they touch."""
        by_key: dict[str, list[Operation]] = {}
        for op in history:
            by_key.setdefault(op.input.key, []).append(op)
        return list(by_key.values())

    def partition_event(self, history: list[Event]) -> list[list[Event]]:
        """Group events by key; a return goes with the key of its call."""
        by_key: dict[str, list[Event]] = {}
        key_of: dict[int, str] = {}
        for event in history:
            if event.kind is EventKind.CALL:
                key = event.value.key
                key_of[event.id] = key
            else:
                try:
                    key = key_of[event.id]
                except KeyError:
                    raise ValueError(f"return event {event.id} has no matching call") from None
            by_key.setdefault(key, []).append(event)
        return list(by_key.values())

    def init(self) -> str:
        """A key starts out holding the empty string."""
        return ""

    def step(self, state: str, request: KvInput, response: KvOutput) -> tuple[bool, str]:
        """Apply ``request`` to ``state``; a get must return the current value."""
        if request.op is KvOp.GET:
            return response.value == state, state
        if request.op is KvOp.PUT:
            return True, request.value
        return True, state + request.value


_INVOKE_GET = re.compile(r'\{:process (\d+), :type :invoke, :f :get, :key "(.*)", :value nil\}')
_INVOKE_PUT = re.compile(r'\{:process (\d+), :type :invoke, :f :put, :key "(.*)", :value "(.*)"\}')
_INVOKE_APPEND = re.compile(
    r'\{:process (\d+), :type :invoke, :f :append, :key "(.*)", :value "(.*)"\}'
)
_RETURN_GET = re.compile(r'\{:process (\d+), :type :ok, :f :get, :key ".*", :value "(.*)"\}')
_RETURN_PUT = re.compile(r'\{:process (\d+), :type :ok, :f :put, :key ".*", :value ".*"\}')
_RETURN_APPEND = re.compile(r'\{:process (\d+), :type :ok, :f :append, :key ".*", :value ".*"\}')


def parse_kv_log(lines: Iterable[str]) -> list[Event]:
    """Parse a key/value operation log into call and return events.

    Calls that never returned get an empty return event at the end.
    Raises ValueError on a line that is not a known log entry.
    """
    events: list[Event] = []
    pending: dict[int, int] = {}
    next_id = 0

    def call(process: str, request: KvInput) -> None:
        nonlocal next_id
        events.append(Event(EventKind.CALL, request, next_id))
        pending[int(process)] = next_id
        next_id += 1

    def finish(process: str, value: str) -> None:
        try:
            op_id = pending.pop(int(process))
        except KeyError:
            raise ValueError(f"process {process} returned without a call") from None
        events.append(Event(EventKind.RETURN, KvOutput(value), op_id))

    for number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue
        if match := _INVOKE_GET.search(line):
            call(match[1], KvInput(KvOp.GET, match[2], ""))
        elif match := _INVOKE_PUT.search(line):
            call(match[1], KvInput(KvOp.PUT, match[2], match[3]))
        elif match := _INVOKE_APPEND.search(line):
            call(match[1], KvInput(KvOp.APPEND, match[2], match[3]))
        elif match := _RETURN_GET.search(line):
            finish(match[1], match[2])
        elif match := _RETURN_PUT.search(line):
            finish(match[1], "")
        elif match := _RETURN_APPEND.search(line):
            finish(match[1], "")
        else:
            raise ValueError(f"line {number}: unrecognised log entry: {line!r}")

    for op_id in pending.values():
        events.append(Event(EventKind.RETURN, KvOutput(""), op_id))
    return events