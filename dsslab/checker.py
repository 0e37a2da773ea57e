"""Checks whether a concurrent history is linearizable with respect to a model."""

from __future__ import annotations

import concurrent.futures
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .bitset import Bitset
from .model import Event, EventKind, Model, Operation


@dataclass
class _Entry:
    kind: EventKind
    value: Any
    id: int
    time: int


class _Node:
    __slots__ = ("value", "match", "id", "prev", "next")

    def __init__(self, value: Any, match: _Node | None, id: int) -> None:
        self.value = value
        self.match = match
        self.id = id
        self.prev: _Node | None = None
        self.next: _Node | None = None


def _make_entries(history: list[Operation]) -> list[_Entry]:
    entries = []
    for op_id, op in enumerate(history):
        entries.append(_Entry(EventKind.CALL, op.input, op_id, op.call))
        entries.append(_Entry(EventKind.RETURN, op.output, op_id, op.finish))
    entries.sort(key=lambda entry: entry.time)
    return entries


def _renumber(events: Iterable[Event]) -> list[Event]:
    numbering: dict[int, int] = {}
    renumbered = []
    for event in events:
        new_id = numbering.setdefault(event.id, len(numbering))
        renumbered.append(Event(event.kind, event.value, new_id))
    return renumbered


def _convert_entries(events: Iterable[Event]) -> list[_Entry]:
    return [_Entry(event.kind, event.value, event.id, -1) for event in events]


def _link(entries: list[_Entry]) -> tuple[_Node, int]:
    """Build a doubly linked list behind a sentinel head; return it and its length."""
    returns: dict[int, _Node] = {}
    head = _Node(None, None, -1)
    first: _Node | None = None
    for entry in reversed(entries):
        if entry.kind is EventKind.CALL:
            node = _Node(entry.value, returns.get(entry.id), entry.id)
        else:
            node = _Node(entry.value, None, entry.id)
            returns[entry.id] = node
        if first is not None:
            first.prev = node
            node.next = first
        first = node
    if first is not None:
        first.prev = head
        head.next = first
    return head, len(entries)


def _lift(entry: _Node) -> None:
    entry.prev.next = entry.next
    entry.next.prev = entry.prev
    match = entry.match
    match.prev.next = match.next
    if match.next is not None:
        match.next.prev = match.prev


def _unlift(entry: _Node) -> None:
    match = entry.match
    match.prev.next = match
    if match.next is not None:
        match.next.prev = match
    entry.prev.next = entry
    entry.next.prev = entry


def _check_single(model: Model, entries: list[_Entry], kill: threading.Event) -> bool:
    head, length = _link(entries)
    linearized = Bitset(length // 2)
    cache: dict[int, list[tuple[Bitset, Any]]] = {}
    calls: list[tuple[_Node, Any]] = []
    state = model.init()

    def cached(bits: Bitset, candidate: Any) -> bool:
        return any(
            bits == seen_bits and model.equal(candidate, seen_state)
            for seen_bits, seen_state in cache.get(bits.hash_value(), ())
        )

    entry = head.next
    while head.next is not None:
        if kill.is_set():
            return False
        if entry.match is not None:
            ok, new_state = model.step(state, entry.value, entry.match.value)
            if ok:
                new_linearized = linearized.copy()
                new_linearized.set(entry.id)
                if not cached(new_linearized, new_state):
                    cache.setdefault(new_linearized.hash_value(), []).append(
                        (new_linearized, new_state)
                    )
                    calls.append((entry, state))
                    state = new_state
                    linearized.set(entry.id)
                    _lift(entry)
                    entry = head.next
                else:
                    entry = entry.next
            else:
                entry = entry.next
        else:
            if not calls:
                return False
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next
    return True


def _run(model: Model, partitions: list[list[_Entry]], timeout: float | None) -> bool:
    if not partitions:
        return True
    wait_for = timeout if timeout else None
    kill = threading.Event()
    ok = True
    with concurrent.futures.ThreadPoolExecutor(max_workers=len(partitions)) as pool:
        pending = {pool.submit(_check_single, model, part, kill) for part in partitions}
        try:
            while pending and ok:
                done, pending = concurrent.futures.wait(
                    pending, timeout=wait_for, return_when=concurrent.futures.FIRST_COMPLETED
                )
                if not done:
                    # timed out: the answer so far may be a false positive
                    break
                for future in done:
                    if not future.result():
                        ok = False
                        break
        finally:
            kill.set()
    return ok


def check_operations(model: Model, history: list[Operation], timeout: float | None = 0) -> bool:
    """Whether the operation history is linearizable under ``model``.

    ``timeout`` is in seconds; 0 or None waits for ever. After a timeout
    the result may be a false positive.
    """
    partitions = [_make_entries(part) for part in model.partition(history)]
    return _run(model, partitions, timeout)


def check_events(model: Model, history: list[Event], timeout: float | None = 0) -> bool:
    """Whether the event history is linearizable under ``model``.

    ``timeout`` is in seconds; 0 or None waits for ever. After a timeout
    the result may be a false positive.
    """
    partitions = [_convert_entries(_renumber(part)) for part in model.partition_event(history)]
    return _run(model, partitions, timeout)