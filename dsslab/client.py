"""The client end of an RPC connection and the requests it sends."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from . import codec
from .errors import DecodeFailed, EncodeFailed, RecvError, RpcError


class RpcHooks:
    """Callbacks run around the dispatch of every request of a client.

    The default implementations let everything through.
    """

    def before_dispatch(self, fq_name: str, request: bytes) -> None:
        """Called before dispatch; raise an RpcError to reject the request."""

    def after_dispatch(self, fq_name: str, response: bytes | RpcError) -> bytes:
        """Called with the reply bytes or the error dispatch failed with.

        Returns the reply to deliver, or raises the error to deliver.
        """
        if isinstance(response, BaseException):
            raise response
        return response


class _HookSlot:
    __slots__ = ("hooks",)

    def __init__(self) -> None:
        self.hooks: RpcHooks | None = None


class Rpc:
    """One request in flight, as seen by the network."""

    __slots__ = ("client_name", "fq_name", "request", "_reply", "_slot")

    def __init__(
        self,
        client_name: str,
        fq_name: str,
        request: bytes,
        reply: asyncio.Future,
        slot: _HookSlot,
    ) -> None:
        self.client_name = client_name
        self.fq_name = fq_name
        self.request = request
        self._reply: asyncio.Future | None = reply
        self._slot = slot

    @property
    def hooks(self) -> RpcHooks | None:
        """The hooks currently set on the client that sent this request."""
        return self._slot.hooks

    def take_reply(self) -> asyncio.Future | None:
        """Take the future the reply goes to; later calls give None.

        Set its result to the reply bytes, set an RpcError as its exception,
        or cancel it to signal that no reply will ever come.
        """
        reply, self._reply = self._reply, None
        return reply

    def __repr__(self) -> str:
        return f"Rpc(client_name={self.client_name!r}, fq_name={self.fq_name!r})"


_background: set[asyncio.Task] = set()


def _spawn_on_running_loop(coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
    task = asyncio.get_running_loop().create_task(coro)
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


class Client:
    """A named end point that sends encoded requests into a network.

    ``sender`` accepts each :class:`Rpc`; it raises StoppedError when the
    network no longer takes requests. ``worker`` runs spawned coroutines;
    by default they become tasks on the running event loop.
    """

    def __init__(
        self,
        name: str,
        sender: Callable[[Rpc], None],
        worker: Callable[[Coroutine[Any, Any, Any]], Any] | None = None,
    ) -> None:
        self.name = name
        self._sender = sender
        self._worker = worker or _spawn_on_running_loop
        self._slot = _HookSlot()

    @property
    def hooks(self) -> RpcHooks | None:
        """The hooks currently set, if any."""
        return self._slot.hooks

    async def call(self, fq_name: str, request: codec.Message, reply_type: type) -> Any:
        """Send ``request`` to ``fq_name`` and decode the reply as ``reply_type``."""
        try:
            payload = codec.encode(request)
        except codec.EncodeError as err:
            raise EncodeFailed(err) from err

        reply = asyncio.get_running_loop().create_future()
        self._sender(Rpc(self.name, fq_name, payload, reply, self._slot))

        try:
            await asyncio.wait((reply,))
        except asyncio.CancelledError:
            reply.cancel()
            raise
        if reply.cancelled():
            raise RecvError()
        data = reply.result()
        try:
            return codec.decode(reply_type, data)
        except codec.DecodeError as err:
            raise DecodeFailed(err) from err

    def set_hooks(self, hooks: RpcHooks) -> None:
        """Install ``hooks``; requests already in flight see them too."""
        self._slot.hooks = hooks

    def clear_hooks(self) -> None:
        """Remove any installed hooks."""
        self._slot.hooks = None

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run ``coro`` on this client's worker."""
        return self._worker(coro)