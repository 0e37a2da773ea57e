"""A simulated network that carries RPCs between named clients and servers.

Clients can be enabled or disabled, connected to one server each, and the
network can be made unreliable (dropped requests and replies, short delays)
or set to reorder replies with long delays.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Coroutine
from typing import Any

from .client import Client, Rpc
from .errors import RpcError, RpcTimeout, StoppedError
from .server import Server

logger = logging.getLogger(__name__)

_DEAD_CHECK_INTERVAL = 0.1


class Network:
    """Routes RPCs from clients to servers, simulating an imperfect network.

    With ``autostart`` (the default) every RPC is processed as soon as it is
    sent. Without it, RPCs wait until :meth:`start` is called or are taken
    one by one with :meth:`next_rpc`. ``rng`` supplies the randomness behind
    delays and drops.
    """

    def __init__(self, *, autostart: bool = True, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._enabled: dict[str, bool] = {}
        self._servers: dict[str, Server | None] = {}
        self._connections: dict[str, str | None] = {}
        self._total = 0
        self._incoming: asyncio.Queue[Rpc | None] = asyncio.Queue()
        self._started = False
        self._closed = False
        self._in_flight: set[asyncio.Task] = set()
        self._spawned: set[asyncio.Task] = set()
        if autostart:
            self.start()

    # Lifecycle

    def start(self) -> None:
        """Process every queued RPC and every RPC sent from now on."""
        if self._started:
            return
        self._started = True
        while not self._incoming.empty():
            rpc = self._incoming.get_nowait()
            if rpc is not None:
                self._serve_in_background(rpc)

    async def next_rpc(self) -> Rpc:
        """Wait for the next RPC sent into a network that was not started."""
        if self._started:
            raise RuntimeError("the network is started; RPCs are not queued")
        if self._closed and self._incoming.empty():
            raise StoppedError()
        rpc = await self._incoming.get()
        if rpc is None:
            raise StoppedError()
        return rpc

    def close(self) -> None:
        """Stop taking RPCs.

        Later calls fail with StoppedError. Queued and in-flight RPCs get no
        reply; their callers see RecvError.
        """
        if self._closed:
            return
        self._closed = True
        while not self._incoming.empty():
            rpc = self._incoming.get_nowait()
            if rpc is not None:
                reply = rpc.take_reply()
                if reply is not None and not reply.done():
                    reply.cancel()
        self._incoming.put_nowait(None)
        for task in list(self._in_flight):
            task.cancel()

    # Topology

    def add_server(self, server: Server) -> None:
        """Add ``server`` under its name, replacing any server of that name."""
        self._servers[server.name()] = server

    def delete_server(self, name: str) -> None:
        """Kill the server called ``name``; RPCs stuck in it fail with StoppedError."""
        if name in self._servers:
            self._servers[name] = None

    def create_client(self, name: str) -> Client:
        """Create a disabled, unconnected client end point called ``name``."""
        self._enabled[name] = False
        self._connections[name] = None
        return Client(name, self._send, self.spawn)

    def connect(self, client_name: str, server_name: str) -> None:
        """Connect a client to a server."""
        self._connections[client_name] = server_name

    def enable(self, client_name: str, enabled: bool) -> None:
        """Enable or disable a client."""
        logger.debug("client %s is %s", client_name, "enabled" if enabled else "disabled")
        self._enabled[client_name] = enabled

    def set_reliable(self, yes: bool) -> None:
        """Turn dropped and delayed requests and replies off (True) or on (False)."""
        self._reliable = yes

    def set_long_reordering(self, yes: bool) -> None:
        """Sometimes delay replies a long time, so they arrive out of order."""
        self._long_reordering = yes

    def set_long_delays(self, yes: bool) -> None:
        """Pause a long time before timing out RPCs on a disabled connection."""
        self._long_delays = yes

    # Counters

    def count(self, server_name: str) -> int:
        """Number of RPCs the server called ``server_name`` has dispatched."""
        server = self._servers.get(server_name)
        if server is None:
            raise KeyError(f"no live server named {server_name!r}")
        return server.count()

    def total_count(self) -> int:
        """Number of RPCs the network has processed."""
        return self._total

    # Tasks

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run ``coro`` as a task on the running event loop."""
        task = asyncio.get_running_loop().create_task(coro)
        self._spawned.add(task)
        task.add_done_callback(self._spawned.discard)
        return task

    # Processing

    def _send(self, rpc: Rpc) -> None:
        if self._closed:
            raise StoppedError()
        if self._started:
            self._serve_in_background(rpc)
        else:
            self._incoming.put_nowait(rpc)

    def _serve_in_background(self, rpc: Rpc) -> None:
        task = asyncio.get_running_loop().create_task(self._serve(rpc))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _serve(self, rpc: Rpc) -> None:
        reply = rpc.take_reply()
        if reply is None:
            return
        try:
            data = await self._process_rpc(rpc)
        except asyncio.CancelledError:
            if not reply.done():
                reply.cancel()
            raise
        except Exception as err:
            if not reply.done():
                reply.set_exception(err)
        else:
            if not reply.done():
                reply.set_result(data)

    def _end_info(self, client_name: str) -> tuple[bool, Server | None]:
        server = None
        server_name = self._connections.get(client_name)
        if server_name is not None:
            server = self._servers.get(server_name)
        return self._enabled[client_name], server

    def _is_server_dead(self, client_name: str, server_name: str, server_id: int) -> bool:
        if not self._enabled.get(client_name, False):
            return True
        server = self._servers.get(server_name)
        return server is None or server.id != server_id

    def _random_u64(self) -> int:
        return self._rng.getrandbits(64)

    async def _process_rpc(self, rpc: Rpc) -> bytes:
        self._total += 1
        enabled, server = self._end_info(rpc.client_name)
        reliable = self._reliable
        long_reordering = self._long_reordering
        logger.debug("%r process with enabled=%s server=%r", rpc, enabled, server)

        if enabled and server is not None:
            short_delay = None if reliable else self._random_u64() % 27
            if not reliable and self._random_u64() % 1000 < 100:
                # drop the request, return as if timeout
                await asyncio.sleep(short_delay / 1000)
                raise RpcTimeout()
            drop_reply = not reliable and self._random_u64() % 1000 < 100
            reorder = None
            if long_reordering and self._rng.randrange(900) < 600:
                upper_bound = 1 + self._rng.randrange(2000)
                reorder = 200 + self._rng.randrange(upper_bound)
            return await self._dispatch(rpc, server, short_delay, drop_reply, reorder)

        # simulate no reply and eventual timeout
        if self._long_delays:
            ms = self._random_u64() % 7000
        else:
            ms = self._random_u64() % 100
        logger.debug("%r delay %dms then timeout", rpc, ms)
        await asyncio.sleep(ms / 1000)
        raise RpcTimeout()

    async def _dispatch(
        self,
        rpc: Rpc,
        server: Server,
        delay: int | None,
        drop_reply: bool,
        reorder: int | None,
    ) -> bytes:
        if delay is not None:
            await asyncio.sleep(delay / 1000)

        hooks = rpc.hooks
        if hooks is not None:
            hooks.before_dispatch(rpc.fq_name, rpc.request)

        response: bytes | RpcError
        try:
            response = await self._dispatch_unless_dead(rpc, server)
        except RpcError as err:
            response = err

        hooks = rpc.hooks
        if hooks is not None:
            data = hooks.after_dispatch(rpc.fq_name, response)
        elif isinstance(response, RpcError):
            raise response
        else:
            data = response

        if self._is_server_dead(rpc.client_name, server.name(), server.id):
            raise StoppedError()
        if drop_reply:
            raise RpcTimeout()
        if reorder is not None:
            logger.debug("%r next long reordering %dms", rpc, reorder)
            await asyncio.sleep(reorder / 1000)
        return data

    async def _dispatch_unless_dead(self, rpc: Rpc, server: Server) -> bytes:
        work = asyncio.ensure_future(server.dispatch(rpc.fq_name, rpc.request))
        watch = asyncio.ensure_future(self._server_dead(rpc.client_name, server.name(), server.id))
        try:
            done, _ = await asyncio.wait((work, watch), return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (work, watch):
                if not task.done():
                    task.cancel()
        if work in done:
            return work.result()
        raise StoppedError()

    async def _server_dead(self, client_name: str, server_name: str, server_id: int) -> None:
        while True:
            await asyncio.sleep(_DEAD_CHECK_INTERVAL)
            if self._is_server_dead(client_name, server_name, server_id):
                logger.debug("%r is dead", server_name)
                return