"""RPC servers that route ``service.method`` names to registered handlers."""

from __future__ import annotations

import abc
import itertools
import types
from collections.abc import Awaitable, Callable, Mapping

from .errors import OtherError, UnimplementedError

Handler = Callable[[bytes], Awaitable[bytes]]
"""Takes an encoded request; its awaitable gives the encoded reply or raises RpcError."""

_server_ids = itertools.count()


class HandlerFactory(abc.ABC):
    """Produces the handler for one method of a registered service."""

    @abc.abstractmethod
    def handler(self, method_name: str) -> Handler:
        """Return the handler that serves ``method_name``.

        Unknown methods get a handler that raises UnimplementedError.
        """


class ServerBuilder:
    """Collects services under unique names and builds a :class:`Server`."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._services: dict[str, HandlerFactory] = {}

    @property
    def services(self) -> Mapping[str, HandlerFactory]:
        """Registered services by name (read-only view)."""
        return types.MappingProxyType(self._services)

    def add_service(self, service_name: str, factory: HandlerFactory) -> None:
        """Register ``factory`` under ``service_name``; names must be unique."""
        if service_name in self._services:
            raise OtherError(f"{service_name} has already registered")
        self._services[service_name] = factory

    def build(self) -> Server:
        """Create a server with a fresh id holding the registered services."""
        return Server(self.name, dict(self._services))


class Server:
    """A named set of services with a count of the requests it dispatched."""

    def __init__(self, name: str, services: Mapping[str, HandlerFactory]) -> None:
        self._name = name
        self._services = dict(services)
        self._id = next(_server_ids)
        self._count = 0

    @property
    def id(self) -> int:
        """Unique id telling apart servers built with the same name."""
        return self._id

    def count(self) -> int:
        """Number of requests dispatched so far, failed ones included."""
        return self._count

    def name(self) -> str:
        """The server's name."""
        return self._name

    def dispatch(self, fq_name: str, request: bytes) -> Awaitable[bytes]:
        """Route ``request`` to ``fq_name`` (``service.method``).

        The request is counted at once; the returned awaitable gives the
        encoded reply or raises an RpcError.
        """
        self._count += 1
        return self._dispatch(fq_name, request)

    async def _dispatch(self, fq_name: str, request: bytes) -> bytes:
        parts = fq_name.split(".")
        if len(parts) < 2:
            raise UnimplementedError(f"unknown {fq_name}")
        service_name, method_name = parts[0], parts[1]
        factory = self._services.get(service_name)
        if factory is None:
            raise UnimplementedError(f"unknown {fq_name}")
        handle = factory.handler(method_name)
        return await handle(request)

    def __repr__(self) -> str:
        return f"Server(name={self._name!r}, id={self._id})"