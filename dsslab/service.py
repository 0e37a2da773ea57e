"""Declarative RPC services: typed methods, servers and clients."""

from __future__ import annotations

import dataclasses
import inspect
from collections.abc import Callable, Coroutine
from typing import Any, ClassVar

from . import codec
from .client import Client
from .errors import DecodeFailed, EncodeFailed, UnimplementedError
from .server import Handler, HandlerFactory, ServerBuilder

_SPEC_ATTR = "__rpc_spec__"


@dataclasses.dataclass(frozen=True)
class _RpcSpec:
    request_type: type
    reply_type: type


def rpc(request_type: type, reply_type: type) -> Callable[[Callable], Callable]:
    """Mark an async method of a :class:`Service` as an RPC method."""

    def mark(method: Callable) -> Callable:
        if not inspect.iscoroutinefunction(method):
            raise TypeError(f"rpc method {method.__name__} must be an async function")
        setattr(method, _SPEC_ATTR, _RpcSpec(request_type, reply_type))
        return method

    return mark


class ServiceClient:
    """Typed client of one service; each RPC method is an async method."""

    service_name: ClassVar[str] = ""

    def __init__(self, client: Client) -> None:
        self.client = client

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Run ``coro`` on the underlying client's worker."""
        return self.client.spawn(coro)


def _client_method(method_name: str, fq_name: str, spec: _RpcSpec) -> Callable:
    async def call(self: ServiceClient, request: codec.Message) -> Any:
        return await self.client.call(fq_name, request, spec.reply_type)

    call.__name__ = method_name
    call.__qualname__ = method_name
    call.__doc__ = f"Call {fq_name}."
    return call


class Service:
    """Base of RPC services.

    Subclasses name the service with ``class Junk(Service, name="junk")``
    (by default the lower-cased class name, or the name of a service base)
    and mark their async methods with :func:`rpc`. Each subclass gets a
    ``Client`` attribute: a :class:`ServiceClient` with one method per RPC.
    """

    service_name: ClassVar[str | None] = None
    rpc_methods: ClassVar[dict[str, _RpcSpec]] = {}
    Client: ClassVar[type[ServiceClient]]

    def __init_subclass__(cls, name: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if name is not None:
            cls.service_name = name
        elif cls.service_name is None:
            cls.service_name = cls.__name__.lower()

        methods: dict[str, _RpcSpec] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                spec = getattr(value, _SPEC_ATTR, None)
                if isinstance(spec, _RpcSpec):
                    methods[attr] = spec
        reserved = set(dir(ServiceClient))
        clashes = sorted(set(methods) & reserved)
        if clashes:
            raise TypeError(f"rpc method names clash with the client: {', '.join(clashes)}")
        cls.rpc_methods = methods

        namespace: dict[str, Any] = {
            "service_name": cls.service_name,
            "__module__": cls.__module__,
            "__doc__": f"Client of the {cls.service_name} service.",
        }
        for method_name, spec in methods.items():
            fq_name = f"{cls.service_name}.{method_name}"
            namespace[method_name] = _client_method(method_name, fq_name, spec)
        cls.Client = type(f"{cls.__name__}Client", (ServiceClient,), namespace)


class _ServiceHandlerFactory(HandlerFactory):
    def __init__(self, service: Service) -> None:
        self._service = service

    def handler(self, method_name: str) -> Handler:
        service = self._service
        spec = type(service).rpc_methods.get(method_name)
        if spec is None:
            service_name = type(service).service_name

            async def unknown(request: bytes) -> bytes:
                raise UnimplementedError(f"unknown {method_name} in {service_name}")

            return unknown

        method = getattr(service, method_name)

        async def handle(request: bytes) -> bytes:
            try:
                args = codec.decode(spec.request_type, request)
            except codec.DecodeError as err:
                raise DecodeFailed(err) from err
            reply = await method(args)
            try:
                return codec.encode(reply)
            except codec.EncodeError as err:
                raise EncodeFailed(err) from err

        return handle


def add_service(service: Service, builder: ServerBuilder) -> None:
    """Register ``service`` with ``builder`` under its service name."""
    if not isinstance(service, Service):
        raise TypeError(f"{type(service).__name__} is not a Service")
    builder.add_service(type(service).service_name, _ServiceHandlerFactory(service))