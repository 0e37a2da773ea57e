"""A tiny echo service that answers every ping with its own request."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses

from .codec import FieldKind, Message, field
from .network import Network
from .server import ServerBuilder
from .service import Service, add_service, rpc


@dataclasses.dataclass
class Echo(Message):
    """A message carrying one number."""

    x: int = field(FieldKind.INT64, 1)


class EchoService(Service, name="echo"):
    """Replies to each ping with the request it got."""

    @rpc(Echo, Echo)
    async def ping(self, request: Echo) -> Echo:
        """Return ``request`` unchanged."""
        return request


async def _echo(x: int) -> Echo:
    net = Network()
    try:
        server_name = "echo_server"
        builder = ServerBuilder(server_name)
        add_service(EchoService(), builder)
        net.add_server(builder.build())

        client_name = "client"
        client = EchoService.Client(net.create_client(client_name))
        net.enable(client_name, True)
        net.connect(client_name, server_name)
        return await client.ping(Echo(x=x))
    finally:
        net.close()


def run_echo(x: int = 777) -> Echo:
    """Send ``Echo(x)`` through a fresh network to an echo server; return the reply."""
    return asyncio.run(_echo(x))


def main(argv: list[str] | None = None) -> int:
    """Ping an echo server once and print the reply."""
    parser = argparse.ArgumentParser(description="Ping an echo server over a simulated network.")
    parser.add_argument("x", nargs="?", type=int, default=777, help="number to send")
    args = parser.parse_args(argv)
    reply = run_echo(args.x)
    if reply != Echo(x=args.x):
        raise SystemExit(f"unexpected reply: {reply}")
    print(reply)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())