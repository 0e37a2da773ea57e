import asyncio

import pytest

from dsslab.codec import decode, encode
from dsslab.echo import Echo, EchoService, main, run_echo
from dsslab.errors import EncodeFailed, RpcTimeout
from dsslab.network import Network
from dsslab.server import ServerBuilder
from dsslab.service import add_service


def test_run_echo_default():
    assert run_echo() == Echo(x=777)


@pytest.mark.parametrize("x", [0, 777, -5, (1 << 63) - 1, -(1 << 63)])
def test_run_echo_round_trip(x):
    assert run_echo(x) == Echo(x=x)


def test_run_echo_out_of_range():
    with pytest.raises(EncodeFailed):
        run_echo(1 << 63)


def test_ping_returns_request():
    request = Echo(x=12)
    assert asyncio.run(EchoService().ping(request)) is request


def test_echo_wire_round_trip():
    message = Echo(x=777)
    assert decode(Echo, encode(message)) == message
    assert encode(Echo()) == b""


def test_main_prints_reply(capsys):
    assert main(["42"]) == 0
    assert capsys.readouterr().out.strip() == repr(Echo(x=42))


def test_main_default(capsys):
    assert main([]) == 0
    assert capsys.readouterr().out.strip() == repr(Echo(x=777))


@pytest.mark.asyncio
async def test_echo_disabled_client_times_out():
    net = Network()
    builder = ServerBuilder("echo_server")
    add_service(EchoService(), builder)
    net.add_server(builder.build())
    client = EchoService.Client(net.create_client("client"))
    net.connect("client", "echo_server")
    with pytest.raises(RpcTimeout):
        await client.ping(Echo(x=1))
    net.enable("client", True)
    assert await client.ping(Echo(x=1)) == Echo(x=1)
    assert net.count("echo_server") == 1
    net.close()