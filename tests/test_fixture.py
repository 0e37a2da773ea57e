import pytest

from dsslab.codec import decode, encode
from dsslab.fixture import Msg, MsgType


def test_basic_encode_decode():
    msg = Msg(type=MsgType.PUT, id=42, name="the answer", paylad=[bytes([7] * 3)] * 2)
    assert decode(Msg, encode(msg)) == msg


def test_default():
    assert decode(Msg, b"") == Msg()
    assert Msg() == Msg(type=0, id=0, name="", paylad=[])


def test_wire_bytes_of_sample():
    msg = Msg(type=MsgType.PUT, id=42, name="the answer", paylad=[bytes([7] * 3)] * 2)
    expected = (
        b"\x08\x01"
        + b"\x10\x2a"
        + b"\x1a\x0athe answer"
        + b"\x22\x03\x07\x07\x07"
        + b"\x22\x03\x07\x07\x07"
    )
    assert encode(msg) == expected


def test_type_enum_reads_valid_values():
    assert Msg(type=3).type_enum() is MsgType.DEL
    assert Msg().type_enum() is MsgType.UNKNOWN


def test_type_enum_falls_back_for_invalid_values():
    msg = decode(Msg, encode(Msg(type=17)))
    assert msg.type == 17
    assert msg.type_enum() is MsgType.UNKNOWN


def test_set_type_stores_int():
    msg = Msg()
    msg.set_type(MsgType.GET)
    assert msg.type == 2
    assert msg.type_enum() is MsgType.GET
    msg.set_type(1)
    assert msg.type_enum() is MsgType.PUT


def test_set_type_rejects_invalid():
    msg = Msg()
    with pytest.raises(ValueError):
        msg.set_type(9)
    assert msg.type == 0


def test_negative_enum_round_trips():
    msg = Msg(type=-1)
    assert decode(Msg, encode(msg)).type == -1


def test_clear_returns_to_default():
    msg = Msg(type=MsgType.DEL, id=5, name="x", paylad=[b"a"])
    msg.clear()
    assert msg == Msg()