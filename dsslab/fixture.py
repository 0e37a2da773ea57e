"""A small sample message used to exercise the codec."""

from __future__ import annotations

import dataclasses
import enum

from .codec import FieldKind, Message, field


class MsgType(enum.IntEnum):
    """Kind of operation a :class:`Msg` carries."""

    UNKNOWN = 0
    PUT = 1
    GET = 2
    DEL = 3


@dataclasses.dataclass
class Msg(Message):
    """A simple protobuf message."""

    type: int = field(FieldKind.ENUM, 1, enum=MsgType)
    id: int = field(FieldKind.UINT64, 2)
    name: str = field(FieldKind.STRING, 3)
    paylad: list[bytes] = field(FieldKind.BYTES, 4, repeated=True)

    def type_enum(self) -> MsgType:
        """The ``type`` field as a MsgType, or UNKNOWN if it holds an invalid value."""
        try:
            return MsgType(self.type)
        except ValueError:
            return MsgType.UNKNOWN

    def set_type(self, value: MsgType | int) -> None:
        """Set ``type`` to a valid MsgType value."""
        self.type = int(MsgType(value))