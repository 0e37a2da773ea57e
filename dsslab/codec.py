"""Protocol buffer wire encoding for dataclass messages."""

from __future__ import annotations

import dataclasses
import enum
import functools
import struct
from typing import Any

_U32 = (1 << 32) - 1
_U64 = (1 << 64) - 1
_MAX_TAG = (1 << 29) - 1
_RECURSION_LIMIT = 100
_SPEC_KEY = "dsslab.codec"


class EncodeError(ValueError):
    """A message could not be encoded."""

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description

    def __str__(self) -> str:
        return f"failed to encode Protobuf message: {self.description}"

    def __repr__(self) -> str:
        return f"EncodeError({self.description!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EncodeError):
            return NotImplemented
        return self.description == other.description

    def __hash__(self) -> int:
        return hash((EncodeError, self.description))


class DecodeError(ValueError):
    """A buffer could not be decoded into a message."""

    def __init__(self, description: str, stack: tuple[tuple[str, str], ...] = ()) -> None:
        super().__init__(description)
        self.description = description
        self.stack = list(stack)

    def push(self, message: str, field_name: str) -> None:
        """Record the message and field being decoded when the error occurred."""
        self.stack.append((message, field_name))

    def __str__(self) -> str:
        path = "".join(f"{message}.{name}: " for message, name in self.stack)
        return f"failed to decode Protobuf message: {path}{self.description}"

    def __repr__(self) -> str:
        return f"DecodeError({self.description!r}, stack={self.stack!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DecodeError):
            return NotImplemented
        return self.description == other.description and self.stack == other.stack

    def __hash__(self) -> int:
        return hash((DecodeError, self.description, tuple(self.stack)))


class _WireType(enum.IntEnum):
    VARINT = 0
    SIXTY_FOUR_BIT = 1
    LENGTH_DELIMITED = 2
    START_GROUP = 3
    END_GROUP = 4
    THIRTY_TWO_BIT = 5

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))


class FieldKind(enum.Enum):
    """Protocol buffer scalar types a message field can have."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    BOOL = "bool"
    ENUM = "enum"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    BYTES = "bytes"

    @property
    def wire_type(self) -> _WireType:
        if self in _VARINT_KINDS:
            return _WireType.VARINT
        fmt = _FIXED_FORMATS.get(self)
        if fmt is None:
            return _WireType.LENGTH_DELIMITED
        return _WireType.THIRTY_TWO_BIT if struct.calcsize(fmt) == 4 else _WireType.SIXTY_FOUR_BIT

    @property
    def packable(self) -> bool:
        return self not in (FieldKind.STRING, FieldKind.BYTES)

    def default(self) -> Any:
        if self is FieldKind.STRING:
            return ""
        if self is FieldKind.BYTES:
            return b""
        if self is FieldKind.BOOL:
            return False
        if self in (FieldKind.FLOAT, FieldKind.DOUBLE):
            return 0.0
        return 0


_VARINT_KINDS = frozenset(
    {
        FieldKind.INT32,
        FieldKind.INT64,
        FieldKind.UINT32,
        FieldKind.UINT64,
        FieldKind.SINT32,
        FieldKind.SINT64,
        FieldKind.BOOL,
        FieldKind.ENUM,
    }
)

_FIXED_FORMATS = {
    FieldKind.FIXED32: "<I",
    FieldKind.SFIXED32: "<i",
    FieldKind.FLOAT: "<f",
    FieldKind.FIXED64: "<Q",
    FieldKind.SFIXED64: "<q",
    FieldKind.DOUBLE: "<d",
}

_I32 = (-(1 << 31), (1 << 31) - 1)
_I64 = (-(1 << 63), (1 << 63) - 1)
_INT_RANGES = {
    FieldKind.INT32: _I32,
    FieldKind.INT64: _I64,
    FieldKind.UINT32: (0, _U32),
    FieldKind.UINT64: (0, _U64),
    FieldKind.SINT32: _I32,
    FieldKind.SINT64: _I64,
    FieldKind.ENUM: _I32,
    FieldKind.FIXED32: (0, _U32),
    FieldKind.FIXED64: (0, _U64),
    FieldKind.SFIXED32: _I32,
    FieldKind.SFIXED64: _I64,
}


@dataclasses.dataclass(frozen=True)
class _FieldSpec:
    kind: FieldKind
    tag: int
    repeated: bool
    enum: type | None

    def empty(self) -> Any:
        return [] if self.repeated else self.kind.default()


def field(kind: FieldKind, tag: int, repeated: bool = False, enum: type | None = None) -> Any:
    """Declare a message field of ``kind`` carried under ``tag``."""
    if not isinstance(kind, FieldKind):
        raise TypeError(f"kind must be a FieldKind, not {type(kind).__name__}")
    if isinstance(tag, bool) or not isinstance(tag, int) or not 1 <= tag <= _MAX_TAG:
        raise ValueError(f"invalid tag value: {tag!r}")
    if enum is not None and kind is not FieldKind.ENUM:
        raise ValueError("an enum type can only be given for FieldKind.ENUM fields")
    spec = _FieldSpec(kind, tag, bool(repeated), enum)
    metadata = {_SPEC_KEY: spec}
    if spec.repeated:
        return dataclasses.field(default_factory=list, metadata=metadata)
    return dataclasses.field(default=kind.default(), metadata=metadata)


@functools.lru_cache(maxsize=None)
def _layout(cls: type) -> tuple[tuple[str, _FieldSpec], ...]:
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"{cls.__name__} is not a dataclass")
    entries = []
    for f in dataclasses.fields(cls):
        spec = f.metadata.get(_SPEC_KEY)
        if spec is None:
            raise TypeError(f"field {cls.__name__}.{f.name} is not declared with codec.field")
        entries.append((f.name, spec))
    seen: set[int] = set()
    for name, spec in entries:
        if spec.tag in seen:
            raise TypeError(f"duplicate tag {spec.tag} in {cls.__name__}")
        seen.add(spec.tag)
    return tuple(sorted(entries, key=lambda entry: entry[1].tag))


class Message:
    """Base for dataclasses whose fields are declared with :func:`field`."""

    __slots__ = ()

    def encoded_len(self) -> int:
        """Number of bytes the encoded message takes."""
        return len(encode(self))

    def clear(self) -> None:
        """Reset every field to its default value."""
        for name, spec in _layout(type(self)):
            setattr(self, name, spec.empty())


# Encoding


def _write_varint(out: bytearray, value: int) -> None:
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return


def _write_key(out: bytearray, tag: int, wire: _WireType) -> None:
    _write_varint(out, (tag << 3) | wire)


def _checked_int(kind: FieldKind, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodeError(f"expected an integer for {kind.value}, got {type(value).__name__}")
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise EncodeError(f"{value} is out of range for {kind.value}")
    return int(value)


def _write_scalar(out: bytearray, kind: FieldKind, value: Any) -> None:
    if kind is FieldKind.BOOL:
        if not isinstance(value, bool):
            raise EncodeError(f"expected a bool, got {type(value).__name__}")
        out.append(1 if value else 0)
    elif kind is FieldKind.SINT32:
        n = _checked_int(kind, value)
        _write_varint(out, (n << 1) ^ (n >> 31))
    elif kind is FieldKind.SINT64:
        n = _checked_int(kind, value)
        _write_varint(out, (n << 1) ^ (n >> 63))
    elif kind in _VARINT_KINDS:
        _write_varint(out, _checked_int(kind, value) & _U64)
    elif kind in _FIXED_FORMATS:
        if kind in _INT_RANGES:
            value = _checked_int(kind, value)
        elif isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EncodeError(f"expected a number for {kind.value}, got {type(value).__name__}")
        try:
            out += struct.pack(_FIXED_FORMATS[kind], value)
        except (struct.error, OverflowError) as err:
            raise EncodeError(f"{value!r} cannot be stored as {kind.value}: {err}") from None
    elif kind is FieldKind.STRING:
        if not isinstance(value, str):
            raise EncodeError(f"expected a str, got {type(value).__name__}")
        try:
            payload = value.encode("utf-8")
        except UnicodeEncodeError:
            raise EncodeError("string is not encodable as UTF-8") from None
        _write_varint(out, len(payload))
        out += payload
    else:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise EncodeError(f"expected bytes, got {type(value).__name__}")
        payload = bytes(value)
        _write_varint(out, len(payload))
        out += payload


def _write_field(out: bytearray, spec: _FieldSpec, value: Any) -> None:
    kind = spec.kind
    if spec.repeated:
        if isinstance(value, (str, bytes, bytearray)):
            raise EncodeError("a repeated field needs a sequence of values")
        try:
            items = list(value)
        except TypeError:
            raise EncodeError("a repeated field needs a sequence of values") from None
        if kind.packable:
            if not items:
                return
            body = bytearray()
            for item in items:
                _write_scalar(body, kind, item)
            _write_key(out, spec.tag, _WireType.LENGTH_DELIMITED)
            _write_varint(out, len(body))
            out += body
        else:
            for item in items:
                _write_key(out, spec.tag, kind.wire_type)
                _write_scalar(out, kind, item)
        return
    if value is not None and not isinstance(value, (list, dict)) and value == kind.default():
        return
    _write_key(out, spec.tag, kind.wire_type)
    _write_scalar(out, kind, value)


def encode(message: Message) -> bytes:
    """Encode ``message`` to its wire form."""
    if not isinstance(message, Message):
        raise TypeError(f"{type(message).__name__} is not a Message")
    out = bytearray()
    name_of = type(message).__name__
    for name, spec in _layout(type(message)):
        try:
            _write_field(out, spec, getattr(message, name))
        except EncodeError as err:
            raise EncodeError(f"{name_of}.{name}: {err.description}") from None
    return bytes(out)


# Decoding


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def varint(self) -> int:
        result = 0
        for index in range(10):
            if self._pos >= len(self._data):
                raise DecodeError("invalid varint")
            byte = self._data[self._pos]
            self._pos += 1
            result |= (byte & 0x7F) << (7 * index)
            if byte < 0x80:
                if index == 9 and byte > 1:
                    raise DecodeError("invalid varint")
                return result
        raise DecodeError("invalid varint")

    def take(self, size: int) -> bytes:
        if size > self.remaining:
            raise DecodeError("buffer underflow")
        chunk = self._data[self._pos : self._pos + size]
        self._pos += size
        return chunk

    def length_delimited(self) -> bytes:
        return self.take(self.varint())

    def key(self) -> tuple[int, _WireType]:
        raw = self.varint()
        if raw > _U32:
            raise DecodeError(f"invalid key value: {raw}")
        wire = raw & 0x7
        if wire > _WireType.THIRTY_TWO_BIT:
            raise DecodeError(f"invalid wire type value: {wire}")
        tag = raw >> 3
        if tag < 1:
            raise DecodeError("invalid tag value: 0")
        return tag, _WireType(wire)


def _signed(value: int, bits: int) -> int:
    return value - (1 << bits) if value >= 1 << (bits - 1) else value


def _from_varint(kind: FieldKind, raw: int) -> Any:
    if kind is FieldKind.BOOL:
        return raw != 0
    if kind is FieldKind.UINT64:
        return raw
    if kind is FieldKind.UINT32:
        return raw & _U32
    if kind is FieldKind.INT64:
        return _signed(raw, 64)
    if kind is FieldKind.SINT32:
        z = raw & _U32
        return (z >> 1) ^ -(z & 1)
    if kind is FieldKind.SINT64:
        return (raw >> 1) ^ -(raw & 1)
    return _signed(raw & _U32, 32)


def _read_scalar(reader: _Reader, kind: FieldKind) -> Any:
    if kind in _VARINT_KINDS:
        return _from_varint(kind, reader.varint())
    fmt = _FIXED_FORMATS.get(kind)
    if fmt is not None:
        return struct.unpack(fmt, reader.take(struct.calcsize(fmt)))[0]
    data = reader.length_delimited()
    if kind is FieldKind.STRING:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise DecodeError("invalid string value: data is not UTF-8 encoded") from None
    return data


def _check_wire(actual: _WireType, expected: _WireType) -> None:
    if actual != expected:
        raise DecodeError(f"invalid wire type: {actual.label} (expected {expected.label})")


def _skip(reader: _Reader, tag: int, wire: _WireType, depth: int = 0) -> None:
    if wire is _WireType.VARINT:
        reader.varint()
    elif wire is _WireType.SIXTY_FOUR_BIT:
        reader.take(8)
    elif wire is _WireType.THIRTY_TWO_BIT:
        reader.take(4)
    elif wire is _WireType.LENGTH_DELIMITED:
        reader.length_delimited()
    elif wire is _WireType.START_GROUP:
        if depth >= _RECURSION_LIMIT:
            raise DecodeError("recursion limit reached")
        while True:
            inner_tag, inner_wire = reader.key()
            if inner_wire is _WireType.END_GROUP:
                if inner_tag != tag:
                    raise DecodeError("unexpected end group tag")
                return
            _skip(reader, inner_tag, inner_wire, depth + 1)
    else:
        raise DecodeError("unexpected end group tag")


def _merge_field(reader: _Reader, spec: _FieldSpec, wire: _WireType, current: Any) -> Any:
    kind = spec.kind
    if spec.repeated:
        if kind.packable and wire is _WireType.LENGTH_DELIMITED:
            packed = _Reader(reader.length_delimited())
            while packed.remaining:
                current.append(_read_scalar(packed, kind))
            return current
        _check_wire(wire, kind.wire_type)
        current.append(_read_scalar(reader, kind))
        return current
    _check_wire(wire, kind.wire_type)
    return _read_scalar(reader, kind)


def decode(message_type: type, data: bytes) -> Any:
    """Decode ``data`` into a new instance of ``message_type``."""
    if not (isinstance(message_type, type) and issubclass(message_type, Message)):
        raise TypeError(f"{message_type!r} is not a Message type")
    layout = _layout(message_type)
    by_tag = {spec.tag: (name, spec) for name, spec in layout}
    values = {name: spec.empty() for name, spec in layout}
    reader = _Reader(data)
    while reader.remaining:
        tag, wire = reader.key()
        entry = by_tag.get(tag)
        if entry is None:
            _skip(reader, tag, wire)
            continue
        name, spec = entry
        try:
            values[name] = _merge_field(reader, spec, wire, values[name])
        except DecodeError as err:
            err.push(message_type.__name__, name)
            raise
    return message_type(**values)