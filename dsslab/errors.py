"""Errors raised by RPC calls."""

from __future__ import annotations

from typing import Any


def _quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class RpcError(Exception):
    """Base class of every error an RPC call can fail with.

    Errors compare equal when they are of the same kind and carry equal
    payloads, so a caller can check an outcome against an expected error.
    """

    variant = "Error"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RpcError):
            return NotImplemented
        return type(self) is type(other) and self.args == other.args

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self) -> int:
        return hash((type(self), self.args))

    def _payload(self) -> str | None:
        return None

    def __str__(self) -> str:
        payload = self._payload()
        if payload is None:
            return self.variant
        return f"{self.variant}({payload})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(repr(a) for a in self.args)})"

    @property
    def source(self) -> BaseException | None:
        """The underlying error, if there is one."""
        return None


class _MessageError(RpcError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def _payload(self) -> str:
        return _quote(self.message)


class _WrappedError(RpcError):
    def __init__(self, error: Any) -> None:
        super().__init__(error)
        self.error = error
        self.__cause__ = error

    def _payload(self) -> str:
        return repr(self.error)

    @property
    def source(self) -> BaseException | None:
        return self.error


class UnimplementedError(_MessageError):
    """The requested service or method does not exist."""

    variant = "Unimplemented"


class EncodeFailed(_WrappedError):
    """A request or reply could not be encoded."""

    variant = "Encode"


class DecodeFailed(_WrappedError):
    """A request or reply could not be decoded."""

    variant = "Decode"


class RecvError(RpcError):
    """The reply channel was dropped before a reply arrived."""

    variant = "Recv"

    def _payload(self) -> str:
        return "Canceled"


class RpcTimeout(RpcError):
    """The call got no reply, as if it had timed out."""

    variant = "Timeout"


class StoppedError(RpcError):
    """The network or the server has stopped."""

    variant = "Stopped"


class OtherError(_MessageError):
    """Any other failure, described by a message."""

    variant = "Other"