"""A fixed-size set of bit positions packed into 64-bit words."""

from __future__ import annotations

_WORD_BITS = 64
_WORD_MASK = (1 << _WORD_BITS) - 1


class Bitset:
    """A fixed number of bits, all clear at first."""

    __slots__ = ("_words",)

    def __init__(self, bits: int) -> None:
        if bits < 0:
            raise ValueError(f"a bitset cannot hold {bits} bits")
        self._words = [0] * -(-bits // _WORD_BITS)

    @staticmethod
    def _index(pos: int) -> tuple[int, int]:
        if pos < 0:
            raise IndexError(f"bit position {pos} is negative")
        return divmod(pos, _WORD_BITS)

    @property
    def words(self) -> tuple[int, ...]:
        """The 64-bit words holding the bits, lowest positions first."""
        return tuple(self._words)

    def set(self, pos: int) -> None:
        """Set the bit at ``pos``."""
        major, minor = self._index(pos)
        self._words[major] |= 1 << minor

    def clear(self, pos: int) -> None:
        """Clear the bit at ``pos``."""
        major, minor = self._index(pos)
        self._words[major] &= ~(1 << minor) & _WORD_MASK

    def __contains__(self, pos: int) -> bool:
        major, minor = self._index(pos)
        return bool(self._words[major] >> minor & 1)

    def popcount(self) -> int:
        """Number of bits that are set."""
        return sum(bin(word).count("1") for word in self._words)

    def hash_value(self) -> int:
        """A 64-bit hash: the popcount xor-ed with every word."""
        result = self.popcount()
        for word in self._words:
            result ^= word
        return result

    def copy(self) -> Bitset:
        """An independent copy of this bitset."""
        other = Bitset(0)
        other._words = list(self._words)
        return other

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitset):
            return NotImplemented
        return self._words == other._words

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Bitset(words={self._words!r})"