"""A fixed-size array of bits used to track allocation of pages or sectors."""

from __future__ import annotations

import sys
from typing import BinaryIO, TextIO

BITS_IN_BYTE = 8
BITS_IN_WORD = 32
_BYTES_IN_WORD = BITS_IN_WORD // BITS_IN_BYTE


class BitMap:
    """An array of bits, each of which can be set, cleared and tested.

    Storage is kept in 32-bit words laid out little-endian, which is also
    the on-disk layout used by :meth:`write_back` and :meth:`fetch_from`.
    """

    def __init__(self, nitems: int) -> None:
        if nitems < 0:
            raise ValueError(f"a bitmap cannot hold {nitems} bits")
        self._num_bits = nitems
        num_words = -(-nitems // BITS_IN_WORD)
        self._map = bytearray(num_words * _BYTES_IN_WORD)

    def __len__(self) -> int:
        return self._num_bits

    def __repr__(self) -> str:
        return f"BitMap({self._num_bits}, set={self.set_bits()})"

    def _check(self, which: int) -> None:
        if not 0 <= which < self._num_bits:
            raise IndexError(
                f"bit {which} is outside the bitmap of {self._num_bits} bits"
            )

    def mark(self, which: int) -> None:
        """Set bit ``which``."""
        self._check(which)
        self._map[which // BITS_IN_BYTE] |= 1 << (which % BITS_IN_BYTE)

    def clear(self, which: int) -> None:
        """Clear bit ``which``."""
        self._check(which)
        self._map[which // BITS_IN_BYTE] &= ~(1 << (which % BITS_IN_BYTE)) & 0xFF

    def test(self, which: int) -> bool:
        """Return whether bit ``which`` is set."""
        self._check(which)
        return bool(self._map[which // BITS_IN_BYTE] & (1 << (which % BITS_IN_BYTE)))

    def find(self) -> int | None:
        """Allocate the lowest clear bit and return its number.

        Returns ``None`` when every bit is already set.
        """
        for which in range(self._num_bits):
            if not self.test(which):
                self.mark(which)
                return which
        return None

    def num_clear(self) -> int:
        """Return how many bits are clear."""
        return sum(1 for which in range(self._num_bits) if not self.test(which))

    def set_bits(self) -> list[int]:
        """Return the numbers of all set bits, in ascending order."""
        return [which for which in range(self._num_bits) if self.test(which)]

    def print(self, file: TextIO | None = None) -> None:
        """Write the numbers of the set bits to ``file`` (standard output by default)."""
        out = sys.stdout if file is None else file
        out.write("Bitmap set:\n")
        out.write("".join(f"{which}, " for which in self.set_bits()))
        out.write("\n")

    def fetch_from(self, file: BinaryIO) -> None:
        """Load the bitmap contents from the start of a binary file."""
        file.seek(0)
        data = file.read(len(self._map))
        self._map[: len(data)] = data

    def write_back(self, file: BinaryIO) -> None:
        """Store the bitmap contents at the start of a binary file."""
        file.seek(0)
        file.write(bytes(self._map))