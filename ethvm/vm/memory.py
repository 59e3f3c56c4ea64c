"""
EVM memory: byte-addressable, grows in 32-byte words, zero-filled.

Memory itself never bills gas and never grows implicitly. Growth goes
through resize_to(), which the interpreter calls only after the expansion
has been paid for (see Interpreter.expand_memory). Reads and writes must
stay inside the current length.
"""

from __future__ import annotations

from ethvm.common.types import UINT256_MAX
from ethvm.vm.exceptions import MemoryAccessError


def next_multiple_of_32(value: int) -> int:
    return (value + 31) // 32 * 32


class Memory:
    """EVM memory: byte-addressable, expands in 32-byte word increments."""

    __slots__ = ("_data",)

    def __init__(self) -> None:
        self._data = bytearray()

    def resize_to(self, new_len: int) -> int:
        """Grow to ``new_len`` rounded up to a word boundary.

        Returns the number of words added (0 if already large enough).
        """
        new_len = next_multiple_of_32(new_len)
        current = len(self._data)
        if new_len <= current:
            return 0
        self._data.extend(bytes(new_len - current))
        return (new_len - current) // 32

    def _check(self, offset: int, size: int) -> None:
        if offset < 0 or size < 0 or offset + size > len(self._data):
            raise MemoryAccessError(
                f"Memory access [{offset}, {offset + size}) outside size {len(self._data)}"
            )

    # -- Reads --

    def get_slice(self, offset: int, size: int) -> bytes:
        """Read ``size`` bytes from memory starting at ``offset``."""
        if size == 0:
            return b""
        self._check(offset, size)
        return bytes(self._data[offset : offset + size])

    def get_word(self, offset: int) -> int:
        """Load a 32-byte word as uint256."""
        return int.from_bytes(self.get_slice(offset, 32), "big")

    # -- Writes --

    def set(self, offset: int, data: bytes) -> None:
        """Write bytes to memory at offset."""
        if not data:
            return
        self._check(offset, len(data))
        self._data[offset : offset + len(data)] = data

    def set_word(self, offset: int, value: int) -> None:
        """Store a uint256 as 32 bytes at offset."""
        self.set(offset, (value & UINT256_MAX).to_bytes(32, "big"))

    def set_byte(self, offset: int, value: int) -> None:
        self._check(offset, 1)
        self._data[offset] = value & 0xFF

    def set_data(self, offset: int, data_offset: int, size: int, data: bytes) -> None:
        """Copy data[data_offset:data_offset+size] to memory, zero-padding
        whatever lies past the end of ``data``."""
        if size == 0:
            return
        self._check(offset, size)
        if data_offset >= len(data):
            chunk = b""
        else:
            chunk = data[data_offset : data_offset + size]
        self._data[offset : offset + size] = chunk + bytes(size - len(chunk))

    def copy_within(self, dst: int, src: int, size: int) -> None:
        """Copy ``size`` bytes within memory from src to dst (MCOPY)."""
        if size == 0:
            return
        self._check(src, size)
        self._check(dst, size)
        self._data[dst : dst + size] = bytes(self._data[src : src + size])

    # -- Introspection --

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def words(self) -> int:
        return len(self._data) // 32

    def __len__(self) -> int:
        return len(self._data)

