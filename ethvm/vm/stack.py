"""
EVM operand stack: 1024 entries of 256-bit unsigned words.

The backing list is allocated once at full capacity; ``_size`` marks the
top so push/pop never reallocate mid-run.
"""

from __future__ import annotations

from ethvm.common.config import STACK_LIMIT
from ethvm.common.types import UINT256_MAX
from ethvm.vm.exceptions import StackOverflow, StackUnderflow


class Stack:
    """EVM stack: max 1024 items, each item is a 256-bit unsigned integer."""

    __slots__ = ("_data", "_size")

    def __init__(self) -> None:
        self._data: list[int] = [0] * STACK_LIMIT
        self._size = 0

    # -- Bound checks --

    def require(self, n_in: int, n_out: int = 0) -> None:
        """Check that an instruction popping n_in and pushing n_out fits."""
        if self._size < n_in:
            raise StackUnderflow(f"Stack underflow: need {n_in}, have {self._size}")
        if self._size - n_in + n_out > STACK_LIMIT:
            raise StackOverflow(f"Stack overflow (max {STACK_LIMIT})")

    # -- Operations --

    def push(self, value: int) -> None:
        if self._size >= STACK_LIMIT:
            raise StackOverflow(f"Stack overflow (max {STACK_LIMIT})")
        self._data[self._size] = value & UINT256_MAX
        self._size += 1

    def pop(self) -> int:
        if self._size == 0:
            raise StackUnderflow("Stack underflow")
        self._size -= 1
        return self._data[self._size]

    def pop_n(self, n: int) -> tuple[int, ...]:
        """Pop n items, top first. Nothing is popped if fewer than n exist."""
        if n > self._size:
            raise StackUnderflow(f"Stack underflow: pop_n({n}) with {self._size}")
        top = self._size
        self._size -= n
        return tuple(self._data[top - 1 - i] for i in range(n))

    def peek(self, depth: int = 0) -> int:
        if depth >= self._size:
            raise StackUnderflow(f"Stack underflow: peek({depth})")
        return self._data[self._size - 1 - depth]

    def peek_n(self, n: int) -> tuple[int, ...]:
        """Read the top n items, top first, leaving the stack as it is."""
        if n > self._size:
            raise StackUnderflow(f"Stack underflow: peek_n({n}) with {self._size}")
        top = self._size
        return tuple(self._data[top - 1 - i] for i in range(n))

    def set(self, depth: int, value: int) -> None:
        if depth >= self._size:
            raise StackUnderflow(f"Stack underflow: set({depth})")
        self._data[self._size - 1 - depth] = value & UINT256_MAX

    def swap(self, depth: int) -> None:
        """Swap top with item at depth (1-indexed: SWAP1 uses depth=1)."""
        if depth >= self._size:
            raise StackUnderflow(f"Stack underflow: swap({depth})")
        top = self._size - 1
        data = self._data
        data[top], data[top - depth] = data[top - depth], data[top]

    def dup(self, depth: int) -> None:
        """Duplicate item at depth (1-indexed: DUP1 uses depth=1)."""
        if depth > self._size:
            raise StackUnderflow(f"Stack underflow: dup({depth})")
        if self._size >= STACK_LIMIT:
            raise StackOverflow("Stack overflow on DUP")
        self._data[self._size] = self._data[self._size - depth]
        self._size += 1

    # -- Introspection --

    @property
    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def to_list(self) -> list[int]:
        """Bottom-to-top copy, for tracing."""
        return self._data[: self._size]

    def __repr__(self) -> str:
        return f"Stack({self.to_list()!r})"
