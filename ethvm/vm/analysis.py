"""
Bytecode analysis.

analyze() runs once per code blob and produces a BytecodeLocked: the code
padded so the cursor can never run off the end, and a bitmap of valid
JUMPDEST offsets. The interpreter trusts this result completely and never
re-derives instruction boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass

from ethvm.common.config import MAX_INITCODE_SIZE
from ethvm.vm.exceptions import InitCodeSizeLimit

_JUMPDEST = 0x5B
_PUSH1 = 0x60
_PUSH32 = 0x7F

# One STOP plus room for the widest PUSH immediate
PADDING = 33


@dataclass(frozen=True)
class BytecodeLocked:
    """Analysed, immutable bytecode."""

    bytecode: bytes
    original_len: int
    jump_map: bytes

    @property
    def len(self) -> int:
        return self.original_len

    @property
    def original_bytes(self) -> bytes:
        return self.bytecode[: self.original_len]

    def is_valid_jump(self, position: int) -> bool:
        return 0 <= position < self.original_len and self.jump_map[position] == 1

    def jump_destinations(self) -> list[int]:
        return [i for i, flag in enumerate(self.jump_map) if flag]


def compute_jump_map(code: bytes) -> bytes:
    """Mark every JUMPDEST that is an instruction boundary.

    PUSH immediates are skipped, so a 0x5B byte inside push data is never
    a valid target.
    """
    jump_map = bytearray(len(code))
    i = 0
    while i < len(code):
        op = code[i]
        if op == _JUMPDEST:
            jump_map[i] = 1
        elif _PUSH1 <= op <= _PUSH32:
            # PUSH1..PUSH32: skip 1..32 immediate bytes
            i += op - _PUSH1 + 1
        i += 1
    return bytes(jump_map)


def analyze(code: bytes, limit: int = MAX_INITCODE_SIZE) -> BytecodeLocked:
    """Validate size, compute jump destinations and pad ``code``."""
    if len(code) > limit:
        raise InitCodeSizeLimit(f"Code size {len(code)} exceeds limit {limit}")
    code = bytes(code)
    return BytecodeLocked(
        bytecode=code + bytes(PADDING),
        original_len=len(code),
        jump_map=compute_jump_map(code),
    )
