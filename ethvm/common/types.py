"""
Core value types shared by the VM, the state database and the host.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ethvm.common.crypto import keccak256


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UINT256_MAX = (1 << 256) - 1
UINT256_CEIL = 1 << 256
UINT64_MAX = (1 << 64) - 1

EMPTY_CODE_HASH = keccak256(b"")

ZERO_HASH = b"\x00" * 32
ZERO_ADDRESS = b"\x00" * 20


def to_address(word: int) -> bytes:
    """Take the low 20 bytes of a stack word as an address."""
    return (word & ((1 << 160) - 1)).to_bytes(20, "big")


def address_to_word(address: bytes) -> int:
    return int.from_bytes(address, "big")


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------

@dataclass
class AccountInfo:
    balance: int = 0
    nonce: int = 0
    code_hash: bytes = EMPTY_CODE_HASH
    # Loaded lazily by the cache; None means "look up by code_hash"
    code: Optional[bytes] = field(default=None, repr=False)

    def is_empty(self) -> bool:
        return (
            self.balance == 0
            and self.nonce == 0
            and self.code_hash == EMPTY_CODE_HASH
        )

    def has_code(self) -> bool:
        return self.code_hash != EMPTY_CODE_HASH

    def copy(self) -> AccountInfo:
        return AccountInfo(self.balance, self.nonce, self.code_hash, self.code)


# ---------------------------------------------------------------------------
# Log
# ---------------------------------------------------------------------------

@dataclass
class Log:
    address: bytes = ZERO_ADDRESS
    topics: list[bytes] = field(default_factory=list)
    data: bytes = b""

    def size(self) -> int:
        """Approximate footprint in bytes, used by the metrics layer."""
        return len(self.topics) * 32 + len(self.data) + len(self.address)
