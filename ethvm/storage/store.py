"""
Database interface: read-only source of world state for the VM.

Defines the lookups the state cache falls back to on a miss: account
basics, code by hash, storage slots and historical block hashes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from ethvm.common.types import AccountInfo


class Database(ABC):
    """Abstract state source.

    Implementations can be in-memory (testing) or backed by a real node.
    """

    @abstractmethod
    def basic(self, address: bytes) -> Optional[AccountInfo]:
        """Get account info by address, or None if the account does not exist."""
        ...

    @abstractmethod
    def code_by_hash(self, code_hash: bytes) -> bytes:
        """Get contract code by its keccak256 hash (empty if unknown)."""
        ...

    @abstractmethod
    def storage(self, address: bytes, key: int) -> int:
        """Get storage value at (address, key). Returns 0 if not set."""
        ...

    @abstractmethod
    def block_hash(self, number: int) -> bytes:
        """Get the hash of a historical block (zero hash if unknown)."""
        ...
