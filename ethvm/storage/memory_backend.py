"""
In-memory state database.

Dict-based implementation of the Database interface for testing and
development.
"""

from __future__ import annotations

from typing import Optional

from ethvm.common.crypto import keccak256
from ethvm.common.types import EMPTY_CODE_HASH, ZERO_HASH, AccountInfo
from ethvm.storage.store import Database


class MemoryBackend(Database):
    """In-memory state database using Python dicts."""

    def __init__(self) -> None:
        self._accounts: dict[bytes, AccountInfo] = {}
        self._code: dict[bytes, bytes] = {}  # code_hash -> code
        self._storage: dict[tuple[bytes, int], int] = {}  # (addr, key) -> value
        self._block_hashes: dict[int, bytes] = {}

    # -----------------------------------------------------------------
    # Population
    # -----------------------------------------------------------------

    def insert_account(
        self,
        address: bytes,
        balance: int = 0,
        nonce: int = 0,
        code: bytes = b"",
        storage: Optional[dict[int, int]] = None,
    ) -> AccountInfo:
        """Create or replace an account together with its code and storage."""
        code_hash = EMPTY_CODE_HASH
        if code:
            code_hash = keccak256(code)
            self._code[code_hash] = bytes(code)
        info = AccountInfo(balance=balance, nonce=nonce, code_hash=code_hash)
        self._accounts[address] = info

        for k in [k for k in self._storage if k[0] == address]:
            del self._storage[k]
        for key, value in (storage or {}).items():
            if value:
                self._storage[(address, key)] = value
        return info

    def insert_block_hash(self, number: int, block_hash: bytes) -> None:
        self._block_hashes[number] = block_hash

    # -----------------------------------------------------------------
    # Database
    # -----------------------------------------------------------------

    def basic(self, address: bytes) -> Optional[AccountInfo]:
        info = self._accounts.get(address)
        return info.copy() if info is not None else None

    def code_by_hash(self, code_hash: bytes) -> bytes:
        if code_hash == EMPTY_CODE_HASH:
            return b""
        return self._code.get(code_hash, b"")

    def storage(self, address: bytes, key: int) -> int:
        return self._storage.get((address, key), 0)

    def block_hash(self, number: int) -> bytes:
        return self._block_hashes.get(number, ZERO_HASH)
