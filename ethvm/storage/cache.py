"""
Read-through state cache.

CacheDB sits between the reference host and a backing Database. Reads are
served from local dicts when present and loaded from the backing database
otherwise; every lookup is reported to an optional CacheDbRecorder as a
hit or a timed miss. All writes stay in the cache, which also provides
the snapshots the host uses to roll back failed frames.
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from typing import ContextManager, Optional

from ethvm.common.crypto import keccak256
from ethvm.common.types import EMPTY_CODE_HASH, AccountInfo
from ethvm.metrics.recorder import CacheDbRecorder
from ethvm.metrics.types import Function
from ethvm.storage.store import Database


@dataclass(frozen=True)
class CacheSnapshot:
    accounts: dict[bytes, Optional[AccountInfo]]
    storage: dict[tuple[bytes, int], int]
    wiped: frozenset[bytes]


class CacheDB(Database):
    """Mutable working state over a read-only Database."""

    def __init__(
        self, db: Database, recorder: Optional[CacheDbRecorder] = None,
    ) -> None:
        self.db = db
        self.recorder = recorder
        # None marks an account known not to exist
        self.accounts: dict[bytes, Optional[AccountInfo]] = {}
        self.storage_slots: dict[tuple[bytes, int], int] = {}
        self.contracts: dict[bytes, bytes] = {EMPTY_CODE_HASH: b""}
        self.block_hashes: dict[int, bytes] = {}
        # Accounts whose backing storage must not be read any more
        self._wiped: set[bytes] = set()

    def _meter(self, cached: bool, function: Function) -> ContextManager:
        if self.recorder is None:
            return nullcontext()
        if cached:
            return self.recorder.hit(function)
        return self.recorder.miss(function)

    # -----------------------------------------------------------------
    # Database
    # -----------------------------------------------------------------

    def basic(self, address: bytes) -> Optional[AccountInfo]:
        cached = address in self.accounts
        with self._meter(cached, Function.BASIC):
            if not cached:
                self.accounts[address] = self.db.basic(address)
            return self.accounts[address]

    def code_by_hash(self, code_hash: bytes) -> bytes:
        cached = code_hash in self.contracts
        with self._meter(cached, Function.CODE_BY_HASH):
            if not cached:
                self.contracts[code_hash] = self.db.code_by_hash(code_hash)
            return self.contracts[code_hash]

    def storage(self, address: bytes, key: int) -> int:
        slot = (address, key)
        cached = slot in self.storage_slots or address in self._wiped
        with self._meter(cached, Function.STORAGE):
            if slot in self.storage_slots:
                return self.storage_slots[slot]
            value = 0 if address in self._wiped else self.db.storage(address, key)
            self.storage_slots[slot] = value
            return value

    def block_hash(self, number: int) -> bytes:
        cached = number in self.block_hashes
        with self._meter(cached, Function.BLOCK_HASH):
            if not cached:
                self.block_hashes[number] = self.db.block_hash(number)
            return self.block_hashes[number]

    # -----------------------------------------------------------------
    # Accounts
    # -----------------------------------------------------------------

    def load_account(self, address: bytes) -> AccountInfo:
        """Return the cached account, creating an empty one if missing."""
        cached = self.accounts.get(address) is not None
        with self._meter(cached, Function.LOAD_ACCOUNT):
            if cached:
                return self.accounts[address]
            info = None
            if address not in self.accounts:
                info = self.db.basic(address)
            if info is None:
                info = AccountInfo()
            self.accounts[address] = info
            return info

    def account_exists(self, address: bytes) -> bool:
        return self.basic(address) is not None

    def account_code(self, address: bytes) -> bytes:
        info = self.basic(address)
        if info is None or not info.has_code():
            return b""
        if info.code is None:
            info.code = self.code_by_hash(info.code_hash)
        return info.code

    def set_balance(self, address: bytes, balance: int) -> None:
        self.load_account(address).balance = balance

    def set_nonce(self, address: bytes, nonce: int) -> None:
        self.load_account(address).nonce = nonce

    def set_code(self, address: bytes, code: bytes) -> None:
        info = self.load_account(address)
        if code:
            info.code_hash = keccak256(code)
            self.contracts[info.code_hash] = code
        else:
            info.code_hash = EMPTY_CODE_HASH
        info.code = code

    def set_storage(self, address: bytes, key: int, value: int) -> None:
        self.storage_slots[(address, key)] = value

    def delete_account(self, address: bytes) -> None:
        """Remove the account and all of its storage."""
        self.accounts[address] = None
        for slot in [s for s in self.storage_slots if s[0] == address]:
            del self.storage_slots[slot]
        self._wiped.add(address)

    # -----------------------------------------------------------------
    # Snapshots
    # -----------------------------------------------------------------

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            accounts={
                addr: info.copy() if info is not None else None
                for addr, info in self.accounts.items()
            },
            storage=dict(self.storage_slots),
            wiped=frozenset(self._wiped),
        )

    def restore(self, snap: CacheSnapshot) -> None:
        """Roll the working state back to ``snap``.

        Entries first loaded after the snapshot are dropped as well; they
        are simply re-read from the backing database.
        """
        self.accounts = {
            addr: info.copy() if info is not None else None
            for addr, info in snap.accounts.items()
        }
        self.storage_slots = dict(snap.storage)
        self._wiped = set(snap.wiped)
