"""
Hashing and contract address derivation.

- keccak256 hashing (NOT SHA3-256)
- CREATE / CREATE2 address derivation
"""

from __future__ import annotations

from Crypto.Hash import keccak as _keccak_mod

from ethvm.common import rlp


def keccak256(data: bytes) -> bytes:
    """Compute Keccak-256 hash (NOT SHA3-256)."""
    h = _keccak_mod.new(digest_bits=256)
    h.update(data)
    return h.digest()


def create_address(sender: bytes, nonce: int) -> bytes:
    """CREATE: keccak256(rlp([sender, nonce]))[12:]"""
    return keccak256(rlp.encode([sender, nonce]))[12:]


def create2_address(sender: bytes, salt: int, init_code_hash: bytes) -> bytes:
    """Compute the CREATE2 address (EIP-1014).

    address = keccak256(0xff ++ sender ++ salt ++ keccak256(init_code))[12:]

    ``salt`` is the 256-bit word popped from the stack; ``init_code_hash`` is
    the already computed keccak256 of the init code so callers can reuse it
    for gas accounting.
    """
    if len(sender) != 20:
        raise ValueError(f"Expected 20-byte sender, got {len(sender)}")
    return keccak256(
        b"\xff" + sender + salt.to_bytes(32, "big") + init_code_hash
    )[12:]
