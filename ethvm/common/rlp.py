"""
RLP (Recursive Length Prefix) encoding.

Only the encoder is needed by the VM: CREATE derives the new contract address
from ``rlp([sender, nonce])``.
"""

from __future__ import annotations

from typing import Union

RLPItem = Union[bytes, int, list["RLPItem"], tuple]


def encode(item: RLPItem) -> bytes:
    """Encode bytes, non-negative ints, or (nested) lists of them."""
    if isinstance(item, bool):
        raise TypeError("RLP has no boolean type")
    if isinstance(item, int):
        if item < 0:
            raise ValueError("RLP cannot encode negative integers")
        return _encode_bytes(_int_to_bytes(item))
    if isinstance(item, (bytes, bytearray, memoryview)):
        return _encode_bytes(bytes(item))
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(sub) for sub in item)
        return _prefix(0xC0, len(payload)) + payload
    raise TypeError(f"Cannot RLP-encode type {type(item).__name__}")


def _int_to_bytes(value: int) -> bytes:
    # Zero is the empty string, never b"\x00"
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def _encode_bytes(data: bytes) -> bytes:
    if len(data) == 1 and data[0] < 0x80:
        return data
    return _prefix(0x80, len(data)) + data


def _prefix(offset: int, length: int) -> bytes:
    if length <= 55:
        return bytes([offset + length])
    len_bytes = _int_to_bytes(length)
    return bytes([offset + 55 + len(len_bytes)]) + len_bytes
