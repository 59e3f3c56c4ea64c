"""Tests for hashing and contract address derivation."""

import pytest
from eth_utils import keccak, to_canonical_address

from ethvm.common.crypto import create2_address, create_address, keccak256


class TestKeccak256:
    def test_empty(self):
        result = keccak256(b"")
        assert result.hex() == "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"

    def test_hello(self):
        result = keccak256(b"hello")
        assert len(result) == 32
        assert result.hex() == "1c8aff950685c2ed4bc3174f3472287b56d9517b9c948127319a09a7a36deac8"

    def test_matches_eth_utils(self):
        data = bytes(range(200))
        assert keccak256(data) == keccak(data)


class TestCreateAddress:
    SENDER = to_canonical_address("0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0")

    def test_nonce_zero(self):
        assert create_address(self.SENDER, 0) == to_canonical_address(
            "0xcd234a471b72ba2f1ccf0a70fcaba648a5eecd8d"
        )

    def test_nonce_one(self):
        assert create_address(self.SENDER, 1) == to_canonical_address(
            "0x343c43a37d37dff08ae8c4a11544c718abb4fcf8"
        )

    def test_distinct_nonces(self):
        assert create_address(self.SENDER, 2) != create_address(self.SENDER, 3)


class TestCreate2Address:
    def test_eip1014_example_0(self):
        sender = b"\x00" * 20
        result = create2_address(sender, 0, keccak256(b"\x00"))
        assert result == to_canonical_address("0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38")

    def test_eip1014_example_1(self):
        sender = to_canonical_address("0xdeadbeef00000000000000000000000000000000")
        result = create2_address(sender, 0, keccak256(b"\x00"))
        assert result == to_canonical_address("0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3")

    def test_salt_changes_address(self):
        sender = b"\x00" * 20
        code_hash = keccak256(b"\x00")
        assert create2_address(sender, 1, code_hash) != create2_address(sender, 0, code_hash)

    def test_rejects_short_sender(self):
        with pytest.raises(ValueError):
            create2_address(b"\x00" * 19, 0, keccak256(b""))
