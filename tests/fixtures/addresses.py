"""Standard test addresses.

All addresses are 20 bytes (canonical form, not checksummed).
"""

from eth_utils import to_canonical_address

# Externally owned accounts
ALICE_ADDRESS = to_canonical_address("0x" + "a1" * 20)
BOB_ADDRESS = to_canonical_address("0x" + "b0" * 20)
CHARLIE_ADDRESS = to_canonical_address("0x" + "c4" * 20)

# Default home of the contract under test
CONTRACT_ADDRESS = to_canonical_address("0x" + "cc" * 20)

# Coinbase address (block producer)
COINBASE_ADDRESS = bytes.fromhex("00" * 19 + "99")

# Zero address (for burns, etc.)
ZERO_ADDRESS = bytes.fromhex("00" * 20)

TEST_ADDRESSES = {
    "alice": ALICE_ADDRESS,
    "bob": BOB_ADDRESS,
    "charlie": CHARLIE_ADDRESS,
    "contract": CONTRACT_ADDRESS,
    "coinbase": COINBASE_ADDRESS,
    "zero": ZERO_ADDRESS,
}
