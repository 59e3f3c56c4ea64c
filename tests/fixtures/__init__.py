"""Test fixtures for the ethvm test-suite."""

from .addresses import (
    ALICE_ADDRESS,
    BOB_ADDRESS,
    CHARLIE_ADDRESS,
    COINBASE_ADDRESS,
    CONTRACT_ADDRESS,
    ZERO_ADDRESS,
    TEST_ADDRESSES,
)
from .bytecode import (
    bytecode,
    push,
    deploy_code,
    word,
    run_code,
)
from .contracts import (
    RETURN_EMPTY_BYTECODE,
    SIMPLE_STORAGE_BYTECODE,
    COUNTER_BYTECODE,
    REVERT_BYTECODE,
    RECURSIVE_CALL_BYTECODE,
    TEST_CONTRACTS,
)

__all__ = [
    # Addresses
    "ALICE_ADDRESS",
    "BOB_ADDRESS",
    "CHARLIE_ADDRESS",
    "COINBASE_ADDRESS",
    "CONTRACT_ADDRESS",
    "ZERO_ADDRESS",
    "TEST_ADDRESSES",
    # Bytecode helpers
    "bytecode",
    "push",
    "deploy_code",
    "word",
    "run_code",
    # Contracts
    "RETURN_EMPTY_BYTECODE",
    "SIMPLE_STORAGE_BYTECODE",
    "COUNTER_BYTECODE",
    "REVERT_BYTECODE",
    "RECURSIVE_CALL_BYTECODE",
    "TEST_CONTRACTS",
]
