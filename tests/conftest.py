"""Pytest configuration and shared fixtures for all tests."""

import pytest
from eth_utils import to_wei

from ethvm.common.config import BlockEnv, VMConfig
from ethvm.evm import ExecutionEnvironment
from ethvm.storage.memory_backend import MemoryBackend

from tests.fixtures.addresses import (
    ALICE_ADDRESS,
    BOB_ADDRESS,
    COINBASE_ADDRESS,
    CONTRACT_ADDRESS,
)


# =============================================================================
# Core Fixtures - Addresses
# =============================================================================

@pytest.fixture
def alice_address():
    return ALICE_ADDRESS


@pytest.fixture
def bob_address():
    return BOB_ADDRESS


@pytest.fixture
def contract_address():
    return CONTRACT_ADDRESS


# =============================================================================
# World State Fixtures
# =============================================================================

@pytest.fixture
def db():
    """Backing database with Alice funded with 100 ETH."""
    backend = MemoryBackend()
    backend.insert_account(ALICE_ADDRESS, balance=to_wei(100, "ether"))
    return backend


@pytest.fixture
def block_env():
    return BlockEnv(
        number=100,
        timestamp=1_700_000_000,
        coinbase=COINBASE_ADDRESS,
        gas_limit=30_000_000,
        base_fee=7,
        gas_price=10,
        origin=ALICE_ADDRESS,
    )


@pytest.fixture
def vm_config():
    return VMConfig(chain_id=1337)


@pytest.fixture
def env(db, vm_config, block_env):
    """Execution environment over the funded database."""
    return ExecutionEnvironment(db, config=vm_config, block_env=block_env)
