"""
VM configuration: protocol revisions, fixed protocol limits, block context.

A VMConfig is resolved once per environment and turned into an
InterpreterConfig for every frame, so nothing in the interpreter forks on
which optional features are enabled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Optional

from ethvm.common.types import ZERO_ADDRESS, ZERO_HASH

if TYPE_CHECKING:
    from ethvm.metrics.recorder import OpcodeRecorder
    from ethvm.vm.interpreter import InterpreterConfig


# ---------------------------------------------------------------------------
# Protocol limits
# ---------------------------------------------------------------------------

STACK_LIMIT = 1024
CALL_STACK_LIMIT = 1024

# EIP-170: contract code size limit (0x6000)
MAX_CODE_SIZE = 24576
# EIP-3860: limit and meter initcode
MAX_INITCODE_SIZE = 2 * MAX_CODE_SIZE


# ---------------------------------------------------------------------------
# Revisions
# ---------------------------------------------------------------------------

class Revision(IntEnum):
    FRONTIER = 0
    HOMESTEAD = 1
    TANGERINE = 2
    SPURIOUS_DRAGON = 3
    BYZANTIUM = 4
    CONSTANTINOPLE = 5
    PETERSBURG = 6
    ISTANBUL = 7
    BERLIN = 8
    LONDON = 9
    MERGE = 10
    SHANGHAI = 11
    CANCUN = 12

    @classmethod
    def from_name(cls, name: str) -> Revision:
        key = name.strip().upper().replace("-", "_").replace(" ", "_")
        aliases = {"PARIS": "MERGE", "TANGERINE_WHISTLE": "TANGERINE"}
        key = aliases.get(key, key)
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown revision: {name}") from None

    @property
    def refund_quotient(self) -> int:
        # EIP-3529 (London) lowered the cap from gas_used // 2 to gas_used // 5
        return 5 if self >= Revision.LONDON else 2


LATEST = Revision.CANCUN


# ---------------------------------------------------------------------------
# Block context
# ---------------------------------------------------------------------------

@dataclass
class BlockEnv:
    number: int = 0
    timestamp: int = 0
    coinbase: bytes = ZERO_ADDRESS
    prevrandao: int = 0
    gas_limit: int = 30_000_000
    base_fee: int = 0
    gas_price: int = 0
    origin: bytes = ZERO_ADDRESS
    block_hashes: dict[int, bytes] = field(default_factory=dict)

    def get_block_hash(self, number: int) -> bytes:
        return self.block_hashes.get(number, ZERO_HASH)


# ---------------------------------------------------------------------------
# VM configuration
# ---------------------------------------------------------------------------

@dataclass
class VMConfig:
    chain_id: int = 1
    revision: Revision = LATEST
    memory_limit: Optional[int] = None
    limit_contract_code_size: int = MAX_CODE_SIZE
    enable_metrics: bool = False

    def __post_init__(self) -> None:
        if self.memory_limit is not None and self.memory_limit < 0:
            raise ValueError("memory_limit must be non-negative")
        if self.limit_contract_code_size <= 0:
            raise ValueError("limit_contract_code_size must be positive")

    @property
    def limit_initcode_size(self) -> int:
        return 2 * self.limit_contract_code_size

    def interpreter_config(
        self, recorder: Optional[OpcodeRecorder] = None,
    ) -> InterpreterConfig:
        from ethvm.vm.interpreter import InterpreterConfig
        return InterpreterConfig(
            revision=self.revision,
            memory_limit=self.memory_limit,
            limit_initcode_size=self.limit_initcode_size,
            recorder=recorder if self.enable_metrics else None,
        )

    @classmethod
    def from_json(cls, data: dict) -> VMConfig:
        """Parse a config dict using geth-style camelCase keys."""

        def parse_int(val: str | int | None, default: Optional[int]) -> Optional[int]:
            if val is None:
                return default
            if isinstance(val, int):
                return val
            return int(val, 0) if val else default

        revision = data.get("revision", LATEST.name)
        return cls(
            chain_id=parse_int(data.get("chainId"), 1),
            revision=(
                Revision(revision) if isinstance(revision, int)
                else Revision.from_name(revision)
            ),
            memory_limit=parse_int(data.get("memoryLimit"), None),
            limit_contract_code_size=parse_int(
                data.get("limitContractCodeSize"), MAX_CODE_SIZE
            ),
            enable_metrics=bool(data.get("enableMetrics", False)),
        )
