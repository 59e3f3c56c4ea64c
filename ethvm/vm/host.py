"""
Host: the world capability consumed by the interpreter.

The control loop itself only needs the tracing hooks (step / step_end) and
the nested-execution entry points (call / create). The remaining methods
are what the instruction handlers use to reach account state, storage,
logs and block context. State access that touches an account or slot
reports whether the access was cold (EIP-2929) so handlers can bill it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ethvm.common.config import BlockEnv
from ethvm.common.types import Log
from ethvm.vm.exceptions import InstructionResult
from ethvm.vm.gas import Gas

if TYPE_CHECKING:
    from ethvm.vm.interpreter import Interpreter


class CallScheme(Enum):
    CALL = "call"
    CALLCODE = "callcode"
    DELEGATECALL = "delegatecall"
    STATICCALL = "staticcall"


class CreateScheme(Enum):
    CREATE = "create"
    CREATE2 = "create2"


@dataclass
class CallInputs:
    scheme: CallScheme
    # Account whose storage/balance the callee acts on
    target: bytes
    code_address: bytes
    caller: bytes
    input: bytes
    gas_limit: int
    # Apparent value (CALLVALUE inside the callee)
    value: int = 0
    # Whether ``value`` actually moves from caller to target
    transfers_value: bool = True
    is_static: bool = False


@dataclass
class CreateInputs:
    scheme: CreateScheme
    caller: bytes
    value: int
    init_code: bytes
    gas_limit: int
    salt: Optional[int] = None


@dataclass
class CallOutcome:
    result: InstructionResult
    gas: Gas
    output: bytes = b""


@dataclass
class CreateOutcome:
    result: InstructionResult
    gas: Gas
    address: Optional[bytes] = None
    output: bytes = b""


@dataclass
class AccountLoad:
    is_cold: bool
    is_empty: bool


class Host(ABC):
    """World capability interface.

    Implemented outside the core; see ethvm.evm.ExecutionEnvironment for
    the in-memory reference implementation.
    """

    # -----------------------------------------------------------------
    # Control-loop hooks
    # -----------------------------------------------------------------

    def step(self, interp: Interpreter) -> InstructionResult:
        """Called before each instruction by Interpreter.run_inspect."""
        return InstructionResult.CONTINUE

    def step_end(
        self, interp: Interpreter, result: InstructionResult,
    ) -> InstructionResult:
        """Called after each instruction by Interpreter.run_inspect."""
        return InstructionResult.CONTINUE

    # -----------------------------------------------------------------
    # Nested execution
    # -----------------------------------------------------------------

    @property
    @abstractmethod
    def depth(self) -> int:
        """Depth of the frame currently executing (outermost is 0)."""
        ...

    @abstractmethod
    def call(self, inputs: CallInputs) -> CallOutcome:
        """Run a message call to completion and report its outcome."""
        ...

    @abstractmethod
    def create(self, inputs: CreateInputs) -> CreateOutcome:
        """Run init code to completion and deploy its output."""
        ...

    # -----------------------------------------------------------------
    # Handler-level state access
    # -----------------------------------------------------------------

    @property
    @abstractmethod
    def chain_id(self) -> int:
        ...

    @property
    @abstractmethod
    def env(self) -> BlockEnv:
        ...

    @abstractmethod
    def load_account(self, address: bytes) -> AccountLoad:
        ...

    @abstractmethod
    def balance(self, address: bytes) -> tuple[int, bool]:
        """Return (balance, is_cold)."""
        ...

    @abstractmethod
    def code(self, address: bytes) -> tuple[bytes, bool]:
        ...

    @abstractmethod
    def code_hash(self, address: bytes) -> tuple[bytes, bool]:
        """Return (hash, is_cold); hash is zero for non-existent accounts."""
        ...

    @abstractmethod
    def block_hash(self, number: int) -> bytes:
        ...

    @abstractmethod
    def sload(self, address: bytes, key: int) -> tuple[int, bool]:
        ...

    @abstractmethod
    def storage_original(self, address: bytes, key: int) -> int:
        """Value of the slot at the start of the transaction."""
        ...

    @abstractmethod
    def sstore(self, address: bytes, key: int, value: int) -> None:
        ...

    @abstractmethod
    def tload(self, address: bytes, key: int) -> int:
        ...

    @abstractmethod
    def tstore(self, address: bytes, key: int, value: int) -> None:
        ...

    @abstractmethod
    def log(self, log: Log) -> None:
        ...

    @abstractmethod
    def selfdestruct(self, address: bytes, target: bytes) -> bool:
        """Move the balance to target and schedule deletion.

        Returns True if the account was already scheduled before.
        """
        ...
