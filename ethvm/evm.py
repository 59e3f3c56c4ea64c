"""
Reference world for the interpreter.

ExecutionEnvironment implements the Host interface on top of a CacheDB:
account state, storage, transient storage, logs and EIP-2929 warm sets,
plus nested message calls and contract creation. transact() drives one
transaction through it and applies the refund cap.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Optional

from ethvm.common.config import CALL_STACK_LIMIT, BlockEnv, Revision, VMConfig
from ethvm.common.crypto import create2_address, create_address, keccak256
from ethvm.common.types import UINT64_MAX, ZERO_HASH, Log
from ethvm.metrics.recorder import CacheDbRecorder, OpcodeRecorder
from ethvm.storage.cache import CacheDB
from ethvm.storage.memory_backend import MemoryBackend
from ethvm.storage.store import Database
from ethvm.vm.contract import Contract
from ethvm.vm.exceptions import InstructionResult, OutOfGas
from ethvm.vm.gas import G_CODEDEPOSIT, AccessSets, Gas
from ethvm.vm.hooks import Inspector
from ethvm.vm.host import (
    AccountLoad,
    CallInputs,
    CallOutcome,
    CallScheme,
    CreateInputs,
    CreateOutcome,
    CreateScheme,
    Host,
)
from ethvm.vm.interpreter import Interpreter

logger = logging.getLogger(__name__)

# Every nested frame costs a handful of Python frames; 1025 EVM frames
# must fit.
EVM_RECURSION_LIMIT = 1024 * 16
sys.setrecursionlimit(max(EVM_RECURSION_LIMIT, sys.getrecursionlimit()))


# ---------------------------------------------------------------------------
# Execution environment for world state interface for the EVM
# ---------------------------------------------------------------------------

class ExecutionEnvironment(Host):
    """In-memory Host implementation.

    State lives in a CacheDB over ``db`` (an empty MemoryBackend by
    default). Recorders are only wired in when ``config.enable_metrics``
    is set; if none are given, fresh ones are created.
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[VMConfig] = None,
        block_env: Optional[BlockEnv] = None,
        inspector: Optional[Inspector] = None,
        opcode_recorder: Optional[OpcodeRecorder] = None,
        cache_recorder: Optional[CacheDbRecorder] = None,
    ) -> None:
        self.config = config if config is not None else VMConfig()
        self.block_env = block_env if block_env is not None else BlockEnv()
        self.inspector = inspector

        if self.config.enable_metrics:
            self.opcode_recorder = opcode_recorder or OpcodeRecorder()
            self.cache_recorder = cache_recorder or CacheDbRecorder()
        else:
            self.opcode_recorder = None
            self.cache_recorder = None

        self.state = CacheDB(
            db if db is not None else MemoryBackend(), self.cache_recorder,
        )
        self._interpreter_config = self.config.interpreter_config(self.opcode_recorder)

        # EIP-2929 access tracking
        self.access_sets = AccessSets()
        # Transient storage (EIP-1153)
        self._transient: dict[tuple[bytes, int], int] = {}
        # Slot values at the start of the transaction (EIP-2200)
        self._original_storage: dict[tuple[bytes, int], int] = {}

        self.logs: list[Log] = []
        self.selfdestructs: set[bytes] = set()
        # Accounts created in the current transaction (EIP-6780)
        self.created: set[bytes] = set()

        # Number of frames currently executing
        self._frames = 0
        self._snapshots: list[dict] = []

    @property
    def revision(self) -> Revision:
        return self.config.revision

    # -----------------------------------------------------------------
    # Host: control-loop hooks
    # -----------------------------------------------------------------

    def step(self, interp: Interpreter) -> InstructionResult:
        if self.inspector is None:
            return InstructionResult.CONTINUE
        return self.inspector.step(interp, self)

    def step_end(
        self, interp: Interpreter, result: InstructionResult,
    ) -> InstructionResult:
        if self.inspector is None:
            return InstructionResult.CONTINUE
        return self.inspector.step_end(interp, self, result)

    # -----------------------------------------------------------------
    # Host: context
    # -----------------------------------------------------------------

    @property
    def depth(self) -> int:
        return max(self._frames - 1, 0)

    @property
    def chain_id(self) -> int:
        return self.config.chain_id

    @property
    def env(self) -> BlockEnv:
        return self.block_env

    def block_hash(self, number: int) -> bytes:
        block_hash = self.block_env.block_hashes.get(number)
        if block_hash is None:
            block_hash = self.state.block_hash(number)
        return block_hash

    # -----------------------------------------------------------------
    # Host: accounts
    # -----------------------------------------------------------------

    def _warm(self, address: bytes) -> bool:
        """Mark address warm; return True if the access was cold."""
        return not self.access_sets.mark_warm_address(address)

    def load_account(self, address: bytes) -> AccountLoad:
        is_cold = self._warm(address)
        info = self.state.basic(address)
        return AccountLoad(is_cold=is_cold, is_empty=info is None or info.is_empty())

    def balance(self, address: bytes) -> tuple[int, bool]:
        is_cold = self._warm(address)
        info = self.state.basic(address)
        return (info.balance if info is not None else 0), is_cold

    def code(self, address: bytes) -> tuple[bytes, bool]:
        is_cold = self._warm(address)
        return self.state.account_code(address), is_cold

    def code_hash(self, address: bytes) -> tuple[bytes, bool]:
        is_cold = self._warm(address)
        info = self.state.basic(address)
        if info is None or info.is_empty():
            return ZERO_HASH, is_cold
        return info.code_hash, is_cold

    def get_balance(self, address: bytes) -> int:
        info = self.state.basic(address)
        return info.balance if info is not None else 0

    def get_nonce(self, address: bytes) -> int:
        info = self.state.basic(address)
        return info.nonce if info is not None else 0

    def get_code(self, address: bytes) -> bytes:
        return self.state.account_code(address)

    def _transfer(self, sender: bytes, recipient: bytes, value: int) -> bool:
        """Move ``value`` wei; returns False if the sender cannot pay."""
        sender_info = self.state.load_account(sender)
        if sender_info.balance < value:
            return False
        sender_info.balance -= value
        self.state.load_account(recipient).balance += value
        return True

    # -----------------------------------------------------------------
    # Host: storage
    # -----------------------------------------------------------------

    def sload(self, address: bytes, key: int) -> tuple[int, bool]:
        is_cold = not self.access_sets.mark_warm_storage(address, key)
        return self.state.storage(address, key), is_cold

    def storage_original(self, address: bytes, key: int) -> int:
        slot = (address, key)
        if slot not in self._original_storage:
            # First write in this transaction: current is still original
            self._original_storage[slot] = self.state.storage(address, key)
        return self._original_storage[slot]

    def sstore(self, address: bytes, key: int, value: int) -> None:
        self.state.set_storage(address, key, value)

    def get_storage(self, address: bytes, key: int) -> int:
        return self.state.storage(address, key)

    def tload(self, address: bytes, key: int) -> int:
        return self._transient.get((address, key), 0)

    def tstore(self, address: bytes, key: int, value: int) -> None:
        self._transient[(address, key)] = value

    def log(self, log: Log) -> None:
        self.logs.append(log)

    def selfdestruct(self, address: bytes, target: bytes) -> bool:
        previously_destroyed = address in self.selfdestructs
        info = self.state.load_account(address)
        balance, info.balance = info.balance, 0
        if target != address:
            self.state.load_account(target).balance += balance
        self.selfdestructs.add(address)
        return previously_destroyed

    # -----------------------------------------------------------------
    # Snapshots for call-level rollback
    # -----------------------------------------------------------------

    def snapshot(self) -> int:
        snap = {
            "state": self.state.snapshot(),
            "logs_count": len(self.logs),
            "selfdestructs": set(self.selfdestructs),
            "created": set(self.created),
            "transient": dict(self._transient),
            "access_sets": self.access_sets.snapshot(),
        }
        self._snapshots.append(snap)
        return len(self._snapshots) - 1

    def rollback(self, snap_id: int) -> None:
        snap = self._snapshots[snap_id]
        self.state.restore(snap["state"])
        self.logs = self.logs[: snap["logs_count"]]
        self.selfdestructs = snap["selfdestructs"]
        self.created = snap["created"]
        self._transient = snap["transient"]
        self.access_sets.restore(snap["access_sets"])
        self._snapshots = self._snapshots[:snap_id]

    def commit(self, snap_id: int) -> None:
        self._snapshots = self._snapshots[:snap_id]

    # -----------------------------------------------------------------
    # Frame execution
    # -----------------------------------------------------------------

    def _run_frame(self, interp: Interpreter) -> InstructionResult:
        self._frames += 1
        try:
            if self.inspector is not None:
                return interp.run_inspect(self)
            return interp.run(self)
        finally:
            self._frames -= 1

    def _too_deep(self) -> bool:
        return self._frames > CALL_STACK_LIMIT

    # -- CALL --

    def call(self, inputs: CallInputs) -> CallOutcome:
        """Execute CALL/CALLCODE/DELEGATECALL/STATICCALL."""
        if self._too_deep():
            return CallOutcome(InstructionResult.CALL_TOO_DEEP, Gas(inputs.gas_limit))

        if self.inspector is not None:
            self.inspector.call(inputs, self._frames)
        outcome = self._call(inputs)
        if self.inspector is not None:
            self.inspector.call_end(inputs, outcome, self._frames)
        return outcome

    def _call(self, inputs: CallInputs) -> CallOutcome:
        snap = self.snapshot()
        gas = Gas(inputs.gas_limit)

        # Transfer value
        if inputs.transfers_value and inputs.value > 0:
            if not self._transfer(inputs.caller, inputs.target, inputs.value):
                self.rollback(snap)
                return CallOutcome(InstructionResult.OUT_OF_FUNDS, gas)

        code = self.state.account_code(inputs.code_address)
        if not code:
            self.commit(snap)
            return CallOutcome(InstructionResult.STOP, gas)

        contract = Contract.from_raw(
            code,
            input=inputs.input,
            caller=inputs.caller,
            address=inputs.target,
            value=inputs.value,
            code_address=inputs.code_address,
            limit=len(code),
        )
        interp = Interpreter(
            contract, inputs.gas_limit, inputs.is_static, self._interpreter_config,
        )
        logger.debug(
            "Enter %s frame %d: 0x%s gas=%d",
            inputs.scheme.name, self._frames, inputs.code_address.hex(), inputs.gas_limit,
        )
        result = self._run_frame(interp)
        logger.debug(
            "Leave frame %d: %s gas_left=%d",
            self._frames, result.name, interp.gas.remaining,
        )

        if result.is_ok:
            self.commit(snap)
            return CallOutcome(result, interp.gas, interp.return_value())
        self.rollback(snap)
        if result.is_revert:
            return CallOutcome(result, interp.gas, interp.return_value())
        interp.gas.spend_all()
        return CallOutcome(result, interp.gas)

    # -- CREATE --

    def create(self, inputs: CreateInputs) -> CreateOutcome:
        """Execute CREATE or CREATE2."""
        if self._too_deep():
            return CreateOutcome(InstructionResult.CALL_TOO_DEEP, Gas(inputs.gas_limit))

        if self.inspector is not None:
            self.inspector.create(inputs, self._frames)
        outcome = self._create(inputs)
        if self.inspector is not None:
            self.inspector.create_end(inputs, outcome, self._frames)
        return outcome

    def _create(self, inputs: CreateInputs) -> CreateOutcome:
        gas = Gas(inputs.gas_limit)
        sender = self.state.load_account(inputs.caller)
        if sender.balance < inputs.value:
            return CreateOutcome(InstructionResult.OUT_OF_FUNDS, gas)
        if sender.nonce >= UINT64_MAX:
            return CreateOutcome(InstructionResult.NONCE_OVERFLOW, gas)

        # The sender's nonce bump survives a failed creation
        nonce = sender.nonce
        sender.nonce += 1

        if inputs.scheme is CreateScheme.CREATE2:
            address = create2_address(
                inputs.caller, inputs.salt or 0, keccak256(inputs.init_code),
            )
        else:
            address = create_address(inputs.caller, nonce)
        self.access_sets.mark_warm_address(address)

        snap = self.snapshot()

        existing = self.state.basic(address)
        if existing is not None and (existing.nonce != 0 or existing.has_code()):
            logger.debug("Create rejected: collision at 0x%s", address.hex())
            self.rollback(snap)
            gas.spend_all()
            return CreateOutcome(InstructionResult.CREATE_COLLISION, gas)

        # EIP-161: new contracts start at nonce 1
        if self.revision >= Revision.SPURIOUS_DRAGON:
            self.state.set_nonce(address, 1)
        self._transfer(inputs.caller, address, inputs.value)
        self.created.add(address)

        contract = Contract.from_raw(
            inputs.init_code,
            caller=inputs.caller,
            address=address,
            value=inputs.value,
            limit=len(inputs.init_code),
        )
        interp = Interpreter(contract, inputs.gas_limit, False, self._interpreter_config)
        logger.debug(
            "Enter %s frame %d: 0x%s gas=%d",
            inputs.scheme.name, self._frames, address.hex(), inputs.gas_limit,
        )
        result = self._run_frame(interp)
        logger.debug(
            "Leave frame %d: %s gas_left=%d",
            self._frames, result.name, interp.gas.remaining,
        )

        if result.is_ok:
            result = self._deposit_code(interp, address)
            if result.is_ok:
                self.commit(snap)
                return CreateOutcome(result, interp.gas, address)

        self.rollback(snap)
        if result.is_revert:
            return CreateOutcome(result, interp.gas, None, interp.return_value())
        interp.gas.spend_all()
        return CreateOutcome(result, interp.gas)

    def _deposit_code(self, interp: Interpreter, address: bytes) -> InstructionResult:
        """Validate and store the code returned by init code."""
        code = interp.return_value()
        # EIP-3541: reject code starting with 0xEF
        if code and code[0] == 0xEF and self.revision >= Revision.LONDON:
            logger.debug("Create rejected: code at 0x%s starts with 0xEF", address.hex())
            return InstructionResult.CREATE_CONTRACT_STARTING_WITH_EF
        # EIP-170: max code size
        limit = self.config.limit_contract_code_size
        if len(code) > limit and self.revision >= Revision.SPURIOUS_DRAGON:
            logger.debug(
                "Create rejected: code size %d exceeds %d", len(code), limit,
            )
            return InstructionResult.CREATE_CONTRACT_SIZE_LIMIT
        try:
            interp.gas.charge(G_CODEDEPOSIT * len(code))
        except OutOfGas:
            logger.debug("Create rejected: cannot pay code deposit of %d bytes", len(code))
            return InstructionResult.OUT_OF_GAS
        self.state.set_code(address, code)
        return interp.instruction_result

    # -----------------------------------------------------------------
    # Transaction boundaries
    # -----------------------------------------------------------------

    def begin_transaction(self, caller: bytes, to: Optional[bytes]) -> None:
        """Reset per-transaction state and pre-warm the fixed addresses."""
        self.logs = []
        self._transient = {}
        self._original_storage = {}
        self.selfdestructs = set()
        self.created = set()
        self._snapshots = []
        self.access_sets = AccessSets()
        self.access_sets.mark_warm_address(caller)
        if to is not None:
            self.access_sets.mark_warm_address(to)
        # EIP-3651: warm COINBASE
        if self.revision >= Revision.SHANGHAI:
            self.access_sets.mark_warm_address(self.block_env.coinbase)

    def finish_transaction(self) -> None:
        """Delete accounts scheduled by SELFDESTRUCT."""
        for address in self.selfdestructs:
            # EIP-6780: only accounts created in this transaction go away
            if self.revision < Revision.CANCUN or address in self.created:
                self.state.delete_account(address)
        self.selfdestructs = set()


# ---------------------------------------------------------------------------
# Transaction execution
# ---------------------------------------------------------------------------

@dataclass
class ExecutionResult:
    result: InstructionResult
    gas_used: int = 0
    gas_refunded: int = 0
    output: bytes = b""
    logs: list[Log] = field(default_factory=list)
    created_address: Optional[bytes] = None

    @property
    def success(self) -> bool:
        return self.result.is_ok


def transact(
    env: ExecutionEnvironment,
    caller: bytes,
    to: Optional[bytes],
    value: int,
    data: bytes,
    gas_limit: int,
) -> ExecutionResult:
    """Execute a transaction and return the result.

    Args:
        env: execution environment with world state
        caller: sender address (20 bytes)
        to: recipient address (None for contract creation)
        value: wei to transfer
        data: calldata or init code
        gas_limit: gas available to the outermost frame
    """
    if gas_limit > UINT64_MAX:
        raise ValueError(f"Gas limit {gas_limit} does not fit in 64 bits")

    env.begin_transaction(caller, to)
    created_address = None

    if to is None:
        if (
            env.revision >= Revision.SHANGHAI
            and len(data) > env.config.limit_initcode_size
        ):
            return ExecutionResult(
                InstructionResult.CREATE_INIT_CODE_SIZE_LIMIT, gas_used=gas_limit,
            )
        outcome = env.create(CreateInputs(
            scheme=CreateScheme.CREATE,
            caller=caller,
            value=value,
            init_code=data,
            gas_limit=gas_limit,
        ))
        created_address = outcome.address
    else:
        outcome = env.call(CallInputs(
            scheme=CallScheme.CALL,
            target=to,
            code_address=to,
            caller=caller,
            input=data,
            gas_limit=gas_limit,
            value=value,
        ))

    result = outcome.result
    gas = outcome.gas
    refunded = 0
    if result.is_ok:
        gas.finalize(env.revision.refund_quotient)
        refunded = gas.refunded
        env.finish_transaction()
    else:
        env.selfdestructs = set()

    return ExecutionResult(
        result=result,
        gas_used=gas.limit - gas.remaining,
        gas_refunded=refunded,
        output=outcome.output,
        logs=list(env.logs) if result.is_ok else [],
        created_address=created_address,
    )
