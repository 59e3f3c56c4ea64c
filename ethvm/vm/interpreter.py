"""
Interpreter: the per-frame control loop.

One Interpreter executes one frame: it owns the stack, memory and gas
ledger, borrows the analysed Contract, and drives fetch → advance pc →
dispatch until an instruction halts the frame. Handlers signal every halt
by raising an EvmError; step() turns it into ``instruction_result``.
Nested calls and creates are delegated to the Host, which builds fresh
Interpreters for child frames.
"""

from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ethvm.common.config import LATEST, MAX_INITCODE_SIZE, Revision
from ethvm.common.types import UINT64_MAX
from ethvm.vm.contract import Contract
from ethvm.vm.exceptions import (
    EvmError,
    InstructionResult,
    MemoryLimitExceeded,
    OutOfGas,
)
from ethvm.vm.gas import Gas, memory_cost
from ethvm.vm.memory import Memory, next_multiple_of_32
from ethvm.vm.opcodes import eval_instruction
from ethvm.vm.stack import Stack

if TYPE_CHECKING:
    from ethvm.metrics.recorder import OpcodeRecorder
    from ethvm.vm.host import Host


# ``return_range.start`` value meaning "no output"
RETURN_RANGE_EMPTY = UINT64_MAX
EMPTY_RETURN_RANGE = range(RETURN_RANGE_EMPTY, RETURN_RANGE_EMPTY)

# Offsets at or beyond this can never be paid for
_MAX_MEMORY_OFFSET = 1 << 64


@dataclass
class InterpreterConfig:
    revision: Revision = LATEST
    # Hard ceiling on memory size in bytes, independent of gas
    memory_limit: Optional[int] = None
    limit_initcode_size: int = MAX_INITCODE_SIZE
    recorder: Optional[OpcodeRecorder] = None


class Interpreter:
    """Executes one frame of EVM bytecode."""

    def __init__(
        self,
        contract: Contract,
        gas_limit: int,
        is_static: bool = False,
        config: Optional[InterpreterConfig] = None,
    ) -> None:
        self.contract = contract
        # Padded code: the cursor never runs off the end
        self.bytecode: bytes = contract.bytecode.bytecode
        self.pc = 0
        self.gas = Gas(gas_limit)
        self.stack = Stack()
        self.memory = Memory()
        self.is_static = is_static
        self.config = config if config is not None else InterpreterConfig()
        self.instruction_result = InstructionResult.CONTINUE
        self.return_range: range = range(0)
        self.return_data_buffer = b""

    # -----------------------------------------------------------------
    # Memory
    # -----------------------------------------------------------------

    def memory_expansion(self, *ranges: tuple[int, int]) -> tuple[int, int]:
        """Price the growth needed to cover every ``(offset, size)`` range.

        Returns ``(cost, new_len)`` without touching the gas ledger or the
        buffer; cost is 0 when memory is already large enough. Raises
        OutOfGas for an end offset that can never be paid for and
        MemoryLimitExceeded when the configured ceiling would be crossed.
        """
        new_len = self.memory.size
        for offset, size in ranges:
            if size == 0:
                continue
            end = offset + size
            if end > _MAX_MEMORY_OFFSET:
                raise OutOfGas(f"Memory offset {end} out of range")
            new_len = max(new_len, next_multiple_of_32(end))
        if new_len == self.memory.size:
            return 0, new_len
        limit = self.config.memory_limit
        if limit is not None and new_len > limit:
            raise MemoryLimitExceeded(
                f"Memory size {new_len} exceeds limit {limit}"
            )
        return self.gas.memory_growth(memory_cost(new_len // 32)), new_len

    def grow_memory(self, cost: int, new_len: int) -> None:
        """Apply a growth priced by memory_expansion() and already charged."""
        if new_len > self.memory.size:
            self.gas.memory += cost
            self.memory.resize_to(new_len)

    def charge_with_memory(self, amount: int, *ranges: tuple[int, int]) -> None:
        """Charge ``amount`` plus the growth for ``ranges`` at once, then grow.

        Neither the gas ledger nor the buffer changes when this raises.
        """
        cost, new_len = self.memory_expansion(*ranges)
        self.gas.charge(amount + cost)
        self.grow_memory(cost, new_len)

    def expand_memory(self, offset: int, size: int) -> None:
        """Make [offset, offset + size) addressable, billing the growth."""
        self.charge_with_memory(0, (offset, size))

    def set_empty_return_range(self) -> None:
        self.return_range = EMPTY_RETURN_RANGE

    def return_value(self) -> bytes:
        """Bytes selected by the last RETURN or REVERT."""
        start = self.return_range.start
        if start == RETURN_RANGE_EMPTY or len(self.return_range) == 0:
            return b""
        return self.memory.get_slice(start, len(self.return_range))

    # -----------------------------------------------------------------
    # Control loop
    # -----------------------------------------------------------------

    @property
    def program_counter(self) -> int:
        return self.pc

    def current_opcode(self) -> int:
        return self.bytecode[self.pc]

    def step(self, host: Host) -> None:
        """Execute one instruction."""
        opcode = self.bytecode[self.pc]
        self.pc += 1
        recorder = self.config.recorder
        if recorder is None:
            try:
                eval_instruction(opcode, self, host)
            except EvmError as exc:
                self.instruction_result = exc.result
            return

        remaining, refunded = self.gas.remaining, self.gas.refunded
        try:
            eval_instruction(opcode, self, host)
        except EvmError as exc:
            self.instruction_result = exc.result
        finally:
            recorder.record(
                opcode,
                remaining - self.gas.remaining,
                self.gas.refunded - refunded,
            )

    def _recording(self):
        recorder = self.config.recorder
        return recorder.recording() if recorder is not None else nullcontext()

    def run(self, host: Host) -> InstructionResult:
        """Step until the frame halts and return the terminal result."""
        with self._recording():
            while self.instruction_result is InstructionResult.CONTINUE:
                self.step(host)
        return self.instruction_result

    def run_inspect(self, host: Host) -> InstructionResult:
        """Like run(), with host.step/step_end around every instruction.

        A hook returning anything but CONTINUE ends the frame with that
        result.
        """
        with self._recording():
            while self.instruction_result is InstructionResult.CONTINUE:
                result = host.step(self)
                if result is not InstructionResult.CONTINUE:
                    self.instruction_result = result
                    break
                self.step(host)
                result = host.step_end(self, self.instruction_result)
                if result is not InstructionResult.CONTINUE:
                    self.instruction_result = result
        return self.instruction_result

    def __repr__(self) -> str:
        return (
            f"Interpreter(pc={self.pc}, result={self.instruction_result.name}, "
            f"gas={self.gas.remaining}, stack={len(self.stack)})"
        )
