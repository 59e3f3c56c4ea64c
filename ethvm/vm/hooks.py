"""
EVM inspection hooks.

Provides extension points for tracing and debugging without modifying the
interpreter. The reference host forwards its step/step_end and frame
events to an Inspector; the base class does nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ethvm.vm.exceptions import InstructionResult
from ethvm.vm.opcodes import opcode_name

if TYPE_CHECKING:
    from ethvm.vm.host import (
        CallInputs,
        CallOutcome,
        CreateInputs,
        CreateOutcome,
        Host,
    )
    from ethvm.vm.interpreter import Interpreter

logger = logging.getLogger(__name__)


class Inspector:
    """Base inspector interface. Override methods to observe execution."""

    def step(self, interp: Interpreter, host: Host) -> InstructionResult:
        """Called before each instruction. Non-CONTINUE halts the frame."""
        return InstructionResult.CONTINUE

    def step_end(
        self, interp: Interpreter, host: Host, result: InstructionResult,
    ) -> InstructionResult:
        """Called after each instruction. Non-CONTINUE halts the frame."""
        return InstructionResult.CONTINUE

    def call(self, inputs: CallInputs, depth: int) -> None:
        """Called before entering a message-call frame."""
        pass

    def call_end(self, inputs: CallInputs, outcome: CallOutcome, depth: int) -> None:
        """Called after a message-call frame returned."""
        pass

    def create(self, inputs: CreateInputs, depth: int) -> None:
        """Called before running init code."""
        pass

    def create_end(self, inputs: CreateInputs, outcome: CreateOutcome, depth: int) -> None:
        """Called after init code ran and its output was deployed or rejected."""
        pass


@dataclass
class TraceStep:
    pc: int
    op: str
    gas: int
    gas_cost: int
    stack: list[int]
    memory_size: int
    depth: int
    result: InstructionResult = InstructionResult.CONTINUE


class TracingInspector(Inspector):
    """Collects one TraceStep per executed instruction.

    With ``halt_at`` set, the run stops with ``halt_result`` once that many
    instructions have executed.
    """

    def __init__(
        self,
        halt_at: Optional[int] = None,
        halt_result: InstructionResult = InstructionResult.STOP,
    ) -> None:
        self.steps: list[TraceStep] = []
        self.halt_at = halt_at
        self.halt_result = halt_result
        self._pending: list[tuple[TraceStep, int]] = []

    def step(self, interp: Interpreter, host: Host) -> InstructionResult:
        if self.halt_at is not None and len(self.steps) >= self.halt_at:
            return self.halt_result
        trace = TraceStep(
            pc=interp.pc,
            op=opcode_name(interp.current_opcode()),
            gas=interp.gas.remaining,
            gas_cost=0,
            stack=interp.stack.to_list(),
            memory_size=interp.memory.size,
            depth=host.depth,
        )
        self.steps.append(trace)
        # Nested frames run between step and step_end of a CALL
        self._pending.append((trace, interp.gas.remaining))
        return InstructionResult.CONTINUE

    def step_end(
        self, interp: Interpreter, host: Host, result: InstructionResult,
    ) -> InstructionResult:
        trace, gas_before = self._pending.pop()
        trace.gas_cost = gas_before - interp.gas.remaining
        trace.result = result
        logger.debug(
            "depth=%d pc=%d op=%s gas=%d cost=%d stack=%d",
            trace.depth, trace.pc, trace.op, trace.gas, trace.gas_cost,
            len(trace.stack),
        )
        return InstructionResult.CONTINUE

    def call(self, inputs: CallInputs, depth: int) -> None:
        logger.debug(
            "%s into 0x%s at depth %d with gas %d",
            inputs.scheme.name, inputs.code_address.hex(), depth, inputs.gas_limit,
        )

    def create(self, inputs: CreateInputs, depth: int) -> None:
        logger.debug(
            "%s from 0x%s at depth %d with gas %d",
            inputs.scheme.name, inputs.caller.hex(), depth, inputs.gas_limit,
        )

    def opcodes(self) -> list[str]:
        return [trace.op for trace in self.steps]
