"""
Instruction results and the exceptions that produce them.

Every halting condition is an EvmError subclass carrying the
InstructionResult it maps to. Handlers raise; Interpreter.step catches and
stores ``exc.result`` so the control loop only ever sees result tags.
"""

from __future__ import annotations

from enum import Enum


class InstructionResult(Enum):
    CONTINUE = "continue"

    # Intentional termination
    STOP = "stop"
    RETURN = "return"
    SELF_DESTRUCT = "self_destruct"
    REVERT = "revert"

    # Faults
    OUT_OF_GAS = "out_of_gas"
    MEMORY_LIMIT_EXCEEDED = "memory_limit_exceeded"
    STACK_OVERFLOW = "stack_overflow"
    STACK_UNDERFLOW = "stack_underflow"
    INVALID_JUMP = "invalid_jump"
    INVALID_OPCODE = "invalid_opcode"
    DESIGNATED_INVALID = "designated_invalid"
    NOT_ACTIVATED = "not_activated"
    CALL_TOO_DEEP = "call_too_deep"
    OUT_OF_FUNDS = "out_of_funds"
    OUT_OF_OFFSET = "out_of_offset"
    NONCE_OVERFLOW = "nonce_overflow"
    CREATE_COLLISION = "create_collision"
    CREATE_CONTRACT_SIZE_LIMIT = "create_contract_size_limit"
    CREATE_INIT_CODE_SIZE_LIMIT = "create_init_code_size_limit"
    CREATE_CONTRACT_STARTING_WITH_EF = "create_contract_starting_with_ef"
    STATE_CHANGE_DURING_STATIC_CALL = "state_change_during_static_call"
    CALL_NOT_ALLOWED_INSIDE_STATIC = "call_not_allowed_inside_static"
    FATAL_EXTERNAL_ERROR = "fatal_external_error"

    @property
    def is_ok(self) -> bool:
        return self in _OK

    @property
    def is_revert(self) -> bool:
        return self is InstructionResult.REVERT

    @property
    def is_error(self) -> bool:
        return not (self.is_ok or self.is_revert or self is InstructionResult.CONTINUE)


_OK = frozenset({
    InstructionResult.STOP,
    InstructionResult.RETURN,
    InstructionResult.SELF_DESTRUCT,
})


class EvmError(Exception):
    """Base class for everything that halts a frame."""

    result = InstructionResult.FATAL_EXTERNAL_ERROR


# -- Intentional termination --

class Stop(EvmError):
    result = InstructionResult.STOP


class ReturnHalt(EvmError):
    """RETURN. Output is read from Interpreter.return_range."""
    result = InstructionResult.RETURN


class RevertHalt(EvmError):
    """REVERT. Output is kept, unused gas is given back to the caller."""
    result = InstructionResult.REVERT


class SelfDestructHalt(EvmError):
    result = InstructionResult.SELF_DESTRUCT


# -- Resource exhaustion --

class OutOfGas(EvmError):
    result = InstructionResult.OUT_OF_GAS


class MemoryLimitExceeded(EvmError):
    result = InstructionResult.MEMORY_LIMIT_EXCEEDED


class StackOverflow(EvmError):
    result = InstructionResult.STACK_OVERFLOW


class StackUnderflow(EvmError):
    result = InstructionResult.STACK_UNDERFLOW


class CallTooDeep(EvmError):
    result = InstructionResult.CALL_TOO_DEEP


# -- Malformed program --

class InvalidJump(EvmError):
    result = InstructionResult.INVALID_JUMP


class InvalidOpcode(EvmError):
    result = InstructionResult.INVALID_OPCODE


class DesignatedInvalid(EvmError):
    """The INVALID (0xFE) instruction."""
    result = InstructionResult.DESIGNATED_INVALID


class NotActivated(EvmError):
    """Opcode exists but not in the configured revision."""
    result = InstructionResult.NOT_ACTIVATED


class InitCodeSizeLimit(EvmError):
    result = InstructionResult.CREATE_INIT_CODE_SIZE_LIMIT


class OutOfOffset(EvmError):
    """RETURNDATACOPY past the end of the return data buffer."""
    result = InstructionResult.OUT_OF_OFFSET


# -- Static context --

class StateChangeDuringStaticCall(EvmError):
    result = InstructionResult.STATE_CHANGE_DURING_STATIC_CALL


class CallNotAllowedInsideStatic(EvmError):
    result = InstructionResult.CALL_NOT_ALLOWED_INSIDE_STATIC


class MemoryAccessError(Exception):
    """Memory touched outside its current length without resizing first.

    A handler bug, not an execution outcome: it is not an EvmError and
    propagates out of the interpreter.
    """
