"""
Contract: the bytecode context of one frame.

Wraps analysed bytecode with the invocation parameters (input, caller,
callee, value). Exclusively owned by one Interpreter and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass

from ethvm.common.config import MAX_INITCODE_SIZE
from ethvm.common.types import ZERO_ADDRESS
from ethvm.vm.analysis import BytecodeLocked, analyze


@dataclass(frozen=True)
class Contract:
    bytecode: BytecodeLocked
    input: bytes = b""
    caller: bytes = ZERO_ADDRESS
    # Account whose storage and balance the code acts on
    address: bytes = ZERO_ADDRESS
    # Account the code was loaded from (differs for DELEGATECALL/CALLCODE)
    code_address: bytes = ZERO_ADDRESS
    value: int = 0

    @classmethod
    def from_raw(
        cls,
        code: bytes,
        input: bytes = b"",
        caller: bytes = ZERO_ADDRESS,
        address: bytes = ZERO_ADDRESS,
        value: int = 0,
        code_address: bytes | None = None,
        limit: int = MAX_INITCODE_SIZE,
    ) -> Contract:
        """Analyse raw code and build a Contract.

        Raises InitCodeSizeLimit if the code is larger than ``limit``.
        """
        return cls(
            bytecode=analyze(code, limit),
            input=bytes(input),
            caller=caller,
            address=address,
            code_address=address if code_address is None else code_address,
            value=value,
        )

    @property
    def code(self) -> bytes:
        """Original (unpadded) code."""
        return self.bytecode.original_bytes

    def is_valid_jump(self, position: int) -> bool:
        return self.bytecode.is_valid_jump(position)
