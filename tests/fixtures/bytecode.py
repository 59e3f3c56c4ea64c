"""Helpers for assembling bytecode and running it in a single frame."""

from typing import Optional

from ethvm.common.config import LATEST, Revision
from ethvm.evm import ExecutionEnvironment
from ethvm.vm.contract import Contract
from ethvm.vm.interpreter import Interpreter, InterpreterConfig
from ethvm.vm.opcodes import Op

from .addresses import ALICE_ADDRESS, CONTRACT_ADDRESS


def bytecode(*ops) -> bytes:
    """Build bytecode from a mix of ints (opcodes) and bytes."""
    result = bytearray()
    for op in ops:
        if isinstance(op, int):
            result.append(op)
        elif isinstance(op, (bytes, bytearray)):
            result.extend(op)
    return bytes(result)


def push(value: int, n: int = 0) -> bytes:
    """Create PUSH instruction. Auto-selects PUSH width if n=0."""
    if value == 0 and n == 0:
        return bytes([Op.PUSH0])
    if n == 0:
        n = max(1, (value.bit_length() + 7) // 8)
    return bytes([Op.PUSH1 + n - 1]) + value.to_bytes(n, "big")


def word(value: int) -> bytes:
    """A 32-byte big-endian calldata word."""
    return value.to_bytes(32, "big")


def deploy_code(runtime: bytes) -> bytes:
    """Init code that returns ``runtime`` as the deployed code."""
    size = len(runtime)
    # PUSH2 size, PUSH1 offset, PUSH1 0, CODECOPY, PUSH2 size, PUSH1 0, RETURN
    prefix_len = 14
    return bytecode(
        push(size, 2), push(prefix_len, 1), push(0, 1), Op.CODECOPY,
        push(size, 2), push(0, 1), Op.RETURN,
    ) + runtime


def run_code(
    code: bytes,
    gas: int = 100_000,
    env: Optional[ExecutionEnvironment] = None,
    revision: Revision = LATEST,
    is_static: bool = False,
    calldata: bytes = b"",
    value: int = 0,
    memory_limit: Optional[int] = None,
) -> Interpreter:
    """Run ``code`` as a single top-level frame and return the interpreter."""
    if env is None:
        env = ExecutionEnvironment()
    contract = Contract.from_raw(
        code, input=calldata, caller=ALICE_ADDRESS, address=CONTRACT_ADDRESS, value=value,
    )
    config = InterpreterConfig(revision=revision, memory_limit=memory_limit)
    interp = Interpreter(contract, gas, is_static=is_static, config=config)
    interp.run(env)
    return interp
