"""
EVM opcode definitions, handlers and the dispatch table.

Each handler takes the Interpreter and the Host. By the time a handler runs
the dispatcher has already advanced the pc past the opcode byte, checked
that the stack holds ``stack_in`` items with room for ``stack_out``, and
charged ``base_gas``. Handlers read their operands with ``peek`` and only
pop once every charge and check that can fail has passed, so a faulting
instruction leaves the stack and memory as it found them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from ethvm.common.config import CALL_STACK_LIMIT, Revision
from ethvm.common.crypto import keccak256
from ethvm.common.types import (
    UINT256_CEIL,
    UINT256_MAX,
    Log,
    address_to_word,
    to_address,
)
from ethvm.vm.exceptions import (
    CallNotAllowedInsideStatic,
    DesignatedInvalid,
    InitCodeSizeLimit,
    InstructionResult,
    InvalidJump,
    InvalidOpcode,
    NotActivated,
    OutOfGas,
    OutOfOffset,
    ReturnHalt,
    RevertHalt,
    SelfDestructHalt,
    StateChangeDuringStaticCall,
    Stop,
)
from ethvm.vm.gas import (
    G_BASE,
    G_BLOCKHASH,
    G_CALLSTIPEND,
    G_COLD_ACCOUNT_ACCESS,
    G_COLD_SLOAD,
    G_CREATE,
    G_EXP,
    G_HIGH,
    G_JUMPDEST,
    G_KECCAK256,
    G_KECCAK256_WORD,
    G_LOG,
    G_LOG_DATA,
    G_LOG_TOPIC,
    G_LOW,
    G_MID,
    G_NEW_ACCOUNT,
    G_SELFDESTRUCT,
    G_VERY_LOW,
    G_WARM_ACCESS,
    G_ZERO,
    Gas,
    account_access_gas,
    all_but_one_64th,
    call_gas,
    copy_gas,
    exp_gas,
    init_code_word_cost,
    memory_word_size,
    sstore_gas,
)
from ethvm.vm.host import (
    CallInputs,
    CallOutcome,
    CallScheme,
    CreateInputs,
    CreateOutcome,
    CreateScheme,
)

if TYPE_CHECKING:
    from ethvm.vm.host import Host
    from ethvm.vm.interpreter import Interpreter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_signed(value: int) -> int:
    """Convert uint256 to signed int256."""
    if value >= (1 << 255):
        return value - UINT256_CEIL
    return value


def _to_unsigned(value: int) -> int:
    """Convert signed int256 to uint256."""
    return value % UINT256_CEIL


def _require_non_static(interp: Interpreter, name: str) -> None:
    if interp.is_static:
        raise StateChangeDuringStaticCall(f"{name} in static call")


# Nested results after which the unused child gas goes back to the caller
_GAS_RETURNED = frozenset({
    InstructionResult.STOP,
    InstructionResult.RETURN,
    InstructionResult.SELF_DESTRUCT,
    InstructionResult.REVERT,
    InstructionResult.CALL_TOO_DEEP,
    InstructionResult.OUT_OF_FUNDS,
})


# ---------------------------------------------------------------------------
# Opcode enum / names
# ---------------------------------------------------------------------------

# fmt: off
class Op:
    STOP            = 0x00
    ADD             = 0x01
    MUL             = 0x02
    SUB             = 0x03
    DIV             = 0x04
    SDIV            = 0x05
    MOD             = 0x06
    SMOD            = 0x07
    ADDMOD          = 0x08
    MULMOD          = 0x09
    EXP             = 0x0A
    SIGNEXTEND      = 0x0B
    LT              = 0x10
    GT              = 0x11
    SLT             = 0x12
    SGT             = 0x13
    EQ              = 0x14
    ISZERO          = 0x15
    AND             = 0x16
    OR              = 0x17
    XOR             = 0x18
    NOT             = 0x19
    BYTE            = 0x1A
    SHL             = 0x1B
    SHR             = 0x1C
    SAR             = 0x1D
    KECCAK256       = 0x20
    ADDRESS         = 0x30
    BALANCE         = 0x31
    ORIGIN          = 0x32
    CALLER          = 0x33
    CALLVALUE       = 0x34
    CALLDATALOAD    = 0x35
    CALLDATASIZE    = 0x36
    CALLDATACOPY    = 0x37
    CODESIZE        = 0x38
    CODECOPY        = 0x39
    GASPRICE        = 0x3A
    EXTCODESIZE     = 0x3B
    EXTCODECOPY     = 0x3C
    RETURNDATASIZE  = 0x3D
    RETURNDATACOPY  = 0x3E
    EXTCODEHASH     = 0x3F
    BLOCKHASH       = 0x40
    COINBASE        = 0x41
    TIMESTAMP       = 0x42
    NUMBER          = 0x43
    PREVRANDAO      = 0x44  # was DIFFICULTY pre-merge
    GASLIMIT        = 0x45
    CHAINID         = 0x46
    SELFBALANCE     = 0x47
    BASEFEE         = 0x48
    POP             = 0x50
    MLOAD           = 0x51
    MSTORE          = 0x52
    MSTORE8         = 0x53
    SLOAD           = 0x54
    SSTORE          = 0x55
    JUMP            = 0x56
    JUMPI           = 0x57
    PC              = 0x58
    MSIZE           = 0x59
    GAS             = 0x5A
    JUMPDEST        = 0x5B
    TLOAD           = 0x5C
    TSTORE          = 0x5D
    MCOPY           = 0x5E
    PUSH0           = 0x5F
    PUSH1           = 0x60
    PUSH2           = 0x61
    PUSH32          = 0x7F
    DUP1            = 0x80
    DUP16           = 0x8F
    SWAP1           = 0x90
    SWAP16          = 0x9F
    LOG0            = 0xA0
    LOG1            = 0xA1
    LOG2            = 0xA2
    LOG3            = 0xA3
    LOG4            = 0xA4
    CREATE          = 0xF0
    CALL            = 0xF1
    CALLCODE        = 0xF2
    RETURN          = 0xF3
    DELEGATECALL    = 0xF4
    CREATE2         = 0xF5
    STATICCALL      = 0xFA
    REVERT          = 0xFD
    INVALID         = 0xFE
    SELFDESTRUCT    = 0xFF
# fmt: on


# ---------------------------------------------------------------------------
# Opcode handlers
# ---------------------------------------------------------------------------

def op_stop(interp, host):
    raise Stop()


# -- Arithmetic --

def op_add(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push((a + b) % UINT256_CEIL)


def op_mul(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push((a * b) % UINT256_CEIL)


def op_sub(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push((a - b) % UINT256_CEIL)


def op_div(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(a // b if b != 0 else 0)


def op_sdiv(interp, host):
    a, b = interp.stack.pop_n(2)
    if b == 0:
        interp.stack.push(0)
        return
    sa, sb = _to_signed(a), _to_signed(b)
    if sa == -(1 << 255) and sb == -1:
        interp.stack.push(1 << 255)  # overflow case
        return
    sign = -1 if (sa < 0) ^ (sb < 0) else 1
    interp.stack.push(_to_unsigned(sign * (abs(sa) // abs(sb))))


def op_mod(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(a % b if b != 0 else 0)


def op_smod(interp, host):
    a, b = interp.stack.pop_n(2)
    if b == 0:
        interp.stack.push(0)
        return
    sa, sb = _to_signed(a), _to_signed(b)
    sign = -1 if sa < 0 else 1
    interp.stack.push(_to_unsigned(sign * (abs(sa) % abs(sb))))


def op_addmod(interp, host):
    a, b, n = interp.stack.pop_n(3)
    interp.stack.push((a + b) % n if n != 0 else 0)


def op_mulmod(interp, host):
    a, b, n = interp.stack.pop_n(3)
    interp.stack.push((a * b) % n if n != 0 else 0)


def op_exp(interp, host):
    interp.gas.charge(exp_gas(interp.stack.peek(1)) - G_EXP)  # base already charged
    base, exponent = interp.stack.pop_n(2)
    interp.stack.push(pow(base, exponent, UINT256_CEIL))


def op_signextend(interp, host):
    b, x = interp.stack.pop_n(2)
    if b < 31:
        bit = b * 8 + 7
        mask = (1 << bit) - 1
        if x & (1 << bit):
            x |= UINT256_MAX - mask
        else:
            x &= mask
    interp.stack.push(x)


# -- Comparison & Bitwise --

def op_lt(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(1 if a < b else 0)


def op_gt(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(1 if a > b else 0)


def op_slt(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(1 if _to_signed(a) < _to_signed(b) else 0)


def op_sgt(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(1 if _to_signed(a) > _to_signed(b) else 0)


def op_eq(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(1 if a == b else 0)


def op_iszero(interp, host):
    interp.stack.push(1 if interp.stack.pop() == 0 else 0)


def op_and(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(a & b)


def op_or(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(a | b)


def op_xor(interp, host):
    a, b = interp.stack.pop_n(2)
    interp.stack.push(a ^ b)


def op_not(interp, host):
    interp.stack.push(interp.stack.pop() ^ UINT256_MAX)


def op_byte(interp, host):
    i, x = interp.stack.pop_n(2)
    interp.stack.push((x >> (248 - i * 8)) & 0xFF if i < 32 else 0)


def op_shl(interp, host):
    shift, value = interp.stack.pop_n(2)
    interp.stack.push((value << shift) % UINT256_CEIL if shift < 256 else 0)


def op_shr(interp, host):
    shift, value = interp.stack.pop_n(2)
    interp.stack.push(value >> shift if shift < 256 else 0)


def op_sar(interp, host):
    shift, value = interp.stack.pop_n(2)
    signed = _to_signed(value)
    if shift >= 256:
        interp.stack.push(_to_unsigned(-1 if signed < 0 else 0))
    else:
        interp.stack.push(_to_unsigned(signed >> shift))


# -- Keccak256 --

def op_keccak256(interp, host):
    offset, size = interp.stack.peek_n(2)
    interp.charge_with_memory(G_KECCAK256_WORD * memory_word_size(size), (offset, size))
    interp.stack.pop_n(2)
    data = interp.memory.get_slice(offset, size)
    interp.stack.push(int.from_bytes(keccak256(data), "big"))


# -- Environment --

def op_address(interp, host):
    interp.stack.push(address_to_word(interp.contract.address))


def op_balance(interp, host):
    balance, is_cold = host.balance(to_address(interp.stack.peek()))
    interp.gas.charge(account_access_gas(not is_cold))
    interp.stack.set(0, balance)


def op_origin(interp, host):
    interp.stack.push(address_to_word(host.env.origin))


def op_caller(interp, host):
    interp.stack.push(address_to_word(interp.contract.caller))


def op_callvalue(interp, host):
    interp.stack.push(interp.contract.value)


def op_calldataload(interp, host):
    offset = interp.stack.pop()
    data = interp.contract.input
    chunk = data[offset : offset + 32] if offset < len(data) else b""
    interp.stack.push(int.from_bytes(chunk.ljust(32, b"\x00"), "big"))


def op_calldatasize(interp, host):
    interp.stack.push(len(interp.contract.input))


def _copy_to_memory(interp, data: bytes, n_args: int = 3, extra_gas: int = 0) -> None:
    """Copy ``data`` as directed by the last three of the top n_args operands.

    Those are (dest_offset, data_offset, size). The operands are popped once
    the copy, the memory growth and ``extra_gas`` are paid for.
    """
    dest_offset, data_offset, size = interp.stack.peek_n(n_args)[-3:]
    interp.charge_with_memory(copy_gas(size) + extra_gas, (dest_offset, size))
    interp.stack.pop_n(n_args)
    interp.memory.set_data(dest_offset, data_offset, size, data)


def op_calldatacopy(interp, host):
    _copy_to_memory(interp, interp.contract.input)


def op_codesize(interp, host):
    interp.stack.push(interp.contract.bytecode.len)


def op_codecopy(interp, host):
    _copy_to_memory(interp, interp.contract.code)


def op_gasprice(interp, host):
    interp.stack.push(host.env.gas_price)


def op_extcodesize(interp, host):
    code, is_cold = host.code(to_address(interp.stack.peek()))
    interp.gas.charge(account_access_gas(not is_cold))
    interp.stack.set(0, len(code))


def op_extcodecopy(interp, host):
    code, is_cold = host.code(to_address(interp.stack.peek()))
    _copy_to_memory(interp, code, 4, account_access_gas(not is_cold))


def op_returndatasize(interp, host):
    interp.stack.push(len(interp.return_data_buffer))


def op_returndatacopy(interp, host):
    _, data_offset, size = interp.stack.peek_n(3)
    if data_offset + size > len(interp.return_data_buffer):
        raise OutOfOffset("RETURNDATACOPY out of bounds")
    _copy_to_memory(interp, interp.return_data_buffer)


def op_extcodehash(interp, host):
    code_hash, is_cold = host.code_hash(to_address(interp.stack.peek()))
    interp.gas.charge(account_access_gas(not is_cold))
    interp.stack.set(0, int.from_bytes(code_hash, "big"))


# -- Block info --

def op_blockhash(interp, host):
    block_num = interp.stack.pop()
    current = host.env.number
    if block_num >= current or current - block_num > 256:
        interp.stack.push(0)
    else:
        interp.stack.push(int.from_bytes(host.block_hash(block_num), "big"))


def op_coinbase(interp, host):
    interp.stack.push(address_to_word(host.env.coinbase))


def op_timestamp(interp, host):
    interp.stack.push(host.env.timestamp)


def op_number(interp, host):
    interp.stack.push(host.env.number)


def op_prevrandao(interp, host):
    interp.stack.push(host.env.prevrandao)


def op_gaslimit(interp, host):
    interp.stack.push(host.env.gas_limit)


def op_chainid(interp, host):
    interp.stack.push(host.chain_id)


def op_selfbalance(interp, host):
    balance, _ = host.balance(interp.contract.address)
    interp.stack.push(balance)


def op_basefee(interp, host):
    interp.stack.push(host.env.base_fee)


# -- Stack, Memory, Storage, Flow --

def op_pop(interp, host):
    interp.stack.pop()


def op_mload(interp, host):
    offset = interp.stack.peek()
    interp.expand_memory(offset, 32)
    interp.stack.set(0, interp.memory.get_word(offset))


def op_mstore(interp, host):
    interp.expand_memory(interp.stack.peek(), 32)
    offset, value = interp.stack.pop_n(2)
    interp.memory.set_word(offset, value)


def op_mstore8(interp, host):
    interp.expand_memory(interp.stack.peek(), 1)
    offset, value = interp.stack.pop_n(2)
    interp.memory.set_byte(offset, value)


def op_sload(interp, host):
    value, is_cold = host.sload(interp.contract.address, interp.stack.peek())
    if is_cold:
        interp.gas.charge(G_COLD_SLOAD - G_WARM_ACCESS)
    interp.stack.set(0, value)


def op_sstore(interp, host):
    _require_non_static(interp, "SSTORE")
    # EIP-2200: fail if only the stipend is left
    if interp.gas.remaining <= G_CALLSTIPEND:
        raise OutOfGas("SSTORE with gas at or below the call stipend")
    key, new_value = interp.stack.peek_n(2)
    address = interp.contract.address
    current, is_cold = host.sload(address, key)
    original = host.storage_original(address, key)
    gas_cost, refund = sstore_gas(current, new_value, original, not is_cold)
    interp.gas.charge(gas_cost)
    interp.stack.pop_n(2)
    host.sstore(address, key, new_value)
    interp.gas.refund(refund)


def op_jump(interp, host):
    dest = interp.stack.peek()
    if not interp.contract.is_valid_jump(dest):
        raise InvalidJump(f"Invalid JUMP destination: {dest}")
    interp.stack.pop()
    interp.pc = dest


def op_jumpi(interp, host):
    dest, cond = interp.stack.peek_n(2)
    if cond != 0 and not interp.contract.is_valid_jump(dest):
        raise InvalidJump(f"Invalid JUMPI destination: {dest}")
    interp.stack.pop_n(2)
    if cond != 0:
        interp.pc = dest


def op_pc(interp, host):
    # pc already points past this opcode
    interp.stack.push(interp.pc - 1)


def op_msize(interp, host):
    interp.stack.push(interp.memory.size)


def op_gas(interp, host):
    interp.stack.push(interp.gas.remaining)


def op_jumpdest(interp, host):
    pass


def op_tload(interp, host):
    key = interp.stack.pop()
    interp.stack.push(host.tload(interp.contract.address, key))


def op_tstore(interp, host):
    _require_non_static(interp, "TSTORE")
    key, value = interp.stack.pop_n(2)
    host.tstore(interp.contract.address, key, value)


def op_mcopy(interp, host):
    dest, src, size = interp.stack.peek_n(3)
    interp.charge_with_memory(copy_gas(size), (dest, size), (src, size))
    interp.stack.pop_n(3)
    interp.memory.copy_within(dest, src, size)


# -- PUSH --

def op_push0(interp, host):
    interp.stack.push(0)


def _make_push(n: int):
    def op_push(interp, host):
        start = interp.pc
        # Analysis padding guarantees n bytes are readable
        interp.stack.push(int.from_bytes(interp.bytecode[start : start + n], "big"))
        interp.pc = start + n
    op_push.__name__ = f"op_push{n}"
    return op_push


# -- DUP --

def _make_dup(n: int):
    def op_dup(interp, host):
        interp.stack.dup(n)
    op_dup.__name__ = f"op_dup{n}"
    return op_dup


# -- SWAP --

def _make_swap(n: int):
    def op_swap(interp, host):
        interp.stack.swap(n)
    op_swap.__name__ = f"op_swap{n}"
    return op_swap


# -- LOG --

def _make_log(topic_count: int):
    def op_log(interp, host):
        _require_non_static(interp, f"LOG{topic_count}")
        offset, size = interp.stack.peek_n(2)
        interp.charge_with_memory(
            G_LOG_TOPIC * topic_count + G_LOG_DATA * size, (offset, size)
        )
        operands = interp.stack.pop_n(2 + topic_count)
        topics = [word.to_bytes(32, "big") for word in operands[2:]]
        data = interp.memory.get_slice(offset, size)
        host.log(Log(address=interp.contract.address, topics=topics, data=data))
    op_log.__name__ = f"op_log{topic_count}"
    return op_log


# -- System --

def _create(interp, host, scheme: CreateScheme):
    _require_non_static(interp, scheme.name)
    n_args = 4 if scheme is CreateScheme.CREATE2 else 3
    value, offset, size, *rest = interp.stack.peek_n(n_args)
    salt = rest[0] if rest else None

    cost = 0
    # EIP-3860: limit and meter initcode
    if size and interp.config.revision >= Revision.SHANGHAI:
        limit = interp.config.limit_initcode_size
        if size > limit:
            raise InitCodeSizeLimit(f"Init code size {size} exceeds {limit}")
        cost += init_code_word_cost(size)
    if scheme is CreateScheme.CREATE2:
        cost += G_KECCAK256_WORD * memory_word_size(size)
    memory_gas, new_len = interp.memory_expansion((offset, size))
    cost += memory_gas

    gas_limit = max(interp.gas.remaining - cost, 0)
    if interp.config.revision >= Revision.TANGERINE:
        gas_limit = all_but_one_64th(gas_limit)
    interp.gas.charge(cost + gas_limit)
    interp.grow_memory(memory_gas, new_len)
    interp.stack.pop_n(n_args)

    init_code = interp.memory.get_slice(offset, size)
    interp.return_data_buffer = b""

    inputs = CreateInputs(
        scheme=scheme,
        caller=interp.contract.address,
        value=value,
        init_code=init_code,
        gas_limit=gas_limit,
        salt=salt,
    )
    if host.depth >= CALL_STACK_LIMIT:
        outcome = CreateOutcome(InstructionResult.CALL_TOO_DEEP, Gas(gas_limit))
    else:
        outcome = host.create(inputs)

    result = outcome.result
    if result in _GAS_RETURNED:
        interp.gas.erase_cost(outcome.gas.remaining)
    if result.is_ok:
        interp.gas.refund(outcome.gas.refunded)
        interp.stack.push(address_to_word(outcome.address))
    else:
        if result.is_revert:
            interp.return_data_buffer = outcome.output
        interp.stack.push(0)


def op_create(interp, host):
    _create(interp, host, CreateScheme.CREATE)


def op_create2(interp, host):
    _create(interp, host, CreateScheme.CREATE2)


def _call(interp, host, scheme: CallScheme):
    stack = interp.stack
    if scheme in (CallScheme.CALL, CallScheme.CALLCODE):
        n_args = 7
        gas_req, to, value, *ranges = stack.peek_n(n_args)
    else:
        n_args = 6
        value = 0
        gas_req, to, *ranges = stack.peek_n(n_args)
    args_offset, args_size, ret_offset, ret_size = ranges

    if scheme is CallScheme.CALL and interp.is_static and value > 0:
        raise CallNotAllowedInsideStatic("CALL with value in static context")

    memory_gas, new_len = interp.memory_expansion(
        (args_offset, args_size), (ret_offset, ret_size)
    )
    addr = to_address(to)
    account = host.load_account(addr)
    cost = memory_gas + account_access_gas(not account.is_cold)

    has_value = value > 0
    is_new = scheme is CallScheme.CALL and has_value and account.is_empty
    total_cost, callee_gas = call_gas(
        max(interp.gas.remaining - cost, 0), gas_req, has_value, is_new
    )
    interp.gas.charge(cost + total_cost)
    interp.grow_memory(memory_gas, new_len)
    stack.pop_n(n_args)

    calldata = interp.memory.get_slice(args_offset, args_size)
    interp.return_data_buffer = b""

    contract = interp.contract
    if scheme is CallScheme.CALL:
        inputs = CallInputs(scheme, addr, addr, contract.address, calldata,
                            callee_gas, value, True, interp.is_static)
    elif scheme is CallScheme.CALLCODE:
        # Runs addr's code in the current account
        inputs = CallInputs(scheme, contract.address, addr, contract.address,
                            calldata, callee_gas, value, True, interp.is_static)
    elif scheme is CallScheme.DELEGATECALL:
        # Keeps caller and apparent value of the current frame
        inputs = CallInputs(scheme, contract.address, addr, contract.caller,
                            calldata, callee_gas, contract.value, False,
                            interp.is_static)
    else:
        inputs = CallInputs(scheme, addr, addr, contract.address, calldata,
                            callee_gas, 0, False, True)

    if host.depth >= CALL_STACK_LIMIT:
        outcome = CallOutcome(InstructionResult.CALL_TOO_DEEP, Gas(callee_gas))
    else:
        outcome = host.call(inputs)

    result = outcome.result
    interp.return_data_buffer = outcome.output
    if result in _GAS_RETURNED:
        interp.gas.erase_cost(outcome.gas.remaining)
    if result.is_ok:
        interp.gas.refund(outcome.gas.refunded)

    if ret_size:
        interp.memory.set(ret_offset, outcome.output[:ret_size])
    stack.push(1 if result.is_ok else 0)


def op_call(interp, host):
    _call(interp, host, CallScheme.CALL)


def op_callcode(interp, host):
    _call(interp, host, CallScheme.CALLCODE)


def op_delegatecall(interp, host):
    _call(interp, host, CallScheme.DELEGATECALL)


def op_staticcall(interp, host):
    _call(interp, host, CallScheme.STATICCALL)


def _set_return_range(interp) -> None:
    offset, size = interp.stack.peek_n(2)
    interp.expand_memory(offset, size)
    interp.stack.pop_n(2)
    if size == 0:
        interp.set_empty_return_range()
    else:
        interp.return_range = range(offset, offset + size)


def op_return(interp, host):
    _set_return_range(interp)
    raise ReturnHalt()


def op_revert(interp, host):
    _set_return_range(interp)
    raise RevertHalt()


def op_invalid(interp, host):
    raise DesignatedInvalid("INVALID opcode (0xFE)")


def op_selfdestruct(interp, host):
    _require_non_static(interp, "SELFDESTRUCT")
    target = to_address(interp.stack.peek())
    address = interp.contract.address
    account = host.load_account(target)
    balance, _ = host.balance(address)
    cost = G_COLD_ACCOUNT_ACCESS if account.is_cold else 0
    if balance > 0 and account.is_empty:
        cost += G_NEW_ACCOUNT
    interp.gas.charge(cost)
    interp.stack.pop()
    previously_destroyed = host.selfdestruct(address, target)
    if interp.config.revision < Revision.LONDON and not previously_destroyed:
        interp.gas.refund(24000)
    raise SelfDestructHalt()


# ---------------------------------------------------------------------------
# Opcode table: opcode -> OpcodeInfo
# ---------------------------------------------------------------------------

Handler = Callable[["Interpreter", "Host"], None]


@dataclass(frozen=True)
class OpcodeInfo:
    name: str
    handler: Handler
    base_gas: int
    stack_in: int
    stack_out: int
    min_revision: Revision = Revision.FRONTIER


OPCODE_TABLE: dict[int, OpcodeInfo] = {}


def _register():
    t = OPCODE_TABLE
    F = Revision.FRONTIER

    def add(op, name, handler, gas, n_in, n_out, since=F):
        t[op] = OpcodeInfo(name, handler, gas, n_in, n_out, since)

    add(Op.STOP, "STOP", op_stop, G_ZERO, 0, 0)
    add(Op.ADD, "ADD", op_add, G_VERY_LOW, 2, 1)
    add(Op.MUL, "MUL", op_mul, G_LOW, 2, 1)
    add(Op.SUB, "SUB", op_sub, G_VERY_LOW, 2, 1)
    add(Op.DIV, "DIV", op_div, G_LOW, 2, 1)
    add(Op.SDIV, "SDIV", op_sdiv, G_LOW, 2, 1)
    add(Op.MOD, "MOD", op_mod, G_LOW, 2, 1)
    add(Op.SMOD, "SMOD", op_smod, G_LOW, 2, 1)
    add(Op.ADDMOD, "ADDMOD", op_addmod, G_MID, 3, 1)
    add(Op.MULMOD, "MULMOD", op_mulmod, G_MID, 3, 1)
    add(Op.EXP, "EXP", op_exp, G_EXP, 2, 1)
    add(Op.SIGNEXTEND, "SIGNEXTEND", op_signextend, G_LOW, 2, 1)

    add(Op.LT, "LT", op_lt, G_VERY_LOW, 2, 1)
    add(Op.GT, "GT", op_gt, G_VERY_LOW, 2, 1)
    add(Op.SLT, "SLT", op_slt, G_VERY_LOW, 2, 1)
    add(Op.SGT, "SGT", op_sgt, G_VERY_LOW, 2, 1)
    add(Op.EQ, "EQ", op_eq, G_VERY_LOW, 2, 1)
    add(Op.ISZERO, "ISZERO", op_iszero, G_VERY_LOW, 1, 1)
    add(Op.AND, "AND", op_and, G_VERY_LOW, 2, 1)
    add(Op.OR, "OR", op_or, G_VERY_LOW, 2, 1)
    add(Op.XOR, "XOR", op_xor, G_VERY_LOW, 2, 1)
    add(Op.NOT, "NOT", op_not, G_VERY_LOW, 1, 1)
    add(Op.BYTE, "BYTE", op_byte, G_VERY_LOW, 2, 1)
    add(Op.SHL, "SHL", op_shl, G_VERY_LOW, 2, 1, Revision.CONSTANTINOPLE)
    add(Op.SHR, "SHR", op_shr, G_VERY_LOW, 2, 1, Revision.CONSTANTINOPLE)
    add(Op.SAR, "SAR", op_sar, G_VERY_LOW, 2, 1, Revision.CONSTANTINOPLE)

    add(Op.KECCAK256, "KECCAK256", op_keccak256, G_KECCAK256, 2, 1)

    add(Op.ADDRESS, "ADDRESS", op_address, G_BASE, 0, 1)
    add(Op.BALANCE, "BALANCE", op_balance, G_WARM_ACCESS, 1, 1)
    add(Op.ORIGIN, "ORIGIN", op_origin, G_BASE, 0, 1)
    add(Op.CALLER, "CALLER", op_caller, G_BASE, 0, 1)
    add(Op.CALLVALUE, "CALLVALUE", op_callvalue, G_BASE, 0, 1)
    add(Op.CALLDATALOAD, "CALLDATALOAD", op_calldataload, G_VERY_LOW, 1, 1)
    add(Op.CALLDATASIZE, "CALLDATASIZE", op_calldatasize, G_BASE, 0, 1)
    add(Op.CALLDATACOPY, "CALLDATACOPY", op_calldatacopy, G_VERY_LOW, 3, 0)
    add(Op.CODESIZE, "CODESIZE", op_codesize, G_BASE, 0, 1)
    add(Op.CODECOPY, "CODECOPY", op_codecopy, G_VERY_LOW, 3, 0)
    add(Op.GASPRICE, "GASPRICE", op_gasprice, G_BASE, 0, 1)
    add(Op.EXTCODESIZE, "EXTCODESIZE", op_extcodesize, G_WARM_ACCESS, 1, 1)
    add(Op.EXTCODECOPY, "EXTCODECOPY", op_extcodecopy, G_WARM_ACCESS, 4, 0)
    add(Op.RETURNDATASIZE, "RETURNDATASIZE", op_returndatasize, G_BASE, 0, 1,
        Revision.BYZANTIUM)
    add(Op.RETURNDATACOPY, "RETURNDATACOPY", op_returndatacopy, G_VERY_LOW, 3, 0,
        Revision.BYZANTIUM)
    add(Op.EXTCODEHASH, "EXTCODEHASH", op_extcodehash, G_WARM_ACCESS, 1, 1,
        Revision.CONSTANTINOPLE)

    add(Op.BLOCKHASH, "BLOCKHASH", op_blockhash, G_BLOCKHASH, 1, 1)
    add(Op.COINBASE, "COINBASE", op_coinbase, G_BASE, 0, 1)
    add(Op.TIMESTAMP, "TIMESTAMP", op_timestamp, G_BASE, 0, 1)
    add(Op.NUMBER, "NUMBER", op_number, G_BASE, 0, 1)
    add(Op.PREVRANDAO, "PREVRANDAO", op_prevrandao, G_BASE, 0, 1)
    add(Op.GASLIMIT, "GASLIMIT", op_gaslimit, G_BASE, 0, 1)
    add(Op.CHAINID, "CHAINID", op_chainid, G_BASE, 0, 1, Revision.ISTANBUL)
    add(Op.SELFBALANCE, "SELFBALANCE", op_selfbalance, G_LOW, 0, 1, Revision.ISTANBUL)
    add(Op.BASEFEE, "BASEFEE", op_basefee, G_BASE, 0, 1, Revision.LONDON)

    add(Op.POP, "POP", op_pop, G_BASE, 1, 0)
    add(Op.MLOAD, "MLOAD", op_mload, G_VERY_LOW, 1, 1)
    add(Op.MSTORE, "MSTORE", op_mstore, G_VERY_LOW, 2, 0)
    add(Op.MSTORE8, "MSTORE8", op_mstore8, G_VERY_LOW, 2, 0)
    add(Op.SLOAD, "SLOAD", op_sload, G_WARM_ACCESS, 1, 1)
    add(Op.SSTORE, "SSTORE", op_sstore, G_ZERO, 2, 0)
    add(Op.JUMP, "JUMP", op_jump, G_MID, 1, 0)
    add(Op.JUMPI, "JUMPI", op_jumpi, G_HIGH, 2, 0)
    add(Op.PC, "PC", op_pc, G_BASE, 0, 1)
    add(Op.MSIZE, "MSIZE", op_msize, G_BASE, 0, 1)
    add(Op.GAS, "GAS", op_gas, G_BASE, 0, 1)
    add(Op.JUMPDEST, "JUMPDEST", op_jumpdest, G_JUMPDEST, 0, 0)
    add(Op.TLOAD, "TLOAD", op_tload, G_WARM_ACCESS, 1, 1, Revision.CANCUN)
    add(Op.TSTORE, "TSTORE", op_tstore, G_WARM_ACCESS, 2, 0, Revision.CANCUN)
    add(Op.MCOPY, "MCOPY", op_mcopy, G_VERY_LOW, 3, 0, Revision.CANCUN)

    add(Op.PUSH0, "PUSH0", op_push0, G_BASE, 0, 1, Revision.SHANGHAI)
    for i in range(1, 33):
        add(Op.PUSH1 + i - 1, f"PUSH{i}", _make_push(i), G_VERY_LOW, 0, 1)

    for i in range(1, 17):
        add(Op.DUP1 + i - 1, f"DUP{i}", _make_dup(i), G_VERY_LOW, i, i + 1)

    for i in range(1, 17):
        add(Op.SWAP1 + i - 1, f"SWAP{i}", _make_swap(i), G_VERY_LOW, i + 1, i + 1)

    for i in range(5):
        add(Op.LOG0 + i, f"LOG{i}", _make_log(i), G_LOG, i + 2, 0)

    add(Op.CREATE, "CREATE", op_create, G_CREATE, 3, 1)
    add(Op.CALL, "CALL", op_call, G_WARM_ACCESS, 7, 1)
    add(Op.CALLCODE, "CALLCODE", op_callcode, G_WARM_ACCESS, 7, 1)
    add(Op.RETURN, "RETURN", op_return, G_ZERO, 2, 0)
    add(Op.DELEGATECALL, "DELEGATECALL", op_delegatecall, G_WARM_ACCESS, 6, 1,
        Revision.HOMESTEAD)
    add(Op.CREATE2, "CREATE2", op_create2, G_CREATE, 4, 1, Revision.CONSTANTINOPLE)
    add(Op.STATICCALL, "STATICCALL", op_staticcall, G_WARM_ACCESS, 6, 1,
        Revision.BYZANTIUM)
    add(Op.REVERT, "REVERT", op_revert, G_ZERO, 2, 0, Revision.BYZANTIUM)
    add(Op.INVALID, "INVALID", op_invalid, G_ZERO, 0, 0)
    add(Op.SELFDESTRUCT, "SELFDESTRUCT", op_selfdestruct, G_SELFDESTRUCT, 1, 0)


_register()


def opcode_name(opcode: int) -> str:
    info = OPCODE_TABLE.get(opcode)
    return info.name if info is not None else f"0x{opcode:02x}"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def eval_instruction(opcode: int, interp: Interpreter, host: Host) -> None:
    """Run one instruction; every precondition is checked before mutation."""
    info = OPCODE_TABLE.get(opcode)
    if info is None:
        raise InvalidOpcode(f"Unknown opcode: 0x{opcode:02x}")
    if interp.config.revision < info.min_revision:
        raise NotActivated(f"{info.name} requires {info.min_revision.name}")
    interp.stack.require(info.stack_in, info.stack_out)
    interp.gas.charge(info.base_gas)
    info.handler(interp, host)
