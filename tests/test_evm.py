"""Tests for the reference world: nested calls, creates and transactions."""

import pytest
from eth_utils import to_wei

from ethvm.common.config import MAX_CODE_SIZE, MAX_INITCODE_SIZE, Revision, VMConfig
from ethvm.common.crypto import create2_address, create_address, keccak256
from ethvm.common.types import address_to_word
from ethvm.evm import ExecutionEnvironment, ExecutionResult, transact
from ethvm.vm.exceptions import InstructionResult
from ethvm.vm.hooks import Inspector
from ethvm.vm.opcodes import Op

from tests.fixtures.addresses import (
    ALICE_ADDRESS,
    BOB_ADDRESS,
    CHARLIE_ADDRESS,
    CONTRACT_ADDRESS,
)
from tests.fixtures.bytecode import bytecode, deploy_code, push, run_code, word
from tests.fixtures.contracts import (
    COUNTER_BYTECODE,
    RECURSIVE_CALL_BYTECODE,
    REVERT_BYTECODE,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def call_and_return(op: int, to: bytes, gas: bytes = bytes([Op.GAS]), value: int = 0) -> bytes:
    """Call ``to`` with a 32-byte return window at 0, then return
    [return window, success flag]."""
    args = [push(32, 1), push(0, 1), push(0, 1), push(0, 1)]
    if op in (Op.CALL, Op.CALLCODE):
        args.append(push(value, 1))
    return bytecode(
        *args, push(address_to_word(to), 20), gas, op,
        push(32, 1), Op.MSTORE,
        push(64, 1), push(0, 1), Op.RETURN,
    )


def execute(env: ExecutionEnvironment, to=CONTRACT_ADDRESS, data=b"", value=0,
            gas_limit=1_000_000, caller=ALICE_ADDRESS) -> ExecutionResult:
    return transact(env, caller, to, value, data, gas_limit)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

class TestTransact:
    def test_counter(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=COUNTER_BYTECODE)
        result = execute(env)
        assert result.result is InstructionResult.RETURN
        assert result.success
        assert result.output == word(1)
        # cold SLOAD + fresh SSTORE + arithmetic and memory
        assert result.gas_used == 22130
        assert env.get_storage(CONTRACT_ADDRESS, 0) == 1

    def test_counter_second_transaction(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=COUNTER_BYTECODE)
        execute(env)
        result = execute(env)
        assert result.output == word(2)
        # slot is cold again and now only reset, not set
        assert result.gas_used == 5030

    def test_value_transfer_to_eoa(self, env):
        value = to_wei(1, "ether")
        result = execute(env, to=BOB_ADDRESS, value=value)
        assert result.result is InstructionResult.STOP
        assert result.gas_used == 0
        assert env.get_balance(BOB_ADDRESS) == value
        assert env.get_balance(ALICE_ADDRESS) == to_wei(99, "ether")

    def test_out_of_funds(self, env):
        result = execute(env, to=ALICE_ADDRESS, caller=BOB_ADDRESS, value=1)
        assert result.result is InstructionResult.OUT_OF_FUNDS
        assert result.gas_used == 0
        assert env.get_balance(ALICE_ADDRESS) == to_wei(100, "ether")

    def test_revert_rolls_back(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=REVERT_BYTECODE)
        result = execute(env, value=5)
        assert result.result is InstructionResult.REVERT
        assert result.output == word(0xDEAD)
        assert result.gas_used == 18
        assert env.get_balance(CONTRACT_ADDRESS) == 0

    def test_fault_consumes_all_gas(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=bytes([Op.INVALID]))
        result = execute(env, gas_limit=50_000)
        assert result.result is InstructionResult.DESIGNATED_INVALID
        assert result.gas_used == 50_000
        assert result.output == b""

    def test_gas_limit_must_fit_u64(self, env):
        with pytest.raises(ValueError):
            execute(env, gas_limit=2**64)

    def test_logs(self, env, db):
        code = bytecode(push(0, 1), push(0, 1), Op.LOG0, Op.STOP)
        db.insert_account(CONTRACT_ADDRESS, code=code)
        result = execute(env)
        assert len(result.logs) == 1
        assert result.logs[0].address == CONTRACT_ADDRESS

    def test_logs_dropped_on_revert(self, env, db):
        code = bytecode(push(0, 1), push(0, 1), Op.LOG0, push(0, 1), push(0, 1), Op.REVERT)
        db.insert_account(CONTRACT_ADDRESS, code=code)
        result = execute(env)
        assert result.result is InstructionResult.REVERT
        assert result.logs == []
        assert env.logs == []


class TestRefunds:
    CLEAR_SLOT = bytecode(push(0, 1), push(0, 1), Op.SSTORE, Op.STOP)

    def test_refund_capped_at_one_fifth(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=self.CLEAR_SLOT, storage={0: 1})
        result = execute(env)
        # 2 pushes + cold SSTORE reset = 5006, refund 4800 capped to 5006 // 5
        assert result.gas_refunded == 1001
        assert result.gas_used == 5006 - 1001

    def test_refund_capped_at_half_before_london(self, db, block_env):
        env = ExecutionEnvironment(db, config=VMConfig(revision=Revision.BERLIN), block_env=block_env)
        db.insert_account(CONTRACT_ADDRESS, code=self.CLEAR_SLOT, storage={0: 1})
        result = execute(env)
        assert result.gas_refunded == 2503
        assert result.gas_used == 2503

    def test_no_refund_on_revert(self, env, db):
        code = bytecode(push(0, 1), push(0, 1), Op.SSTORE, push(0, 1), push(0, 1), Op.REVERT)
        db.insert_account(CONTRACT_ADDRESS, code=code, storage={0: 1})
        result = execute(env)
        assert result.gas_refunded == 0
        assert env.get_storage(CONTRACT_ADDRESS, 0) == 1


# ---------------------------------------------------------------------------
# Nested calls
# ---------------------------------------------------------------------------

class TestCalls:
    def test_call_returns_data(self, env, db):
        db.insert_account(CHARLIE_ADDRESS, code=COUNTER_BYTECODE)
        db.insert_account(CONTRACT_ADDRESS, code=call_and_return(Op.CALL, CHARLIE_ADDRESS))
        result = execute(env)
        assert result.result is InstructionResult.RETURN
        assert result.output == word(1) + word(1)
        assert env.get_storage(CHARLIE_ADDRESS, 0) == 1
        assert env.get_storage(CONTRACT_ADDRESS, 0) == 0

    def test_delegatecall_uses_caller_storage(self, env, db):
        db.insert_account(CHARLIE_ADDRESS, code=COUNTER_BYTECODE)
        db.insert_account(CONTRACT_ADDRESS, code=call_and_return(Op.DELEGATECALL, CHARLIE_ADDRESS))
        result = execute(env)
        assert result.output == word(1) + word(1)
        assert env.get_storage(CONTRACT_ADDRESS, 0) == 1
        assert env.get_storage(CHARLIE_ADDRESS, 0) == 0

    def test_callcode_uses_caller_storage(self, env, db):
        db.insert_account(CHARLIE_ADDRESS, code=COUNTER_BYTECODE)
        db.insert_account(CONTRACT_ADDRESS, code=call_and_return(Op.CALLCODE, CHARLIE_ADDRESS))
        execute(env)
        assert env.get_storage(CONTRACT_ADDRESS, 0) == 1
        assert env.get_storage(CHARLIE_ADDRESS, 0) == 0

    def test_staticcall_blocks_sstore(self, env, db):
        db.insert_account(CHARLIE_ADDRESS, code=COUNTER_BYTECODE)
        db.insert_account(CONTRACT_ADDRESS, code=call_and_return(Op.STATICCALL, CHARLIE_ADDRESS))
        result = execute(env)
        assert result.result is InstructionResult.RETURN
        assert result.output == word(0) + word(0)
        assert env.get_storage(CHARLIE_ADDRESS, 0) == 0

    def test_call_with_value_in_static_frame(self, env):
        code = call_and_return(Op.CALL, BOB_ADDRESS, value=1)
        interp = run_code(code, env=env, is_static=True)
        assert interp.instruction_result is InstructionResult.CALL_NOT_ALLOWED_INSIDE_STATIC

    def test_child_revert_keeps_return_data(self, env, db):
        db.insert_account(CHARLIE_ADDRESS, code=REVERT_BYTECODE)
        code = bytecode(
            push(32, 1), push(0, 1), push(0, 1), push(0, 1), push(0, 1),
            push(address_to_word(CHARLIE_ADDRESS), 20), Op.GAS, Op.CALL,
            Op.POP, Op.RETURNDATASIZE, push(32, 1), Op.MSTORE,
            push(64, 1), push(0, 1), Op.RETURN,
        )
        db.insert_account(CONTRACT_ADDRESS, code=code)
        result = execute(env)
        assert result.output == word(0xDEAD) + word(32)

    def test_call_to_empty_account_succeeds(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=call_and_return(Op.CALL, BOB_ADDRESS))
        result = execute(env)
        assert result.output == word(0) + word(1)

    def test_call_value_transfer(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, balance=10, code=call_and_return(Op.CALL, BOB_ADDRESS, value=3))
        result = execute(env)
        assert result.output == word(0) + word(1)
        assert env.get_balance(BOB_ADDRESS) == 3
        assert env.get_balance(CONTRACT_ADDRESS) == 7

    def test_call_value_out_of_funds(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, balance=1, code=call_and_return(Op.CALL, BOB_ADDRESS, value=3))
        result = execute(env)
        assert result.result is InstructionResult.RETURN
        assert result.output == word(0) + word(0)
        assert env.get_balance(CONTRACT_ADDRESS) == 1

    def test_faulting_child_consumes_forwarded_gas(self, db, vm_config, block_env):
        def gas_used(callee_code: bytes) -> int:
            env = ExecutionEnvironment(db, config=vm_config, block_env=block_env)
            db.insert_account(CHARLIE_ADDRESS, code=callee_code)
            db.insert_account(
                CONTRACT_ADDRESS,
                code=call_and_return(Op.CALL, CHARLIE_ADDRESS, gas=push(1000, 2)),
            )
            return execute(env).gas_used

        assert gas_used(bytes([Op.INVALID])) - gas_used(bytes([Op.STOP])) == 1000


class DepthTracker(Inspector):
    def __init__(self):
        self.max_depth = 0

    def step(self, interp, host):
        self.max_depth = max(self.max_depth, host.depth)
        return InstructionResult.CONTINUE


class TestCallDepth:
    def test_depth_limit(self, db, vm_config, block_env):
        tracker = DepthTracker()
        env = ExecutionEnvironment(db, config=vm_config, block_env=block_env, inspector=tracker)
        db.insert_account(CONTRACT_ADDRESS, code=RECURSIVE_CALL_BYTECODE)

        result = execute(env, data=word(0), gas_limit=10**13)

        assert result.result is InstructionResult.STOP
        # Frames 0..1024 ran; the call made at depth 1024 failed
        assert tracker.max_depth == 1024
        assert all(env.get_storage(CONTRACT_ADDRESS, d) == 1 for d in range(1024))
        assert env.get_storage(CONTRACT_ADDRESS, 1024) == 0
        assert env.get_storage(CONTRACT_ADDRESS, 1025) == 0


# ---------------------------------------------------------------------------
# Contract creation
# ---------------------------------------------------------------------------

class TestCreate:
    def test_create_transaction(self, env):
        result = execute(env, to=None, data=deploy_code(COUNTER_BYTECODE))
        assert result.result is InstructionResult.RETURN
        expected = create_address(ALICE_ADDRESS, 0)
        assert result.created_address == expected
        assert result.output == b""
        assert env.get_code(expected) == COUNTER_BYTECODE
        assert env.get_nonce(expected) == 1
        assert env.get_nonce(ALICE_ADDRESS) == 1

        result = execute(env, to=expected)
        assert result.output == word(1)

    def test_code_deposit_gas(self, env):
        small = execute(env, to=None, data=deploy_code(b"\x00"))
        large = execute(env, to=None, data=deploy_code(b"\x00" * 11))
        assert large.gas_used - small.gas_used == 10 * 200

    def test_create_with_value(self, env):
        result = execute(env, to=None, data=deploy_code(b"\x00"), value=9)
        assert env.get_balance(result.created_address) == 9

    def test_ef_prefix_rejected(self, env):
        result = execute(env, to=None, data=deploy_code(b"\xef\x00"), gas_limit=100_000)
        assert result.result is InstructionResult.CREATE_CONTRACT_STARTING_WITH_EF
        assert result.created_address is None
        assert result.gas_used == 100_000

    def test_ef_prefix_allowed_before_london(self, db, block_env):
        env = ExecutionEnvironment(db, config=VMConfig(revision=Revision.BERLIN), block_env=block_env)
        result = execute(env, to=None, data=deploy_code(b"\xef\x00"))
        assert result.success

    def test_code_size_limit(self, env):
        init = bytecode(push(MAX_CODE_SIZE + 1, 2), push(0, 1), Op.RETURN)
        result = execute(env, to=None, data=init, gas_limit=10_000_000)
        assert result.result is InstructionResult.CREATE_CONTRACT_SIZE_LIMIT
        assert result.gas_used == 10_000_000

    def test_code_size_limit_configurable(self, db, block_env):
        config = VMConfig(limit_contract_code_size=2 * MAX_CODE_SIZE)
        env = ExecutionEnvironment(db, config=config, block_env=block_env)
        init = bytecode(push(MAX_CODE_SIZE + 1, 2), push(0, 1), Op.RETURN)
        result = execute(env, to=None, data=init, gas_limit=10_000_000)
        assert result.success

    def test_initcode_size_limit(self, env):
        result = execute(env, to=None, data=b"\x00" * (MAX_INITCODE_SIZE + 1))
        assert result.result is InstructionResult.CREATE_INIT_CODE_SIZE_LIMIT

    def test_init_code_revert(self, env):
        result = execute(env, to=None, data=REVERT_BYTECODE)
        assert result.result is InstructionResult.REVERT
        assert result.output == word(0xDEAD)
        assert result.created_address is None
        # nonce bump survives the failed creation
        assert env.get_nonce(ALICE_ADDRESS) == 1


class TestCreate2:
    INIT = deploy_code(b"\x00")
    SALT = 5

    def factory(self) -> bytes:
        offset = 32 - len(self.INIT)
        return bytecode(
            push(int.from_bytes(self.INIT, "big"), len(self.INIT)), push(0, 1), Op.MSTORE,
            push(self.SALT, 1), push(len(self.INIT), 1), push(offset, 1), push(0, 1), Op.CREATE2,
            push(0, 1), Op.MSTORE,
            push(32, 1), push(0, 1), Op.RETURN,
        )

    def test_create2_address(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=self.factory())
        result = execute(env)
        expected = create2_address(CONTRACT_ADDRESS, self.SALT, keccak256(self.INIT))
        assert result.output == word(address_to_word(expected))
        assert env.get_code(expected) == b"\x00"
        assert env.get_nonce(CONTRACT_ADDRESS) == 1

    def test_collision(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, code=self.factory())
        execute(env)
        result = execute(env)
        assert result.result is InstructionResult.RETURN
        assert result.output == word(0)

    def test_not_activated_before_constantinople(self, db, block_env):
        env = ExecutionEnvironment(db, config=VMConfig(revision=Revision.BYZANTIUM), block_env=block_env)
        db.insert_account(CONTRACT_ADDRESS, code=self.factory())
        result = execute(env)
        assert result.result is InstructionResult.NOT_ACTIVATED


class TestSelfDestruct:
    CODE = bytecode(push(address_to_word(BOB_ADDRESS), 20), Op.SELFDESTRUCT)

    def test_moves_balance(self, env, db):
        db.insert_account(CONTRACT_ADDRESS, balance=5, code=self.CODE)
        result = execute(env)
        assert result.result is InstructionResult.SELF_DESTRUCT
        # push + base + cold beneficiary + new account
        assert result.gas_used == 3 + 5000 + 2600 + 25000
        assert env.get_balance(BOB_ADDRESS) == 5
        assert env.get_balance(CONTRACT_ADDRESS) == 0
        # Cancun: only accounts created in the same transaction are deleted
        assert env.get_code(CONTRACT_ADDRESS) == self.CODE

    def test_deletes_account_before_cancun(self, db, block_env):
        env = ExecutionEnvironment(db, config=VMConfig(revision=Revision.LONDON), block_env=block_env)
        db.insert_account(CONTRACT_ADDRESS, balance=5, code=self.CODE, storage={1: 1})
        result = execute(env)
        assert result.success
        assert env.get_code(CONTRACT_ADDRESS) == b""
        assert env.get_storage(CONTRACT_ADDRESS, 1) == 0
