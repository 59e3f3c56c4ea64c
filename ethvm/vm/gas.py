"""
Gas ledger and cost schedule.

Gas is the per-frame ledger (limit / remaining / refund accumulator).
The module-level functions compute the dynamic parts of the cost model:
memory expansion, copies, EXP, SSTORE (EIP-2200 + EIP-3529), CALL
(EIP-150) and EIP-2929 warm/cold access.
"""

from __future__ import annotations

from ethvm.vm.exceptions import OutOfGas

# ---------------------------------------------------------------------------
# Base gas costs (Berlin+)
# ---------------------------------------------------------------------------

G_ZERO = 0
G_BASE = 2
G_VERY_LOW = 3
G_LOW = 5
G_MID = 8
G_HIGH = 10
G_JUMPDEST = 1
G_WARM_ACCESS = 100         # EIP-2929
G_COLD_SLOAD = 2100         # EIP-2929
G_COLD_ACCOUNT_ACCESS = 2600  # EIP-2929
G_SSET = 20000
G_SRESET = 2900             # EIP-2929: 5000 - 2100
G_SCLEAR_REFUND = 4800      # EIP-3529
G_SELFDESTRUCT = 5000
G_CREATE = 32000
G_CODEDEPOSIT = 200
G_CALLVALUE = 9000
G_CALLSTIPEND = 2300
G_NEW_ACCOUNT = 25000
G_EXP = 10
G_EXP_BYTE = 50
G_MEMORY = 3
G_QUAD_DIVISOR = 512
G_LOG = 375
G_LOG_DATA = 8
G_LOG_TOPIC = 375
G_KECCAK256 = 30
G_KECCAK256_WORD = 6
G_COPY = 3
G_BLOCKHASH = 20
G_INITCODE_WORD = 2         # EIP-3860

# EIP-3529 (London): Reduced refunds
MAX_REFUND_QUOTIENT = 5  # max refund = gas_used // 5


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class Gas:
    """Gas accounting for a single frame.

    ``remaining`` never exceeds ``limit`` and never goes negative: every
    charge is checked and leaves the ledger untouched when it fails.
    ``refunded`` is signed (SSTORE can take back an earlier refund) and is
    only applied, capped, by finalize().
    """

    __slots__ = ("limit", "remaining", "refunded", "memory")

    def __init__(self, limit: int) -> None:
        if limit < 0:
            raise ValueError(f"Gas limit must be non-negative, got {limit}")
        self.limit = limit
        self.remaining = limit
        self.refunded = 0
        # Total memory expansion cost billed so far
        self.memory = 0

    @property
    def spent(self) -> int:
        return self.limit - self.remaining

    def charge(self, amount: int) -> None:
        """Consume gas, raising OutOfGas if insufficient."""
        if amount < 0:
            raise ValueError(f"Cannot charge negative gas: {amount}")
        if amount > self.remaining:
            raise OutOfGas(f"Out of gas: need {amount}, have {self.remaining}")
        self.remaining -= amount

    def memory_growth(self, new_total: int) -> int:
        """Gas still owed when the total memory cost rises to new_total."""
        return max(new_total - self.memory, 0)

    def erase_cost(self, returned: int) -> None:
        """Give back gas a nested frame did not use."""
        if returned < 0 or self.remaining + returned > self.limit:
            raise ValueError(
                f"Cannot return {returned} gas: remaining={self.remaining} limit={self.limit}"
            )
        self.remaining += returned

    def spend_all(self) -> None:
        self.remaining = 0

    def refund(self, amount: int) -> None:
        self.refunded += amount

    def finalize(self, refund_quotient: int = MAX_REFUND_QUOTIENT) -> int:
        """Apply the capped refund and return the final remaining gas."""
        refund = min(self.refunded, self.spent // refund_quotient)
        refund = max(refund, 0)
        self.refunded = refund
        self.remaining += refund
        return self.remaining

    def __repr__(self) -> str:
        return (
            f"Gas(limit={self.limit}, remaining={self.remaining}, "
            f"refunded={self.refunded}, memory={self.memory})"
        )


# ---------------------------------------------------------------------------
# Memory expansion cost
# ---------------------------------------------------------------------------

def memory_word_size(byte_size: int) -> int:
    """Convert byte size to word (32-byte) count, rounding up."""
    return (byte_size + 31) // 32


def memory_cost(word_size: int) -> int:
    """Total cost of a memory of ``word_size`` words.

    Memory cost = G_MEMORY * word_size + word_size^2 / 512
    """
    return G_MEMORY * word_size + (word_size * word_size) // G_QUAD_DIVISOR


def memory_expansion_cost(current_word_size: int, new_word_size: int) -> int:
    """Incremental cost of growing memory (new total - old total)."""
    if new_word_size <= current_word_size:
        return 0
    return memory_cost(new_word_size) - memory_cost(current_word_size)


def copy_gas(size: int) -> int:
    """Per-word cost of *COPY instructions."""
    return G_COPY * memory_word_size(size)


def init_code_word_cost(size: int) -> int:
    """EIP-3860 initcode metering."""
    return G_INITCODE_WORD * memory_word_size(size)


def exp_gas(exponent: int) -> int:
    """Gas cost for EXP opcode."""
    if exponent == 0:
        return G_EXP
    byte_len = (exponent.bit_length() + 7) // 8
    return G_EXP + G_EXP_BYTE * byte_len


# ---------------------------------------------------------------------------
# EIP-2929 Access lists (warm/cold tracking)
# ---------------------------------------------------------------------------

class AccessSets:
    """Track warm/cold state for addresses and storage keys (EIP-2929)."""

    def __init__(self) -> None:
        self.warm_addresses: set[bytes] = set()
        self.warm_storage: set[tuple[bytes, int]] = set()

    def mark_warm_address(self, address: bytes) -> bool:
        """Mark address as warm. Returns True if it was already warm."""
        was_warm = address in self.warm_addresses
        self.warm_addresses.add(address)
        return was_warm

    def mark_warm_storage(self, address: bytes, key: int) -> bool:
        """Mark storage slot as warm. Returns True if it was already warm."""
        slot = (address, key)
        was_warm = slot in self.warm_storage
        self.warm_storage.add(slot)
        return was_warm

    def snapshot(self) -> tuple[frozenset[bytes], frozenset[tuple[bytes, int]]]:
        return frozenset(self.warm_addresses), frozenset(self.warm_storage)

    def restore(self, snap: tuple[frozenset[bytes], frozenset[tuple[bytes, int]]]) -> None:
        self.warm_addresses = set(snap[0])
        self.warm_storage = set(snap[1])


def account_access_gas(is_warm: bool) -> int:
    """Surcharge on top of the G_WARM_ACCESS base for a cold account."""
    return 0 if is_warm else G_COLD_ACCOUNT_ACCESS - G_WARM_ACCESS


# ---------------------------------------------------------------------------
# SSTORE gas (EIP-2200 + EIP-3529)
# ---------------------------------------------------------------------------

def sstore_gas(
    current_value: int,
    new_value: int,
    original_value: int,
    is_warm: bool,
) -> tuple[int, int]:
    """Calculate SSTORE gas cost and refund (EIP-2200 / EIP-3529).

    Returns (gas_cost, refund_delta). refund_delta may be negative.
    """
    cold_cost = 0 if is_warm else G_COLD_SLOAD

    if current_value == new_value:
        return G_WARM_ACCESS + cold_cost, 0

    if original_value == current_value:
        # Slot hasn't been changed yet in this tx
        if original_value == 0:
            return G_SSET + cold_cost, 0
        refund = G_SCLEAR_REFUND if new_value == 0 else 0
        return G_SRESET + cold_cost, refund

    # Slot was already changed (dirty)
    refund = 0
    if original_value != 0:
        if current_value == 0:
            refund -= G_SCLEAR_REFUND
        elif new_value == 0:
            refund += G_SCLEAR_REFUND

    if original_value == new_value:
        if original_value == 0:
            refund += G_SSET - G_WARM_ACCESS
        else:
            refund += G_SRESET - G_WARM_ACCESS

    return G_WARM_ACCESS + cold_cost, refund


# ---------------------------------------------------------------------------
# CALL gas calculation
# ---------------------------------------------------------------------------

def call_gas(
    gas_available: int,
    gas_requested: int,
    has_value: bool,
    is_new_account: bool,
) -> tuple[int, int]:
    """Calculate gas for CALL-type opcodes.

    Returns (total_gas_cost, gas_for_callee). The stipend is included in
    gas_for_callee but not in total_gas_cost.
    """
    extra = 0
    if has_value:
        extra += G_CALLVALUE
    if is_new_account:
        extra += G_NEW_ACCOUNT

    # EIP-150: cap gas sent to callee at 63/64 of available
    gas_after_extra = max(gas_available - extra, 0)
    max_callee_gas = gas_after_extra - (gas_after_extra // 64)
    callee_gas = min(gas_requested, max_callee_gas)

    total_cost = extra + callee_gas
    if has_value:
        callee_gas += G_CALLSTIPEND  # free gas for value transfer

    return total_cost, callee_gas


def all_but_one_64th(gas: int) -> int:
    """EIP-150 cap applied to CREATE."""
    return gas - gas // 64
