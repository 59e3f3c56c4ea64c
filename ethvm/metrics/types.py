"""
Record types for VM metrics.

All timings are nanoseconds from ``time.perf_counter_ns``. Records are
plain accumulators: they can be merged with update() and serialised with
to_dict(); they never influence execution.
"""

from __future__ import annotations

from enum import IntEnum

SLOAD_OPCODE = 0x54

STEP_LEN = 4
# Upper bounds (microseconds) of the SLOAD duration ladder; the last bucket
# is unbounded.
SLOAD_OPCODE_TIME_STEP: tuple[float, ...] = (1, 10, 100, float("inf"))

US_PENALTY_STEP_SIZE = 200
NS_PENALTY_STEP_SIZE = 40


class OpcodeRecord:
    """Per-opcode execution statistics.

    ``opcode_record[op]`` is ``[count, time_ns, gas]``; gas is net of
    refunds and may therefore go negative for refund-heavy opcodes.
    ``sload_opcode_record`` is a list of ``[upper_bound_us, count]``.
    """

    __slots__ = ("opcode_record", "sload_opcode_record", "total_time", "is_updated")

    def __init__(self) -> None:
        self.opcode_record: list[list[int]] = [[0, 0, 0] for _ in range(256)]
        self.sload_opcode_record: list[list] = [
            [step, 0] for step in SLOAD_OPCODE_TIME_STEP
        ]
        self.total_time = 0
        self.is_updated = False

    def update(self, other: OpcodeRecord) -> None:
        """Merge ``other`` into this record."""
        if not other.is_updated:
            return

        self.total_time += other.total_time

        if not self.is_updated:
            self.opcode_record, other.opcode_record = other.opcode_record, self.opcode_record
            self.sload_opcode_record, other.sload_opcode_record = (
                other.sload_opcode_record, self.sload_opcode_record,
            )
            self.is_updated = True
            return

        for mine, theirs in zip(self.opcode_record, other.opcode_record):
            mine[0] += theirs[0]
            mine[1] += theirs[1]
            mine[2] += theirs[2]

        for mine, theirs in zip(self.sload_opcode_record, other.sload_opcode_record):
            mine[1] += theirs[1]

    def add_sload_opcode_record(self, op_time_us: float) -> None:
        """Record one SLOAD duration into the percentile ladder."""
        for bucket in self.sload_opcode_record:
            if op_time_us < bucket[0]:
                bucket[1] += 1
                return

    def not_empty(self) -> bool:
        return self.is_updated

    def to_dict(self) -> dict:
        return {
            "opcodes": {
                f"0x{op:02x}": {"count": count, "time_ns": time_ns, "gas": gas}
                for op, (count, time_ns, gas) in enumerate(self.opcode_record)
                if count
            },
            "sload_percentile": [
                {"lt_us": None if step == float("inf") else step, "count": count}
                for step, count in self.sload_opcode_record
            ],
            "total_time_ns": self.total_time,
        }


# ---------------------------------------------------------------------------
# Cache statistics
# ---------------------------------------------------------------------------

class Function(IntEnum):
    """Which database lookup touched the cache."""
    BASIC = 0
    CODE_BY_HASH = 1
    STORAGE = 2
    BLOCK_HASH = 3
    LOAD_ACCOUNT = 4


class AccessStats:
    """One counter per Function."""

    __slots__ = ("function",)

    def __init__(self) -> None:
        self.function: list[int] = [0] * len(Function)

    def update(self, other: AccessStats) -> None:
        for i, value in enumerate(other.function):
            self.function[i] += value

    def increment(self, function: Function) -> None:
        self.add(function, 1)

    def add(self, function: Function, value: int) -> None:
        if value < 0:
            raise ValueError(f"Counters only grow, got {value}")
        self.function[function] += value

    def copy(self) -> AccessStats:
        stats = AccessStats()
        stats.function = list(self.function)
        return stats

    def __getitem__(self, function: Function) -> int:
        return self.function[function]

    def to_dict(self) -> dict:
        return {f.name.lower(): self.function[f] for f in Function}


class MissesPenalty:
    """Extra time spent on cache misses, with two histograms."""

    __slots__ = ("time", "us_percentile", "ns_percentile")

    def __init__(self) -> None:
        self.time = AccessStats()
        # 1 us buckets, last bucket collects everything slower
        self.us_percentile: list[int] = [0] * US_PENALTY_STEP_SIZE
        # 100 ns buckets for penalties under 4 us
        self.ns_percentile: list[int] = [0] * NS_PENALTY_STEP_SIZE

    def update(self, other: MissesPenalty) -> None:
        self.time.update(other.time)
        for i, value in enumerate(other.us_percentile):
            self.us_percentile[i] += value
        for i, value in enumerate(other.ns_percentile):
            self.ns_percentile[i] += value

    def percentile(self, time_in_ns: float) -> None:
        index = min(int(time_in_ns / 1000.0), US_PENALTY_STEP_SIZE - 1)
        self.us_percentile[index] += 1

        if time_in_ns < 4000.0:
            self.ns_percentile[int(time_in_ns / 100.0)] += 1

    def to_dict(self) -> dict:
        return {
            "time_ns": self.time.to_dict(),
            "us_percentile": list(self.us_percentile),
            "ns_percentile": list(self.ns_percentile),
        }


class CacheDbRecord:
    """Cache hits, misses and miss penalties, per Function."""

    __slots__ = ("hits", "misses", "penalty")

    def __init__(self) -> None:
        self.hits = AccessStats()
        self.misses = AccessStats()
        self.penalty = MissesPenalty()

    def update(self, other: CacheDbRecord) -> None:
        self.hits.update(other.hits)
        self.misses.update(other.misses)
        self.penalty.update(other.penalty)

    def access_count(self) -> AccessStats:
        stats = self.hits.copy()
        stats.update(self.misses)
        return stats

    def hit_stats(self) -> AccessStats:
        return self.hits

    def miss_stats(self) -> AccessStats:
        return self.misses

    def penalty_stats(self) -> MissesPenalty:
        return self.penalty

    def hit(self, function: Function) -> None:
        self.hits.increment(function)

    def miss(self, function: Function, penalty_ns: int) -> None:
        self.misses.increment(function)
        self.penalty.time.add(function, penalty_ns)
        self.penalty.percentile(float(penalty_ns))

    def to_dict(self) -> dict:
        return {
            "hits": self.hits.to_dict(),
            "misses": self.misses.to_dict(),
            "penalty": self.penalty.to_dict(),
        }
