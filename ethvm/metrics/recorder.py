"""
Metric recorders.

Recorders are explicit handles: the interpreter receives an OpcodeRecorder
through its InterpreterConfig and the cache receives a CacheDbRecorder in
its constructor. There is no process-wide or thread-local recorder.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from ethvm.metrics.types import SLOAD_OPCODE, CacheDbRecord, Function, OpcodeRecord

Clock = Callable[[], int]


class OpcodeRecorder:
    """Collects count, time and gas per executed opcode.

    Nested frames share the recorder of their environment: start_record()
    only initialises the clocks on the first call after a get_record().
    """

    def __init__(self, clock: Clock = time.perf_counter_ns) -> None:
        self._clock = clock
        self._record = OpcodeRecord()
        self._start_time: Optional[int] = None
        self._pre_time: Optional[int] = None
        self._started = False

    def start_record(self) -> None:
        now = self._clock()
        if not self._started:
            self._start_time = now
            self._pre_time = now
        self._started = True

    def record(self, opcode: int, gas_used: int, gas_refund: int = 0) -> None:
        """Record one executed opcode: count, time since last record, gas."""
        if self._pre_time is None:
            raise RuntimeError("record() called before start_record()")
        now = self._clock()
        entry = self._record.opcode_record[opcode]

        entry[0] += 1

        duration = now - self._pre_time
        entry[1] += duration
        self._pre_time = now

        if opcode == SLOAD_OPCODE:
            self._record.add_sload_opcode_record(duration / 1000)

        entry[2] += gas_used - gas_refund
        self._record.is_updated = True

    def end_record(self) -> None:
        if self._start_time is None:
            raise RuntimeError("end_record() called before start_record()")
        self._record.total_time = self._clock() - self._start_time

    @contextmanager
    def recording(self) -> Iterator[OpcodeRecorder]:
        """start_record() on entry, end_record() on every exit path."""
        self.start_record()
        try:
            yield self
        finally:
            self.end_record()

    def get_record(self) -> OpcodeRecord:
        """Return the accumulated record and reset the recorder."""
        record, self._record = self._record, OpcodeRecord()
        self._start_time = None
        self._pre_time = None
        self._started = False
        return record


class CacheDbRecorder:
    """Counts cache hits and misses; misses also record their duration."""

    def __init__(self, clock: Clock = time.perf_counter_ns) -> None:
        self._clock = clock
        self._record = CacheDbRecord()

    @contextmanager
    def hit(self, function: Function) -> Iterator[None]:
        try:
            yield
        finally:
            self._record.hit(function)

    @contextmanager
    def miss(self, function: Function) -> Iterator[None]:
        """Time the block as the penalty of one miss."""
        start = self._clock()
        try:
            yield
        finally:
            self._record.miss(function, max(self._clock() - start, 0))

    def get_record(self) -> CacheDbRecord:
        """Return the accumulated record and reset the recorder."""
        record, self._record = self._record, CacheDbRecord()
        return record
