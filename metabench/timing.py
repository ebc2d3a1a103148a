"""
Core timing primitives for the benchmarking harness.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass(frozen=True)
class TimingRecord:
    """A single timing measurement."""

    name: str
    start_ns: int
    end_ns: int
    failed: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def duration_ns(self) -> int:
        """Duration in nanoseconds."""
        return self.end_ns - self.start_ns

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration_ns / 1_000_000

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "start_ns": self.start_ns,
            "end_ns": self.end_ns,
            "duration_ms": self.duration_ms,
            "failed": self.failed,
            "metadata": self.metadata,
        }


class TimingContext:
    """Context manager for timing code blocks.

    The record is produced on exit whether or not the block raised, so a
    failing operation still yields the elapsed time up to the failure.

    Usage:
        with TimingContext("trial", sink=records.append):
            # code to time
            pass
    """

    def __init__(
        self,
        name: str,
        sink: Callable[[TimingRecord], None] | None = None,
        clock: Callable[[], int] = time.perf_counter_ns,
        **metadata: Any,
    ):
        self.name = name
        self.sink = sink
        self.clock = clock
        self.metadata = metadata
        self._start_ns: int = 0
        self._record: TimingRecord | None = None

    def __enter__(self) -> TimingContext:
        self._start_ns = self.clock()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        end_ns = self.clock()
        self._record = TimingRecord(
            name=self.name,
            start_ns=self._start_ns,
            end_ns=end_ns,
            failed=exc_type is not None,
            metadata=self.metadata,
        )
        if self.sink is not None:
            self.sink(self._record)

    @property
    def record(self) -> TimingRecord | None:
        """Get the timing record after context exit."""
        return self._record
