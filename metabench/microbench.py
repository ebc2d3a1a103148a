"""
Warmup/measure/teardown micro-benchmark primitive.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from metabench.exceptions import HarnessUsageError, TrialOperationError
from metabench.metrics import StatisticsAccumulator
from metabench.timing import TimingContext, TimingRecord

logger = logging.getLogger(__name__)

Action = Callable[[], Any]

DEFAULT_WARMUP = 10
DEFAULT_TRIALS = 100


@dataclass(frozen=True)
class BenchmarkConfig:
    """Warmup and measured trial counts for one scenario."""

    warmup: int = DEFAULT_WARMUP
    trials: int = DEFAULT_TRIALS

    def __post_init__(self) -> None:
        if self.warmup < 0:
            raise ValueError(f"warmup must be >= 0, got {self.warmup}")
        if self.trials < 1:
            raise ValueError(f"trials must be >= 1, got {self.trials}")

    @property
    def iterations(self) -> int:
        return self.warmup + self.trials


def isolated(
    operation: Callable[..., Any],
    *args: Any,
    errors: tuple[type[BaseException], ...] = (TrialOperationError,),
    label: str | None = None,
) -> Action:
    """Wrap an operation so the listed errors are logged and swallowed.

    Returns a zero-argument callable suitable for MicroBenchmark.measure().
    The wrapped call returns the operation's result, or None if it failed.
    """
    name = label or getattr(operation, "__name__", repr(operation))

    def run() -> Any:
        try:
            return operation(*args)
        except errors as e:
            logger.warning(f"{name} failed: {e}")
            return None

    run.__name__ = name
    return run


class MicroBenchmark:
    """Runs an operation warmup + trials times and keeps the measured durations.

    Each iteration runs setup, then the timed operation, then teardown, in
    strict sequence. Only the operation is timed. Durations from the first
    ``warmup`` iterations are discarded.
    """

    def __init__(
        self,
        config: BenchmarkConfig | None = None,
        clock: Callable[[], int] = time.perf_counter_ns,
    ):
        self.config = config or BenchmarkConfig()
        self.clock = clock

    @classmethod
    def with_counts(cls, warmup: int, trials: int) -> MicroBenchmark:
        return cls(BenchmarkConfig(warmup=warmup, trials=trials))

    def measure(
        self,
        operation: Action,
        *,
        setup: Action | None = None,
        teardown: Action | None = None,
        stats: StatisticsAccumulator | None = None,
    ) -> StatisticsAccumulator:
        """Measure an operation.

        Args:
            operation: The timed action
            setup: Optional untimed action run before each iteration
            teardown: Optional untimed action run after each iteration
            stats: Accumulator to fill; a fresh one is created if omitted.
                   Pass one in to keep the samples recorded before an
                   operation error propagated.

        Returns:
            The accumulator holding exactly ``trials`` samples.

        Raises:
            HarnessUsageError: if setup or teardown fails
        """
        stats = stats if stats is not None else StatisticsAccumulator()
        warmup = self.config.warmup

        def keep(record: TimingRecord) -> None:
            stats.record(record.duration_ns)

        for i in range(self.config.iterations):
            self._run_hook(setup, "setup", i)

            sink = keep if i >= warmup else None
            with TimingContext("trial", sink=sink, clock=self.clock, iteration=i):
                operation()

            self._run_hook(teardown, "teardown", i)

        return stats

    @staticmethod
    def _run_hook(hook: Action | None, kind: str, iteration: int) -> None:
        if hook is None:
            return
        try:
            hook()
        except Exception as e:
            raise HarnessUsageError(f"{kind} failed on iteration {iteration}: {e}") from e
