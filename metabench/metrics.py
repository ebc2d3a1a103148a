"""
Statistics over measured trial durations.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, asdict
from typing import Any

from metabench.exceptions import EmptyAccumulatorError, InvalidSampleError

NS_PER_MS = 1_000_000


def percentile(data: list[float], p: float) -> float:
    """Linear-interpolated percentile of already sorted data."""
    if not data:
        return 0.0
    k = (len(data) - 1) * p / 100
    f = int(k)
    c = f + 1 if f + 1 < len(data) else f
    return data[f] + (k - f) * (data[c] - data[f]) if c != f else data[f]


@dataclass(frozen=True)
class PhaseStats:
    """Statistical summary of one scenario, in milliseconds."""

    name: str
    count: int
    mean_ms: float
    std_ms: float
    min_ms: float
    max_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatisticsAccumulator:
    """Ordered collection of trial durations in nanoseconds.

    Standard deviation is the sample standard deviation (n - 1 denominator);
    a single sample has a deviation of zero.
    """

    def __init__(self) -> None:
        self._samples: list[int] = []

    def record(self, sample: int) -> None:
        if sample < 0:
            raise InvalidSampleError(f"sample must be non-negative, got {sample}")
        self._samples.append(sample)

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> tuple[int, ...]:
        """Recorded samples in insertion order."""
        return tuple(self._samples)

    def _require_samples(self) -> list[int]:
        if not self._samples:
            raise EmptyAccumulatorError("no samples recorded")
        return self._samples

    def mean(self) -> float:
        return statistics.fmean(self._require_samples())

    def stddev(self) -> float:
        samples = self._require_samples()
        if len(samples) < 2:
            return 0.0
        return statistics.stdev(samples)

    def min(self) -> int:
        return min(self._require_samples())

    def max(self) -> int:
        return max(self._require_samples())

    def summary(self, name: str) -> PhaseStats:
        """Snapshot the current samples as a PhaseStats in milliseconds."""
        samples_ms = sorted(s / NS_PER_MS for s in self._require_samples())
        return PhaseStats(
            name=name,
            count=len(samples_ms),
            mean_ms=self.mean() / NS_PER_MS,
            std_ms=self.stddev() / NS_PER_MS,
            min_ms=samples_ms[0],
            max_ms=samples_ms[-1],
            p50_ms=percentile(samples_ms, 50),
            p95_ms=percentile(samples_ms, 95),
            p99_ms=percentile(samples_ms, 99),
        )
