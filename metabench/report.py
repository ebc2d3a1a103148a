"""
Report generation for benchmark results.
"""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from typing import TextIO

from metabench.metrics import NS_PER_MS, StatisticsAccumulator

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    """Statistics of one scenario together with the latency baseline to subtract."""

    name: str
    stats: StatisticsAccumulator
    baseline_ns: float = 0.0

    @property
    def mean_ms(self) -> float:
        return self.stats.mean() / NS_PER_MS

    @property
    def adjusted_ms(self) -> float:
        """Mean with the network latency baseline removed."""
        return (self.stats.mean() - self.baseline_ns) / NS_PER_MS

    @property
    def min_ms(self) -> float:
        return self.stats.min() / NS_PER_MS

    @property
    def max_ms(self) -> float:
        return self.stats.max() / NS_PER_MS

    @property
    def relative_stddev_pct(self) -> float:
        """Standard deviation as a percentage of the mean; NaN when the mean is zero."""
        mean = self.stats.mean()
        if mean == 0:
            return math.nan
        return self.stats.stddev() / mean * 100


def format_result(result: ScenarioResult) -> str:
    """Render a single report line."""
    err = result.relative_stddev_pct
    spread = "+/- undefined" if math.isnan(err) else f"+/- {err:g}%"
    return (
        f"{result.name}: Mean: {result.mean_ms:g} ms, "
        f"Adjusted: {result.adjusted_ms:g} ms, "
        f"[{result.min_ms:g}, {result.max_ms:g}], {spread}"
    )


class ReportGenerator:
    """Writes one line per scenario to a stream as scenarios complete."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream if stream is not None else sys.stdout
        self.lines_written = 0

    def emit(self, result: ScenarioResult) -> str:
        line = format_result(result)
        print(line, file=self.stream, flush=True)
        self.lines_written += 1
        logger.debug(f"{result.name} samples (ns): {list(result.stats.samples)}")
        return line
