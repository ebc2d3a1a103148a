"""
Latency benchmark for metadata catalog services.

Measures connection setup, table create/drop and listing latency against
a catalog service, subtracting the network round trip from each result.

Usage:
    python -m metabench -t bench.table1
    python -m metabench -s catalog.example.com:8000 -d bench -t table1 --drop
"""

from metabench.timing import TimingRecord, TimingContext
from metabench.metrics import PhaseStats, StatisticsAccumulator
from metabench.microbench import BenchmarkConfig, MicroBenchmark, isolated
from metabench.session import RunConfig, BenchmarkSession, BenchmarkResult, bulk_tables
from metabench.client import MetadataClient, TableSpec, Column, make_table
from metabench.report import ReportGenerator, ScenarioResult, format_result
from metabench.exceptions import (
    BenchmarkError,
    InvalidSampleError,
    EmptyAccumulatorError,
    HarnessUsageError,
    TrialOperationError,
    ServiceError,
    PreconditionError,
    ServiceUnreachableError,
)

__all__ = [
    # Timing primitives
    "TimingRecord",
    "TimingContext",
    # Statistics
    "PhaseStats",
    "StatisticsAccumulator",
    # Measurement
    "BenchmarkConfig",
    "MicroBenchmark",
    "isolated",
    # Session management
    "RunConfig",
    "BenchmarkSession",
    "BenchmarkResult",
    "bulk_tables",
    # Service client
    "MetadataClient",
    "TableSpec",
    "Column",
    "make_table",
    # Reporting
    "ReportGenerator",
    "ScenarioResult",
    "format_result",
    # Errors
    "BenchmarkError",
    "InvalidSampleError",
    "EmptyAccumulatorError",
    "HarnessUsageError",
    "TrialOperationError",
    "ServiceError",
    "PreconditionError",
    "ServiceUnreachableError",
]
