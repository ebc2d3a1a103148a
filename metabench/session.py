"""
Benchmark session orchestrator.

Sequences the latency scenarios against one metadata service connection,
establishes the state each scenario needs and reports baseline-adjusted
timings.
"""

from __future__ import annotations

import functools
import logging
import socket
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator

from metabench.client import Column, MetadataClient, TableSpec, make_table
from metabench.exceptions import PreconditionError, ServiceError, ServiceUnreachableError
from metabench.metrics import NS_PER_MS, PhaseStats, StatisticsAccumulator
from metabench.microbench import BenchmarkConfig, MicroBenchmark, isolated
from metabench.report import ReportGenerator, ScenarioResult

logger = logging.getLogger(__name__)

SCENARIOS = (
    "Connect()",
    "createTable()",
    "dropTable()",
    "getAllDatabases()",
    "getAllTables()",
    "getAllTables(multiple)",
)


@dataclass
class RunConfig:
    """Configuration for a benchmark run."""

    database: str
    table: str
    server_url: str = "http://localhost:8000"
    drop_existing: bool = False

    # Throwaway tables for the populated listing scenario
    bulk_count: int = 100
    bulk_pattern: str = "tmp_table_{}"

    partition_keys: list[str] = field(default_factory=list)

    latency_bench: BenchmarkConfig = field(default_factory=lambda: BenchmarkConfig(warmup=10, trials=50))
    scenario_bench: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    probe_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not self.database:
            raise ValueError("Missing database name")
        if not self.table:
            raise ValueError("Missing table name")
        if self.bulk_count < 1:
            raise ValueError(f"bulk_count must be >= 1, got {self.bulk_count}")
        names = self.bulk_table_names()
        if len(set(names)) != len(names):
            raise ValueError(f"bulk pattern '{self.bulk_pattern}' does not produce unique names")

    def bulk_table_names(self) -> list[str]:
        try:
            return [self.bulk_pattern.format(i) for i in range(self.bulk_count)]
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"invalid bulk pattern '{self.bulk_pattern}': {e}") from e


@dataclass
class BenchmarkResult:
    """Result of a benchmark run."""

    lines: list[str]
    summaries: list[PhaseStats]
    baseline_ms: float
    start_time: datetime
    end_time: datetime

    @property
    def wall_time_s(self) -> float:
        """Total wall clock time in seconds."""
        return (self.end_time - self.start_time).total_seconds()


def connect_probe(host: str, port: int, timeout: float = 10.0) -> None:
    """Open and immediately close a TCP connection."""
    with socket.create_connection((host, port), timeout=timeout):
        pass


@contextmanager
def bulk_tables(client: MetadataClient, tables: list[TableSpec]) -> Iterator[list[str]]:
    """Create throwaway tables and guarantee their removal on exit.

    Only tables this block created are dropped. A failed drop is logged and
    the remaining drops still run.

    Raises:
        PreconditionError: if a table cannot be created
    """
    created: list[TableSpec] = []
    try:
        for table in tables:
            try:
                client.create_table(table)
            except ServiceError as e:
                raise PreconditionError(
                    f"Cannot create bulk table {table.db_name}.{table.name}: {e}"
                ) from e
            created.append(table)
        logger.debug(f"Created {len(created)} bulk tables")
        yield [t.name for t in created]
    finally:
        for table in created:
            try:
                client.drop_table(table.db_name, table.name)
            except Exception as e:
                logger.error(f"Failed to drop bulk table {table.db_name}.{table.name}: {e}")
        logger.debug(f"Cleaned up {len(created)} bulk tables")


class BenchmarkSession:
    """Runs every latency scenario against a single service connection.

    Orchestrates:
    - Connection acquisition and health check
    - Database/table preconditions
    - Network latency baseline
    - Create, drop and listing scenarios
    - Baseline-adjusted reporting
    """

    def __init__(
        self,
        config: RunConfig,
        client_factory: Callable[[str], MetadataClient] = MetadataClient,
        reporter: ReportGenerator | None = None,
        probe: Callable[[str, int], None] | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ):
        """Initialize benchmark session.

        Args:
            config: Run configuration
            client_factory: Builds the client from the server URL
            reporter: Receives each scenario result; prints to stdout by default
            probe: Raw connection probe taking (host, port)
            progress_callback: Optional callback for progress updates.
                              Called with (current, total, message).
        """
        self.config = config
        self.client_factory = client_factory
        self.reporter = reporter or ReportGenerator()
        self.probe = probe or functools.partial(connect_probe, timeout=config.probe_timeout)
        self._progress_callback = progress_callback
        self._lines: list[str] = []
        self._summaries: list[PhaseStats] = []
        self._baseline_ns = 0.0

    def _report_progress(self, current: int, total: int, message: str) -> None:
        """Report progress if callback is set."""
        if self._progress_callback:
            self._progress_callback(current, total, message)

    def run(self) -> BenchmarkResult:
        """Execute every scenario in order.

        Returns:
            BenchmarkResult with one report line per scenario.
        """
        start_time = datetime.now()
        config = self.config
        logger.info(f"Connecting to {config.server_url}")

        with self.client_factory(config.server_url) as client:
            if not client.health_check():
                raise ServiceUnreachableError(f"Cannot reach server at {config.server_url}")

            logger.info(f"Using table '{config.database}.{config.table}'")
            self.prepare(client)

            # Order matters: each scenario leaves the state the next one expects
            steps = zip(SCENARIOS, [
                self.benchmark_network_latency,
                self.benchmark_create_table,
                self.benchmark_drop_table,
                self.benchmark_list_databases,
                self.benchmark_list_tables,
                self.benchmark_list_tables_bulk,
            ])
            total = len(SCENARIOS)
            for i, (name, step) in enumerate(steps):
                self._report_progress(i, total, name)
                step(client)
            self._report_progress(total, total, "Done")

        end_time = datetime.now()
        return BenchmarkResult(
            lines=list(self._lines),
            summaries=list(self._summaries),
            baseline_ms=self._baseline_ns / NS_PER_MS,
            start_time=start_time,
            end_time=end_time,
        )

    def prepare(self, client: MetadataClient) -> None:
        """Make sure the database exists and the target table does not.

        Raises:
            PreconditionError: if that state cannot be established
        """
        db_name, table_name = self.config.database, self.config.table
        try:
            if not client.database_exists(db_name):
                logger.info(f"Creating database {db_name}")
                client.create_database(db_name)

            if client.table_exists(db_name, table_name):
                if not self.config.drop_existing:
                    raise PreconditionError(
                        f"Table {db_name}.{table_name} already exists, use --drop to remove it"
                    )
                logger.info(f"Dropping existing table {db_name}.{table_name}")
                client.drop_table(db_name, table_name)
        except ServiceError as e:
            raise PreconditionError(f"Cannot prepare {db_name}.{table_name}: {e}") from e

    def _table_spec(self, name: str) -> TableSpec:
        partitions = [Column(key) for key in self.config.partition_keys]
        return make_table(self.config.database, name, partition_keys=partitions)

    def _finish(self, name: str, stats: StatisticsAccumulator, baseline_ns: float) -> None:
        result = ScenarioResult(name=name, stats=stats, baseline_ns=baseline_ns)
        self._lines.append(self.reporter.emit(result))
        summary = stats.summary(name)
        self._summaries.append(summary)
        logger.debug(
            f"{name}: n={summary.count} p50={summary.p50_ms:.3f}ms "
            f"p95={summary.p95_ms:.3f}ms p99={summary.p99_ms:.3f}ms"
        )

    def benchmark_network_latency(self, client: MetadataClient) -> float:
        """Measure raw connection setup time; it becomes the baseline for later scenarios."""
        host, port = client.endpoint
        logger.info(f"Measuring socket connection times to {host}:{port}")

        bench = MicroBenchmark(self.config.latency_bench)
        stats = bench.measure(isolated(self.probe, host, port, errors=(OSError,), label="connect"))

        # The baseline itself is reported unadjusted
        self._finish("Connect()", stats, 0.0)
        self._baseline_ns = stats.mean()
        return self._baseline_ns

    def benchmark_create_table(self, client: MetadataClient) -> None:
        db_name, table_name = self.config.database, self.config.table
        table = self._table_spec(table_name)
        bench = MicroBenchmark(self.config.scenario_bench)

        logger.info("Measuring create table times")
        stats = bench.measure(
            isolated(client.create_table, table, label="createTable"),
            teardown=isolated(client.drop_table, db_name, table_name, label="dropTable"),
        )
        self._finish("createTable()", stats, self._baseline_ns)

    def benchmark_drop_table(self, client: MetadataClient) -> None:
        db_name, table_name = self.config.database, self.config.table
        table = self._table_spec(table_name)
        bench = MicroBenchmark(self.config.scenario_bench)

        logger.info("Measuring drop table times")
        stats = bench.measure(
            isolated(client.drop_table, db_name, table_name, label="dropTable"),
            setup=isolated(client.create_table, table, label="createTable"),
        )
        self._finish("dropTable()", stats, self._baseline_ns)

    def benchmark_list_databases(self, client: MetadataClient) -> None:
        bench = MicroBenchmark(self.config.scenario_bench)
        logger.info("Measuring list databases")
        stats = bench.measure(isolated(client.list_databases, label="getAllDatabases"))
        self._finish("getAllDatabases()", stats, self._baseline_ns)

    def benchmark_list_tables(self, client: MetadataClient) -> None:
        bench = MicroBenchmark(self.config.scenario_bench)
        logger.info("Measuring list tables")
        stats = bench.measure(
            isolated(client.list_tables, self.config.database, label="getAllTables")
        )
        self._finish("getAllTables()", stats, self._baseline_ns)

    def benchmark_list_tables_bulk(self, client: MetadataClient) -> None:
        db_name = self.config.database
        tables = [make_table(db_name, name) for name in self.config.bulk_table_names()]

        with bulk_tables(client, tables):
            bench = MicroBenchmark(self.config.scenario_bench)
            logger.info(f"Measuring list tables with {len(tables)} tables")
            stats = bench.measure(isolated(client.list_tables, db_name, label="getAllTables"))
            self._finish("getAllTables(multiple)", stats, self._baseline_ns)
