#!/usr/bin/env python3
"""
CLI entry point for the metadata service latency benchmark.

Usage:
    python -m metabench -s localhost -t bench.table1
    python -m metabench -s http://catalog:8000 -d bench -t table1 --drop
"""

from __future__ import annotations

import argparse
import logging
import sys

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

from config import get_server_url
from metabench.exceptions import BenchmarkError
from metabench.microbench import BenchmarkConfig, DEFAULT_TRIALS, DEFAULT_WARMUP
from metabench.session import BenchmarkSession, RunConfig


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 on bad arguments."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the benchmark run."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def create_progress_callback():
    """Create a progress callback that draws a rich progress bar on stderr."""
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=Console(stderr=True),
        transient=True,
    )

    task_id = None
    started = False

    def callback(current: int, total: int, message: str) -> None:
        nonlocal task_id, started

        if not started:
            progress.start()
            task_id = progress.add_task(message, total=total)
            started = True
        else:
            progress.update(task_id, completed=current, description=message)

        if current >= total:
            progress.stop()

    return callback, lambda: progress.stop() if started else None


def split_table_name(database: str | None, table: str | None) -> tuple[str | None, str | None]:
    """Resolve the "db.table" shorthand; an explicit prefix wins over --database."""
    if table and "." in table:
        database, table = table.split(".", 1)
    return database, table


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="metabench",
        description="Measure metadata service operation latency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Benchmark against a local catalog
    python -m metabench -t bench.table1

    # Remote server, replacing a leftover target table
    python -m metabench -s catalog.example.com:8000 -d bench -t table1 --drop

    # Fewer trials, partitioned target table
    python -m metabench -t bench.table1 -n 20 -W 5 -P year,month
        """,
    )

    parser.add_argument("-s", "--server", help="Metadata server (host, host:port or URL)")
    parser.add_argument("-d", "--database", help="Database name")
    parser.add_argument("-t", "--table", help="Table name, or db.table")
    parser.add_argument(
        "-D", "--drop",
        action="store_true",
        help="Drop the target table if it already exists",
    )
    parser.add_argument(
        "-N", "--number",
        type=int,
        default=100,
        help="Number of tables for the populated listing scenario (default: 100)",
    )
    parser.add_argument(
        "-S", "--pattern",
        default="tmp_table_{}",
        help="Name pattern for bulk tables (default: tmp_table_{})",
    )
    parser.add_argument(
        "-P", "--partitions",
        default="",
        help="Comma-separated partition keys for the target table",
    )
    parser.add_argument(
        "-W", "--warmup",
        type=int,
        default=DEFAULT_WARMUP,
        help=f"Warmup trials per scenario (default: {DEFAULT_WARMUP})",
    )
    parser.add_argument(
        "-n", "--trials",
        type=int,
        default=DEFAULT_TRIALS,
        help=f"Measured trials per scenario (default: {DEFAULT_TRIALS})",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the benchmark CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    database, table = split_table_name(args.database, args.table)
    if not database:
        print("Error: Missing database name", file=sys.stderr)
        return 1
    if not table:
        print("Error: Missing table name", file=sys.stderr)
        return 1

    try:
        config = RunConfig(
            database=database,
            table=table,
            server_url=get_server_url(args.server),
            drop_existing=args.drop,
            bulk_count=args.number,
            bulk_pattern=args.pattern,
            partition_keys=[p for p in args.partitions.split(",") if p],
            scenario_bench=BenchmarkConfig(warmup=args.warmup, trials=args.trials),
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    progress_callback, cleanup = create_progress_callback()

    try:
        session = BenchmarkSession(config, progress_callback=progress_callback)
        result = session.run()
        cleanup()
        logging.info(
            f"Benchmark completed: {session.reporter.lines_written} scenarios "
            f"reported in {result.wall_time_s:.2f}s"
        )
        return 0

    except KeyboardInterrupt:
        cleanup()
        print("\nBenchmark interrupted by user", file=sys.stderr)
        return 130

    except BenchmarkError as e:
        cleanup()
        logging.error(f"Benchmark failed: {e}")
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    except Exception as e:
        cleanup()
        logging.exception("Benchmark failed with error")
        print(f"\nError: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
