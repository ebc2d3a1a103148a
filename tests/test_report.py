import io
import math

from metabench.metrics import StatisticsAccumulator
from metabench.report import ReportGenerator, ScenarioResult, format_result

MS = 1_000_000


def _stats(*samples_ns: int) -> StatisticsAccumulator:
    stats = StatisticsAccumulator()
    for s in samples_ns:
        stats.record(s)
    return stats


def test_baseline_is_subtracted():
    """A 12ms mean against a 5ms baseline reports 7ms adjusted."""
    result = ScenarioResult("createTable()", _stats(12 * MS), baseline_ns=5 * MS)

    assert result.mean_ms == 12
    assert result.adjusted_ms == 7


def test_unadjusted_without_baseline():
    result = ScenarioResult("Connect()", _stats(2 * MS, 4 * MS))
    assert result.adjusted_ms == result.mean_ms == 3


def test_min_max_in_milliseconds():
    result = ScenarioResult("getAllTables()", _stats(1 * MS, 3 * MS, 8 * MS))
    assert result.min_ms == 1
    assert result.max_ms == 8


def test_relative_stddev():
    result = ScenarioResult("x", _stats(10, 20, 30))
    assert result.relative_stddev_pct == 50


def test_zero_mean_is_undefined_not_an_error():
    result = ScenarioResult("noop()", _stats(0, 0, 0))

    assert math.isnan(result.relative_stddev_pct)
    assert format_result(result).endswith("+/- undefined")


def test_format_result():
    result = ScenarioResult("dropTable()", _stats(10 * MS, 20 * MS, 30 * MS), baseline_ns=5 * MS)
    assert format_result(result) == (
        "dropTable(): Mean: 20 ms, Adjusted: 15 ms, [10, 30], +/- 50%"
    )


def test_report_generator_writes_one_line_per_result():
    stream = io.StringIO()
    reporter = ReportGenerator(stream)

    line = reporter.emit(ScenarioResult("Connect()", _stats(1 * MS)))
    reporter.emit(ScenarioResult("createTable()", _stats(3 * MS), baseline_ns=1 * MS))

    lines = stream.getvalue().splitlines()
    assert lines[0] == line
    assert lines[1].startswith("createTable(): Mean: 3 ms, Adjusted: 2 ms")
    assert reporter.lines_written == 2
