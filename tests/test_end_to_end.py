import io

from metabench.client import MetadataClient
from metabench.microbench import BenchmarkConfig
from metabench.report import ReportGenerator
from metabench.session import SCENARIOS, BenchmarkSession, RunConfig


def test_full_run_against_live_server(api_server):
    """Every scenario runs over real sockets and the catalog ends up clean."""
    config = RunConfig(
        database="bench",
        table="e2e_target",
        server_url=api_server,
        bulk_count=20,
        latency_bench=BenchmarkConfig(warmup=2, trials=5),
        scenario_bench=BenchmarkConfig(warmup=2, trials=5),
    )
    stream = io.StringIO()
    result = BenchmarkSession(config, reporter=ReportGenerator(stream)).run()

    lines = stream.getvalue().splitlines()
    assert [line.split(":")[0] for line in lines] == list(SCENARIOS)
    assert result.baseline_ms > 0
    assert all(s.count == 5 for s in result.summaries)

    with MetadataClient(api_server) as client:
        assert client.database_exists("bench")
        assert not client.table_exists("bench", "e2e_target")
        assert client.list_tables("bench", r"tmp_table_\d+") == set()


def test_cli_run_against_live_server(api_server, capsys, caplog):
    from metabench.__main__ import main

    with caplog.at_level("INFO"):
        code = main(["-s", api_server, "-t", "bench.cli_target", "-W", "1", "-n", "2", "-N", "5"])

    assert code == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split(":")[0] for line in lines] == list(SCENARIOS)
    assert f"{len(SCENARIOS)} scenarios reported" in caplog.text
