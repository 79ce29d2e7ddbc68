from click.testing import CliRunner

from mind_graph import cli as cli_module
from mind_graph.processors.pipeline import IngestSummary


def test_invalid_size_is_a_usage_error(tmp_path):
    result = CliRunner().invoke(
        cli_module.cli,
        ["--config", str(tmp_path / "config.yaml"), "ingest", "medium", "http://localhost:8080", "token"],
    )

    assert result.exit_code == 2
    assert "medium" in result.output


def test_ingest_passes_options_to_the_command(tmp_path, monkeypatch):
    calls = []

    def fake_run(config_path, size, server, token, **kwargs):
        calls.append((config_path, size, server, token, kwargs))
        return IngestSummary(articles=3, impressions=5, flushes=2)

    monkeypatch.setattr(cli_module.ingest_cmd, "run", fake_run)
    config_path = str(tmp_path / "config.yaml")

    result = CliRunner().invoke(
        cli_module.cli,
        [
            "--config", config_path,
            "ingest", "small", "http://localhost:8080", "token",
            "--negatives", "viewed", "--max-in-flight", "4", "--commit-every", "100",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "3 articles, 5 impressions" in result.output
    assert calls == [(
        config_path,
        "small",
        "http://localhost:8080",
        "token",
        {"split": None, "negatives": "viewed", "max_in_flight": 4, "commit_every": 100},
    )]


def test_ingest_failure_exits_non_zero(tmp_path, monkeypatch):
    def failing_run(*args, **kwargs):
        raise ValueError("Invalid configuration")

    monkeypatch.setattr(cli_module.ingest_cmd, "run", failing_run)

    result = CliRunner().invoke(
        cli_module.cli,
        ["--config", str(tmp_path / "config.yaml"), "ingest", "large", "http://localhost:8080", "token"],
    )

    assert result.exit_code == 1
    assert "Ingest failed" in result.output


def test_non_positive_commit_interval_is_rejected(tmp_path):
    result = CliRunner().invoke(
        cli_module.cli,
        ["--config", str(tmp_path / "config.yaml"), "ingest", "small", "s", "t", "--commit-every", "0"],
    )

    assert result.exit_code == 2


def test_status_reports_default_config(tmp_path, monkeypatch):
    monkeypatch.setenv("MIND_GRAPH_DATA_DIR", str(tmp_path))

    result = CliRunner().invoke(cli_module.cli, ["--config", str(tmp_path / "config.yaml"), "status"])

    assert result.exit_code == 0
    assert "Configuration is valid" in result.output
    assert "negative impressions: ignored" in result.output
