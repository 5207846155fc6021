import json

from conftest import make_pem_pair
from typer.testing import CliRunner

from certflow.cli import app


def _write_config(tmp_path) -> str:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"database_url: sqlite://{tmp_path / 'outputs.db'}\n"
        f"run_database_url: sqlite+aiosqlite:///{tmp_path / 'runs.db'}\n"
        "log_level: WARNING\n"
    )
    return str(config_path)


def _write_workflow(tmp_path, days_valid: int) -> str:
    cert_pem, key_pem = make_pem_pair(
        days_valid=days_valid, days_since_issue=90 if days_valid < 0 else 1
    )
    workflow = {
        "id": "wf-cli",
        "name": "Upload only",
        "nodes": [
            {
                "id": "upload-1",
                "name": "Upload",
                "type": "upload",
                "config": {"certificate": cert_pem, "private_key": key_pem},
                "outputs": [{"name": "certificate", "type": "certificate"}],
            }
        ],
    }
    path = tmp_path / "workflow.yaml"
    # JSON is valid YAML
    path.write_text(json.dumps(workflow))
    return str(path)


def _clear_env(monkeypatch):
    for var in ("CERTFLOW_DATABASE_URL", "DATABASE_URL", "CERTFLOW_RUN_DATABASE_URL"):
        monkeypatch.delenv(var, raising=False)


def test_workflow_run_and_inspect(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config = _write_config(tmp_path)
    runner = CliRunner()

    workflow = _write_workflow(tmp_path, 30)
    result = runner.invoke(app, ["--config", config, "workflow", "run", workflow])
    assert result.exit_code == 0, result.stdout
    assert "succeeded" in result.stdout
    run_id = result.stdout.split()[1].rstrip(":")

    result = runner.invoke(app, ["--config", config, "run", "list", "--workflow-id", "wf-cli"])
    assert result.exit_code == 0
    assert run_id in result.stdout

    result = runner.invoke(app, ["--config", config, "run", "show", run_id])
    assert result.exit_code == 0
    assert "[Upload]" in result.stdout
    assert "upload record saved" in result.stdout

    result = runner.invoke(app, ["--config", config, "output", "show", "upload-1"])
    assert result.exit_code == 0
    assert "succeeded=True" in result.stdout


def test_failed_run_exits_non_zero(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config = _write_config(tmp_path)
    result = CliRunner().invoke(
        app, ["--config", config, "workflow", "run", _write_workflow(tmp_path, -1)]
    )
    assert result.exit_code == 1
    assert "failed" in result.stdout


def test_missing_records(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config = _write_config(tmp_path)
    runner = CliRunner()

    result = runner.invoke(app, ["--config", config, "run", "show", "missing"])
    assert result.exit_code == 1
    assert "Run not found" in result.stdout

    result = runner.invoke(app, ["--config", config, "output", "show", "missing"])
    assert result.exit_code == 1
    assert "Output not found" in result.stdout


def test_invalid_config_exits_non_zero(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    config_path = tmp_path / "config.yaml"
    config_path.write_text("node_timeout: forever\n")
    result = CliRunner().invoke(app, ["--config", str(config_path), "run", "list"])
    assert result.exit_code == 1
    assert "invalid configuration" in result.stdout
