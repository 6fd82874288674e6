"""Tests for dojo_upload/cli.py"""

import json

import pytest
from click.testing import CliRunner

from dojo_upload import tunnel
from dojo_upload.cli import cli

BASE = "https://dojo.example.com"
API  = f"{BASE}/api/v2"

ENV = {"DEFECTDOJO_URL": BASE, "DEFECTDOJO_API_TOKEN": "tok"}


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _mock_run(requests_mock):
    requests_mock.get(f"{API}/products/", json={"count": 0, "results": []})
    requests_mock.post(f"{API}/products/", json={"id": 3})
    requests_mock.post(f"{API}/engagements/", json={"id": 21})
    requests_mock.post(f"{API}/import-scan/", json={"test": 1})
    requests_mock.patch(f"{API}/engagements/21/", json={"status": "Completed"})


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------

def test_upload_without_credentials_exits_before_network(runner, requests_mock):
    result = runner.invoke(cli, ["upload"])
    assert result.exit_code == 1
    assert "DEFECTDOJO_URL" in result.output
    assert not requests_mock.called


def test_upload_success_writes_summary(runner, requests_mock, tmp_path):
    _mock_run(requests_mock)
    (tmp_path / "zap-results.json").write_text("{}")
    out = tmp_path / "summary.json"

    result = runner.invoke(
        cli, ["--output", str(out), "upload", "--scan-dir", str(tmp_path)], env=ENV,
    )

    assert result.exit_code == 0, result.output
    report = json.loads(out.read_text())
    assert report["engagement_id"] == 21
    assert report["summary"]["imported"] == 1
    assert "View results at: https://dojo.example.com/engagement/21" in result.output


def test_upload_engagement_failure_exits_1(runner, requests_mock, tmp_path):
    requests_mock.get(f"{API}/products/", json={"count": 1, "results": [{"id": 3}]})
    requests_mock.post(f"{API}/engagements/", json={"detail": "denied"})
    imports = requests_mock.post(f"{API}/import-scan/", json={"test": 1})
    (tmp_path / "zap-results.json").write_text("{}")

    result = runner.invoke(cli, ["upload", "--scan-dir", str(tmp_path)], env=ENV)

    assert result.exit_code == 1
    assert "Failed to create engagement" in result.output
    assert not imports.called


def test_upload_import_failures_keep_exit_0(runner, requests_mock, tmp_path):
    _mock_run(requests_mock)
    requests_mock.post(f"{API}/import-scan/", status_code=500)
    requests_mock.patch(f"{API}/engagements/21/", json={"status": "In Progress"})
    (tmp_path / "bandit-results.json").write_text("{}")

    result = runner.invoke(
        cli, ["--output", str(tmp_path / "s.json"), "upload", "--scan-dir", str(tmp_path)],
        env=ENV,
    )

    assert result.exit_code == 0, result.output
    assert "[WARN]" in result.output


def test_upload_ignores_ci_variables_from_outer_environment(runner, requests_mock, tmp_path):
    _mock_run(requests_mock)
    engagements = requests_mock.post(f"{API}/engagements/", json={"id": 21})

    result = runner.invoke(
        cli, ["--output", str(tmp_path / "s.json"), "upload", "--scan-dir", str(tmp_path)],
        env=ENV,
    )

    assert result.exit_code == 0, result.output
    body = engagements.last_request.json()
    assert body["name"] == "CI/CD Run"
    assert body["build_id"] == ""
    assert body["commit_hash"] == ""


def test_upload_auth_error_exits_1(runner, requests_mock):
    requests_mock.get(f"{API}/products/", status_code=401)
    result = runner.invoke(cli, ["upload"], env=ENV)
    assert result.exit_code == 1
    assert "Authentication error" in result.output


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

def test_init_writes_template(runner, tmp_path):
    out = tmp_path / "dojo-config.yaml"
    result = runner.invoke(cli, ["init", "--output", str(out)])
    assert result.exit_code == 0
    assert out.exists()


def test_init_refuses_overwrite(runner, tmp_path):
    out = tmp_path / "dojo-config.yaml"
    out.write_text("server: {}")
    result = runner.invoke(cli, ["init", "--output", str(out)])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# tunnel
# ---------------------------------------------------------------------------

def test_tunnel_missing_ngrok_exits_1(runner, monkeypatch):
    monkeypatch.setattr(tunnel.shutil, "which", lambda name: None)
    result = runner.invoke(cli, ["tunnel"])
    assert result.exit_code == 1
    assert "ngrok is not installed" in result.output


def test_tunnel_dry_run_prints_command(runner, monkeypatch):
    monkeypatch.setattr(tunnel.shutil, "which", lambda name: "ngrok")
    monkeypatch.setattr(tunnel, "probe", lambda port: False)
    result = runner.invoke(cli, ["tunnel", "8443", "my-sub.ngrok-free.app", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "ngrok http --domain=my-sub.ngrok-free.app 8443" in result.output


def test_tunnel_execs_ngrok_on_default_port(runner, monkeypatch):
    launched = []
    monkeypatch.setattr(tunnel.shutil, "which", lambda name: "/usr/bin/ngrok")
    monkeypatch.setattr(tunnel, "probe", lambda port: True)
    monkeypatch.setattr(tunnel, "launch", launched.append)

    result = runner.invoke(cli, ["tunnel"])

    assert result.exit_code == 0, result.output
    assert launched == [["/usr/bin/ngrok", "http", "8080"]]


def test_tunnel_rejects_bad_port(runner):
    result = runner.invoke(cli, ["tunnel", "70000"])
    assert result.exit_code == 2
