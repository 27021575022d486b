"""Tests for sonarflow/cli.py"""

import json
import textwrap

import pytest
import requests
from click.testing import CliRunner

from sonarflow.cli import cli

SONAR = "https://sonarcloud.io/api/issues/search"
JSON = {"Content-Type": "application/json"}

CONFIG = """\
    provider: github
    repository:
      owner: acme
      name: web
    sonar:
      public: true
      component_keys: "acme_web"
      organization: "acme"
    """


@pytest.fixture
def config_path(tmp_path):
    p = tmp_path / ".sonarflow.yaml"
    p.write_text(textwrap.dedent(CONFIG), encoding="utf-8")
    return p


def _invoke(config_path, tmp_path, *args):
    return CliRunner().invoke(
        cli, ["--config", str(config_path), "--output", str(tmp_path / "out"), *args]
    )


def test_fetch_writes_report_and_summary(config_path, tmp_path, requests_mock):
    requests_mock.get(SONAR, headers=JSON, json={"issues": [
        {"key": "a", "severity": "MAJOR"},
        {"key": "b", "severity": "MAJOR"},
        {"key": "c", "severity": "CRITICAL"},
    ]})

    result = _invoke(config_path, tmp_path, "fetch", "--branch", "main")

    assert result.exit_code == 0, result.output
    assert "Fetched 3 issues (source: main)" in result.output
    assert "MAJOR: 2" in result.output
    assert "CRITICAL: 1" in result.output
    report = json.loads((tmp_path / "out" / "issues.json").read_text())
    assert report["source"] == "main"


def test_fetch_uses_current_git_branch(config_path, tmp_path, requests_mock, monkeypatch):
    monkeypatch.setattr("sonarflow.git.current_branch", lambda: "feature/x")
    adapter = requests_mock.get(SONAR, headers=JSON, json={"issues": [{"severity": "INFO"}]})

    result = _invoke(config_path, tmp_path, "fetch")

    assert result.exit_code == 0, result.output
    assert "branch=feature%2Fx" in adapter.last_request.url


def test_fetch_with_pr_link(config_path, tmp_path, requests_mock):
    adapter = requests_mock.get(SONAR, headers=JSON, json={"issues": []})

    result = _invoke(config_path, tmp_path, "fetch", "--branch", "main",
                     "--pr-link", "https://sonarcloud.io/project/issues?id=w&pullRequest=12")

    assert result.exit_code == 0, result.output
    assert "pullRequest=12" in adapter.last_request.url
    assert requests_mock.call_count == 1


def test_fetch_malformed_pr_link_exits_non_zero(config_path, tmp_path, requests_mock):
    result = _invoke(config_path, tmp_path, "fetch", "--branch", "main",
                     "--pr-link", "https://sonarcloud.io/project/issues?id=w")

    assert result.exit_code == 1
    assert requests_mock.call_count == 0


def test_fetch_html_response_exits_non_zero(config_path, tmp_path, requests_mock):
    requests_mock.get(SONAR, text="<html>login</html>", headers={"Content-Type": "text/html"})

    result = _invoke(config_path, tmp_path, "fetch", "--branch", "main")

    assert result.exit_code == 1
    assert not (tmp_path / "out" / "issues.json").exists()


def test_fetch_missing_config_exits_non_zero(tmp_path):
    result = _invoke(tmp_path / "missing.yaml", tmp_path, "fetch", "--branch", "main")
    assert result.exit_code == 1


def test_init_writes_template(tmp_path):
    out = tmp_path / ".sonarflow.yaml"
    result = CliRunner().invoke(cli, ["init", "--output", str(out)])
    assert result.exit_code == 0
    assert out.exists()


def test_init_refuses_to_overwrite(config_path):
    result = CliRunner().invoke(cli, ["init", "--output", str(config_path)])
    assert result.exit_code == 1


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "sonarflow" in result.output


# ---------------------------------------------------------------------------
# quality-gate
# ---------------------------------------------------------------------------

GATE = "https://sonarcloud.io/api/qualitygates/project_status"


def test_quality_gate_passing(config_path, tmp_path, requests_mock):
    requests_mock.get(GATE, headers=JSON, json={"projectStatus": {"status": "OK", "conditions": []}})

    result = _invoke(config_path, tmp_path, "quality-gate")

    assert result.exit_code == 0, result.output
    assert "Quality gate: OK" in result.output


def test_quality_gate_failing_exits_non_zero(config_path, tmp_path, requests_mock):
    requests_mock.get(GATE, headers=JSON, json={"projectStatus": {"status": "ERROR", "conditions": [
        {"status": "ERROR", "metricKey": "new_coverage", "comparator": "LT",
         "errorThreshold": "80", "actualValue": "41.0"},
    ]}})

    result = _invoke(config_path, tmp_path, "quality-gate", "--branch", "main")

    assert result.exit_code == 1
    assert "new_coverage: 41.0" in result.output
    assert "branch=main" in requests_mock.last_request.url


def test_quality_gate_with_pr_link(config_path, tmp_path, requests_mock):
    adapter = requests_mock.get(GATE, headers=JSON, json={"projectStatus": {"status": "OK"}})

    result = _invoke(config_path, tmp_path, "quality-gate",
                     "--pr-link", "https://sonarcloud.io/project/issues?id=w&pullRequest=12")

    assert result.exit_code == 0, result.output
    assert "pullRequest=12" in adapter.last_request.url


def test_quality_gate_unreachable_server_exits_non_zero(config_path, tmp_path, requests_mock):
    requests_mock.get(GATE, exc=requests.exceptions.ConnectionError)

    result = _invoke(config_path, tmp_path, "quality-gate")

    assert result.exit_code == 1
    assert "Network error" in result.output
