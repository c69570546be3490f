import json

import pytest
from click.testing import CliRunner

from iacgate.cli import cli
from tests.helpers.plan_helpers import declaration, write_plan


@pytest.fixture
def runner():
    return CliRunner()


def _report(result):
    return json.loads(result.stdout)


def test_scan_clean_declarations_exits_zero(runner, fixtures_dir):
    result = runner.invoke(cli, ["scan", str(fixtures_dir / "declarations_clean.yaml")])

    assert result.exit_code == 0, result.output
    report = _report(result)
    assert report["gate"]["status"] == "PASS"
    assert report["findings"] == []
    assert report["graph"] == {"nodes": 3, "edges": 2}


def test_scan_public_blob_fails_gate(runner, fixtures_dir):
    result = runner.invoke(cli, ["scan", str(fixtures_dir / "declarations_public_blob.json")])

    assert result.exit_code == 3
    report = _report(result)
    assert [finding["rule_id"] for finding in report["findings"]] == ["IAC-AZ-001"]
    assert report["findings"][0]["location"] == {"file": "storage.tf", "start_line": 3, "end_line": 11}


def test_threshold_option_controls_gate(runner, fixtures_dir):
    result = runner.invoke(
        cli, ["scan", str(fixtures_dir / "declarations_public_blob.json"), "--threshold", "critical"]
    )
    assert result.exit_code == 0


def test_threshold_from_environment(runner, fixtures_dir, monkeypatch):
    monkeypatch.setenv("IACGATE_SEVERITY_THRESHOLD", "critical")
    result = runner.invoke(cli, ["scan", str(fixtures_dir / "declarations_public_blob.json")])
    assert result.exit_code == 0


def test_malformed_input_exits_two(runner, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    result = runner.invoke(cli, ["scan", str(path)])

    assert result.exit_code == 2
    assert "invalid JSON" in result.output


def test_missing_plan_exits_two(runner, tmp_path):
    result = runner.invoke(cli, ["scan", str(tmp_path / "absent.json")])
    assert result.exit_code == 2


def test_bad_suppression_file_exits_two(runner, tmp_path, fixtures_dir):
    ignore = tmp_path / "ignore.txt"
    ignore.write_text("IAC-AZ-001:2025-02-30\n", encoding="utf-8")

    result = runner.invoke(
        cli, ["scan", str(fixtures_dir / "declarations_public_blob.json"), "--suppressions", str(ignore)]
    )
    assert result.exit_code == 2


def test_configuration_error_exits_six(runner, fixtures_dir, monkeypatch):
    monkeypatch.setenv("IACGATE_WORKERS", "lots")
    result = runner.invoke(cli, ["scan", str(fixtures_dir / "declarations_clean.yaml")])
    assert result.exit_code == 6
    assert "Configuration error" in result.output


def test_invalid_worker_count_exits_six(runner, fixtures_dir):
    result = runner.invoke(cli, ["scan", str(fixtures_dir / "declarations_clean.yaml"), "--workers", "0"])
    assert result.exit_code == 6


def test_scan_requires_some_input(runner):
    result = runner.invoke(cli, ["scan"])
    assert result.exit_code == 2
    assert "Provide a plan file" in result.output


def test_secrets_only_scan(runner, fixtures_dir):
    result = runner.invoke(cli, ["scan", "--secrets", str(fixtures_dir / "secrets")])

    assert result.exit_code == 3
    report = _report(result)
    assert report["secrets"]["files_scanned"] == 2
    assert [(match["pattern_id"], match["line"]) for match in report["secrets"]["matches"]] == [
        ("SECRET-ENTROPY", 3)
    ]
    assert "Tr0ub4dor&3xample!" not in result.stdout


def test_secret_threshold_option(runner, fixtures_dir):
    result = runner.invoke(
        cli, ["scan", "--secrets", str(fixtures_dir / "secrets"), "--secret-threshold", "critical"]
    )
    assert result.exit_code == 0


def test_secrets_disabled_by_environment(runner, fixtures_dir, monkeypatch):
    monkeypatch.setenv("IACGATE_DISABLE_SECRETS", "1")
    result = runner.invoke(cli, ["scan", "--secrets", str(fixtures_dir / "secrets")])
    assert result.exit_code == 0
    assert _report(result)["secrets"]["files_scanned"] == 0


def test_output_file_and_quiet(runner, tmp_path):
    plan = write_plan(tmp_path, [declaration("azurerm_container_registry", "acr", {"admin_enabled": True})])
    target = tmp_path / "report.json"

    written = runner.invoke(cli, ["scan", str(plan), "--output", str(target)])
    quiet = runner.invoke(cli, ["scan", str(plan), "--quiet"])

    assert written.exit_code == 0
    assert written.stdout == ""
    assert json.loads(target.read_text(encoding="utf-8"))["findings"][0]["rule_id"] == "IAC-AZ-040"
    assert quiet.exit_code == 0
    assert quiet.stdout == ""


def test_rules_command_lists_catalogue(runner):
    result = runner.invoke(cli, ["rules"])

    assert result.exit_code == 0
    manifest = {entry["id"]: entry for entry in json.loads(result.output)}
    assert manifest["IAC-AZ-011"]["severity"] == "high"
    assert manifest["IAC-AWS-003"]["severity"] == "critical"
    assert manifest["IAC-AZ-020"]["resource_types"] == ["azurerm_kubernetes_cluster"]
