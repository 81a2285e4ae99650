"""Tests for the quotagate CLI."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from quotagate.cli import cli


def _write_policies(tmp_path: Path, policies: object) -> str:
    p = tmp_path / "policies.json"
    p.write_text(json.dumps(policies))
    return str(p)


def test_policies_command_prints_parsed_policies(tmp_path: Path) -> None:
    path = _write_policies(tmp_path, [
        {"path": "/login", "methods": ["post"], "limit": 5, "period": 60},
    ])
    result = CliRunner().invoke(cli, ["policies", path])
    assert result.exit_code == 0
    (policy,) = json.loads(result.output)
    assert policy["path"] == "/login"
    assert policy["methods"] == ["POST"]
    assert policy["kind"] == "via_ip"


def test_policies_command_rejects_invalid_file(tmp_path: Path) -> None:
    path = _write_policies(tmp_path, [{"path": "/login", "limit": 5, "period": 0}])
    result = CliRunner().invoke(cli, ["policies", path])
    assert result.exit_code == 1
    assert "#0" in result.output


def test_policies_command_missing_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["policies", str(tmp_path / "nope.json")])
    assert result.exit_code == 1


def test_keys_command(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["keys", "10.0.0.1", "/login", "post", "--period", "60"])
    assert result.exit_code == 0
    keys = json.loads(result.output)
    assert keys["current"].startswith("rate_limit_")
    assert keys["previous"].startswith("rate_limit_")
    current_slot = int(keys["current"].rsplit("_", 1)[1])
    previous_slot = int(keys["previous"].rsplit("_", 1)[1])
    assert current_slot - previous_slot == 1


def test_keys_command_rejects_zero_period() -> None:
    result = CliRunner().invoke(cli, ["keys", "10.0.0.1", "/login", "post", "--period", "0"])
    assert result.exit_code == 2


def test_status_command_on_empty_store() -> None:
    result = CliRunner().invoke(cli, [
        "status", "10.0.0.1", "/login", "post", "--limit", "5", "--period", "60",
    ])
    assert result.exit_code == 0
    status = json.loads(result.output)
    assert status["active"] is False
    assert status["remaining"] == 5
    assert status["key"].startswith("rate_limit_")


def test_reset_command() -> None:
    result = CliRunner().invoke(cli, [
        "reset", "10.0.0.1", "/login", "post", "--limit", "5", "--period", "60",
    ])
    assert result.exit_code == 0
    assert "Buckets cleared for: 10.0.0.1 POST /login" in result.output


def test_reset_command_rejects_negative_limit() -> None:
    result = CliRunner().invoke(cli, [
        "reset", "10.0.0.1", "/login", "post", "--limit", "-1", "--period", "60",
    ])
    assert result.exit_code == 2
