"""Unit tests for the command-line interface."""

from __future__ import annotations

import json
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from afkwarden.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cwd(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run every command from an empty directory with no user config."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def test_identity_command_uses_base_argument() -> None:
    result = runner.invoke(app, ["identity", "idler", "--count", "3"])

    assert result.exit_code == 0
    lines = result.stdout.split()
    assert len(lines) == 3
    assert all(re.fullmatch(r"idler_[A-Za-z0-9]{8}", line) for line in lines)


def test_identity_command_defaults_to_configured_name(tmp_path: Path) -> None:
    config_path = tmp_path / "bot.json"
    config_path.write_text(json.dumps({"name": "configured"}), encoding="utf-8")

    result = runner.invoke(app, ["--config", str(config_path), "identity"])

    assert result.exit_code == 0
    assert re.fullmatch(r"configured_[A-Za-z0-9]{8}", result.stdout.strip())


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    config_path = tmp_path / "bad.json"
    config_path.write_text("{broken", encoding="utf-8")

    result = runner.invoke(app, ["--config", str(config_path), "identity"])

    assert result.exit_code == 1
    assert "Error loading configuration" in result.stdout


def test_run_without_client_factory_exits(tmp_path: Path) -> None:
    config_path = tmp_path / "bot.json"
    config_path.write_text(json.dumps({"logging": {"file": None}}), encoding="utf-8")

    result = runner.invoke(app, ["--config", str(config_path), "run"])

    assert result.exit_code == 1
    assert "No game client configured" in result.stdout


def test_run_with_unloadable_client_factory_exits(tmp_path: Path) -> None:
    config_path = tmp_path / "bot.json"
    config_path.write_text(json.dumps({"logging": {"file": None}}), encoding="utf-8")

    result = runner.invoke(
        app, ["--config", str(config_path), "run", "--client", "math:pi"]
    )

    assert result.exit_code == 1
    assert "Cannot load game client" in result.stdout
