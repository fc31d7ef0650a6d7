"""Tests for the command-line interface."""

from __future__ import annotations

from typing import Any

import pytest
import uvicorn
from click.testing import CliRunner

from gameroute.cli import main


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["help"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "run" in result.output

    result = runner.invoke(main, ["help", "run"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "--port" in result.output


def test_run(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def mock_run(app: str, **kwargs: Any) -> None:
        calls.append((app, kwargs))

    monkeypatch.setattr(uvicorn, "run", mock_run)
    runner = CliRunner()
    result = runner.invoke(
        main, ["run", "--port", "9000"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert calls == [
        (
            "gameroute.main:create_app",
            {"factory": True, "host": "0.0.0.0", "port": 9000},
        )
    ]
