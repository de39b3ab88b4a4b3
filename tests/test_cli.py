"""CLI tests for the simulation commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dex_order_engine import cli
from dex_order_engine.cli_commands import engine as engine_commands
from dex_order_engine.cli_commands.utils import format_event_line
from dex_order_engine.core.events import LifecycleEvent
from dex_order_engine.models import OrderStatus

runner = CliRunner()


@pytest.fixture
def fast_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Near-zero simulated latencies and logging kept out of the test output."""
    values = {
        "ORDER_ENGINE_QUOTE_LATENCY": "0",
        "ORDER_ENGINE_BUILD_DELAY": "0",
        "ORDER_ENGINE_GATE_RETRY_DELAY": "0",
        "ORDER_ENGINE_EXECUTION_MIN_LATENCY": "0",
        "ORDER_ENGINE_EXECUTION_MAX_LATENCY": "0",
        "ORDER_ENGINE_LOG_DIR": str(tmp_path / "logs"),
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setattr(engine_commands, "setup_logging", lambda *args, **kwargs: None)
    return tmp_path


def _event_lines(output: str, status: str) -> int:
    return sum(1 for line in output.splitlines() if f" {status} " in line)


def _statistics(output: str) -> dict[str, dict[str, int]]:
    _, _, payload = output.partition("=== Statistics ===")
    return json.loads(payload)


def test_simulate_confirms_reachable_limit(fast_env: Path) -> None:
    result = runner.invoke(cli.app, ["simulate", "--orders", "2", "--limit", "1000"])

    assert result.exit_code == 0, result.stdout
    assert _event_lines(result.stdout, "confirmed") == 2
    stats = _statistics(result.stdout)
    assert stats["orders"]["confirmed"] == 2
    assert stats["queue"]["completed"] == 2
    assert (fast_env / "logs" / "telemetry.jsonl").exists()


def test_simulate_reports_unreachable_limit(fast_env: Path) -> None:
    result = runner.invoke(
        cli.app, ["engine", "simulate", "--limit", "1", "--concurrency", "1"]
    )

    assert result.exit_code == 0, result.stdout
    assert "Limit price not reached after 3 attempts" in result.stdout
    assert _event_lines(result.stdout, "limit_check") == 3
    assert _statistics(result.stdout)["orders"]["failed"] == 1


def test_simulate_rejects_invalid_amount(fast_env: Path) -> None:
    result = runner.invoke(cli.app, ["simulate", "--limit", "100", "--amount", "0"])

    assert result.exit_code != 0


def test_show_config_outputs_json(fast_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORDER_ENGINE_CONCURRENCY", "7")

    result = runner.invoke(cli.app, ["show-config"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["concurrency"] == 7
    assert payload["default_venue"] == "METEORA"


def test_format_event_line_variants() -> None:
    failed = LifecycleEvent(
        order_id="12345678-aaaa", status=OrderStatus.FAILED, data={"error": "boom"}
    )
    check = LifecycleEvent(
        order_id="12345678-aaaa",
        status=OrderStatus.LIMIT_CHECK,
        data={
            "venue": "RAYDIUM",
            "price": 180.0,
            "limit_price": 185.0,
            "attempt": 1,
            "max_attempts": 3,
        },
    )

    assert format_event_line(failed).endswith("failed      error=boom")
    assert "12345678 limit_check" in format_event_line(check)
    assert "limit=$185.00 attempt=1/3" in format_event_line(check)
