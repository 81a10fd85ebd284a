"""
Tests for environment-driven settings.
"""

import os
from datetime import date

import pytest
from pydantic import ValidationError

import config.settings as settings_module
from config.settings import Settings
from src.backtest.models import CapitalModel, RebalanceFrequency


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run each test without a .env file or stray BACKTEST_ variables."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("BACKTEST_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr(settings_module, "_settings", None)


def test_defaults():
    settings = Settings()

    assert settings.initial_capital == 100000.0
    assert settings.rebalance_frequency == RebalanceFrequency.QUARTERLY
    assert settings.strategy_name == "Fed Policy Trading Strategy"
    assert settings.benchmark_asset is None
    assert settings.capital_model == CapitalModel.NOTIONAL


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("BACKTEST_START_DATE", "2022-01-01")
    monkeypatch.setenv("BACKTEST_END_DATE", "2023-06-30")
    monkeypatch.setenv("BACKTEST_SLIPPAGE_BPS", "7.5")
    monkeypatch.setenv("BACKTEST_BENCHMARK_ASSET", "SPY")
    monkeypatch.setenv("BACKTEST_CAPITAL_MODEL", "entry_price")
    monkeypatch.setenv("BACKTEST_LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.start_date == date(2022, 1, 1)
    assert settings.end_date == date(2023, 6, 30)
    assert settings.slippage_bps == 7.5
    assert settings.benchmark_asset == "SPY"
    assert settings.capital_model == CapitalModel.ENTRY_PRICE
    assert settings.log_level == "DEBUG"


def test_blank_benchmark_is_none(monkeypatch):
    monkeypatch.setenv("BACKTEST_BENCHMARK_ASSET", "  ")

    assert Settings().benchmark_asset is None


def test_end_before_start_rejected(monkeypatch):
    monkeypatch.setenv("BACKTEST_START_DATE", "2024-01-01")
    monkeypatch.setenv("BACKTEST_END_DATE", "2023-01-01")

    with pytest.raises(ValidationError):
        Settings()


def test_negative_costs_rejected(monkeypatch):
    monkeypatch.setenv("BACKTEST_TRANSACTION_COST_BPS", "-1")

    with pytest.raises(ValidationError):
        Settings()


def test_to_backtest_config(monkeypatch):
    monkeypatch.setenv("BACKTEST_STOP_LOSS_PERCENT", "5")

    config = Settings().to_backtest_config()

    assert config.stop_loss_percent == 5.0
    assert config.start_date == date(2020, 1, 1)
    assert config.transaction_cost_bps == 10.0


def test_get_settings_is_cached():
    assert settings_module.get_settings() is settings_module.get_settings()


def test_reload_settings_reports_changes(monkeypatch):
    settings_module.get_settings()
    monkeypatch.setenv("BACKTEST_SLIPPAGE_BPS", "20")

    new_settings, changes = settings_module.reload_settings()

    assert new_settings.slippage_bps == 20.0
    assert changes == {"slippage_bps": (5.0, 20.0)}


def test_settings_enums_are_the_engine_enums(monkeypatch):
    monkeypatch.setenv("BACKTEST_CAPITAL_MODEL", "entry_price")
    monkeypatch.setenv("BACKTEST_REBALANCE_FREQUENCY", "MONTHLY")

    config = Settings().to_backtest_config()

    assert settings_module.CapitalModel is CapitalModel
    assert config.capital_model is CapitalModel.ENTRY_PRICE
    assert config.rebalance_frequency is RebalanceFrequency.MONTHLY
