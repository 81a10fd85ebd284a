"""
Pytest configuration and shared fixtures for backtester tests.
"""

import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import MagicMock

# Silence structlog during tests
import structlog

from src.backtest.models import (
    BacktestConfig,
    EconomicDataPoint,
    PricePoint,
    Signal,
    SignalAction,
    SignalEvent,
)


def _mock_logger_factory(*args):
    """Factory that creates mock loggers for testing."""
    mock = MagicMock()
    # Configure mock methods to return the mock itself (for chaining)
    mock.bind.return_value = mock
    return mock


structlog.configure(
    processors=[],
    logger_factory=_mock_logger_factory,
)


# ============================================================================
# Shared Fixtures
# ============================================================================

@pytest.fixture
def make_series():
    """Build a daily price series from a list of prices."""
    def _make(prices, start=date(2024, 1, 2)):
        return [
            PricePoint(date=start + timedelta(days=i), price=float(p))
            for i, p in enumerate(prices)
        ]
    return _make


@pytest.fixture
def make_config():
    """BacktestConfig with zero costs unless overridden."""
    def _make(**overrides):
        params = {
            "start_date": date(2024, 1, 1),
            "end_date": date(2024, 12, 31),
            "initial_capital": 100000.0,
            "transaction_cost_bps": 0.0,
            "slippage_bps": 0.0,
        }
        params.update(overrides)
        return BacktestConfig(**params)
    return _make


@pytest.fixture
def buy():
    """Build a BUY signal event."""
    def _buy(asset, on, expected_return=10.0):
        return SignalEvent(
            date=on,
            signals=(Signal(asset=asset, action=SignalAction.BUY, expected_return=expected_return),),
        )
    return _buy


@pytest.fixture
def sell():
    """Build a SELL signal event."""
    def _sell(asset, on):
        return SignalEvent(
            date=on,
            signals=(Signal(asset=asset, action=SignalAction.SELL),),
        )
    return _sell


@pytest.fixture
def rate_points():
    """Economic points carrying a DFF policy rate."""
    def _make(pairs):
        return [EconomicDataPoint(date=d, fields={"DFF": r}) for d, r in pairs]
    return _make
