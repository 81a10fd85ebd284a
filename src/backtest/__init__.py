"""
Historical backtesting module for signal-driven strategies.

Replays dated trading signals against historical prices and reports
returns, risk-adjusted metrics and Fed policy regime attribution.
"""

from src.backtest.backtester import Backtester
from src.backtest.ledger import LedgerReplay, PositionLedger
from src.backtest.market_data import MarketDataStore
from src.backtest.models import (
    BacktestConfig,
    BacktestResult,
    BenchmarkComparison,
    CapitalModel,
    EconomicDataPoint,
    ExitReason,
    PerformanceMetrics,
    PortfolioSnapshot,
    PricePoint,
    RebalanceFrequency,
    SellWithoutPricePolicy,
    Signal,
    SignalAction,
    SignalEvent,
    TradeResult,
)
from src.backtest.regime import (
    PolicyRegime,
    PolicyRegimeClassifier,
    RegimeAttribution,
    RegimeConfig,
    RegimeStats,
)
from src.backtest.signal_rules import SignalRule, generate_historical_signals
from src.backtest.simulator import TradeSimulator

__all__ = [
    "Backtester",
    "BacktestConfig",
    "BacktestResult",
    "BenchmarkComparison",
    "CapitalModel",
    "EconomicDataPoint",
    "ExitReason",
    "LedgerReplay",
    "MarketDataStore",
    "PerformanceMetrics",
    "PolicyRegime",
    "PolicyRegimeClassifier",
    "PortfolioSnapshot",
    "PositionLedger",
    "PricePoint",
    "RebalanceFrequency",
    "RegimeAttribution",
    "RegimeConfig",
    "RegimeStats",
    "SellWithoutPricePolicy",
    "Signal",
    "SignalAction",
    "SignalEvent",
    "SignalRule",
    "TradeResult",
    "TradeSimulator",
    "generate_historical_signals",
]
