"""
Data model for the signal backtesting engine.

Plain dataclasses shared by the simulator, ledger, analyzer and
regime attributor. Input records are frozen; only the ledger's
Position is mutable state, and it never leaves a run.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union

import pandas as pd

DateLike = Union[date, datetime, str, pd.Timestamp]


def to_date(value: DateLike) -> date:
    """Normalize ISO strings, datetimes and pandas Timestamps to a date."""
    if isinstance(value, pd.Timestamp):
        return value.date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise ValueError(f"Unsupported date value: {value!r}")


class SignalAction(str, Enum):
    """Instruction carried by a signal."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    SHORT = "SHORT"


class RebalanceFrequency(str, Enum):
    """Rebalance cadence. Informational only, the replay loop does not enforce it."""
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUAL = "SEMI_ANNUAL"
    ANNUAL = "ANNUAL"


class CapitalModel(str, Enum):
    """How realized trades move the ledger's cash balance."""
    NOTIONAL = "notional"        # Positions are paid for in cash and settled at their exit
    ENTRY_PRICE = "entry_price"  # P&L and cost scale with the entry price only, no cash outlay


class SellWithoutPricePolicy(str, Enum):
    """What a SELL does to an open position when no exit price can be found."""
    LIQUIDATE = "liquidate"          # Close the position without recording a trade
    KEEP_POSITION = "keep_position"  # Treat the signal as dropped


class ExitReason(str, Enum):
    """Why a simulated trade was closed."""
    STOP_LOSS = "stop_loss"
    TARGET = "target"
    HORIZON = "horizon"  # Full holding period elapsed
    END_OF_DATA = "end_of_data"  # Price series ran out first
    SIGNAL = "signal"  # Closed by a SELL signal


@dataclass(frozen=True)
class PricePoint:
    """One observed price for an asset."""

    date: date
    price: float
    volume: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))


@dataclass(frozen=True)
class EconomicDataPoint:
    """Dated macro observation, e.g. {"DFF": 5.33, "UNRATE": 3.9}."""

    date: date
    fields: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "fields", dict(self.fields))

    def get(self, name: str) -> Optional[float]:
        value = self.fields.get(name)
        if value is None:
            return None
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
        return None if math.isnan(value) else value

    @property
    def policy_rate(self) -> Optional[float]:
        """Effective Fed Funds rate (DFF) if present."""
        return self.get("DFF")


@dataclass(frozen=True)
class Signal:
    """A single trading instruction for one asset."""

    asset: str
    action: SignalAction
    confidence: float = 0.0
    reasoning: str = ""
    expected_return: float = 0.0  # Profit target in percent

    def __post_init__(self):
        # Raises ValueError for anything outside BUY/SELL/HOLD/SHORT
        if not isinstance(self.action, SignalAction):
            object.__setattr__(self, "action", SignalAction(str(self.action).upper()))


@dataclass(frozen=True)
class SignalEvent:
    """All signals issued on one date."""

    date: date
    signals: tuple[Signal, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "signals", tuple(self.signals))


@dataclass
class Position:
    """Open ledger position (one per asset)."""

    shares: int
    entry_price: float
    entry_date: date
    # Simulated exit the position settles at, if one was scheduled
    exit_date: Optional[date] = None
    exit_price: Optional[float] = None


@dataclass(frozen=True)
class TradeResult:
    """Completed round trip."""

    entry_date: date
    exit_date: date
    asset: str
    action: SignalAction
    entry_price: float
    exit_price: float
    return_pct: float
    duration: int  # Observation-index distance for simulated exits, days for signal exits
    exit_reason: ExitReason
    fed_event_context: Optional[str] = None


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Portfolio valuation after a signal event was processed."""

    date: date
    value: float


@dataclass(frozen=True)
class BenchmarkComparison:
    """Portfolio performance relative to a reference asset."""

    benchmark: str
    benchmark_return: float  # %
    portfolio_return: float  # %
    alpha: float  # Percentage points over the benchmark
    beta: Optional[float]  # None when not estimable
    tracking_error: Optional[float]  # Annualized, %
    information_ratio: Optional[float]


@dataclass(frozen=True)
class PerformanceMetrics:
    """Performance metrics derived from a replay."""

    # Returns
    total_return: float  # %
    annualized_return: float  # %
    sharpe_ratio: float

    # Risk
    max_drawdown: float  # %

    # Trade Statistics
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: Optional[float]  # %, None when there are no trades

    # Profitability
    profit_factor: float  # inf when no losing trades
    avg_win: float  # %
    avg_loss: float  # %
    avg_duration: float

    # Portfolio
    final_value: float
    initial_value: float

    # Metrics reported as a sentinel because the inputs could not define them
    undefined_metrics: tuple[str, ...] = ()

    def is_defined(self, name: str) -> bool:
        return name not in self.undefined_metrics


@dataclass(frozen=True)
class BacktestConfig:
    """Engine configuration for one backtest run."""

    start_date: date
    end_date: date
    initial_capital: float
    benchmark_asset: Optional[str] = None
    rebalance_frequency: RebalanceFrequency = RebalanceFrequency.QUARTERLY
    transaction_cost_bps: float = 0.0
    slippage_bps: float = 0.0
    strategy_name: str = "Fed Policy Trading Strategy"
    max_holding_period: int = 126
    stop_loss_percent: float = 10.0
    position_size_percent: float = 10.0
    risk_free_rate: float = 0.045
    trading_days_per_year: int = 252
    fed_context_window_days: int = 7
    regime_window_days: int = 90
    regime_rate_threshold: float = 0.25
    policy_rate_field: str = "DFF"
    capital_model: CapitalModel = CapitalModel.NOTIONAL
    sell_without_price: SellWithoutPricePolicy = SellWithoutPricePolicy.LIQUIDATE

    def __post_init__(self):
        object.__setattr__(self, "start_date", to_date(self.start_date))
        object.__setattr__(self, "end_date", to_date(self.end_date))
        object.__setattr__(
            self, "rebalance_frequency", RebalanceFrequency(self.rebalance_frequency)
        )
        object.__setattr__(self, "capital_model", CapitalModel(self.capital_model))
        object.__setattr__(
            self, "sell_without_price", SellWithoutPricePolicy(self.sell_without_price)
        )

        # Validate ranges to catch configuration errors
        if self.initial_capital <= 0:
            raise ValueError(f"initial_capital must be positive, got {self.initial_capital}")
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) must not be before start_date ({self.start_date})"
            )
        if not (0 <= self.transaction_cost_bps <= 10000):
            raise ValueError(
                f"transaction_cost_bps must be between 0 and 10000, got {self.transaction_cost_bps}"
            )
        if not (0 <= self.slippage_bps <= 10000):
            raise ValueError(f"slippage_bps must be between 0 and 10000, got {self.slippage_bps}")
        if self.max_holding_period < 1:
            raise ValueError(f"max_holding_period must be at least 1, got {self.max_holding_period}")
        if not (0 < self.stop_loss_percent < 100):
            raise ValueError(f"stop_loss_percent must be between 0 and 100, got {self.stop_loss_percent}")
        if not (0 < self.position_size_percent <= 100):
            raise ValueError(
                f"position_size_percent must be between 0 and 100, got {self.position_size_percent}"
            )


def _fmt(value: Optional[float], fmt: str, suffix: str = "") -> str:
    """Render a metric, using n/a for undefined values and the infinity sign for inf."""
    if value is None:
        return "n/a"
    if math.isinf(value):
        return "∞" if value > 0 else "-∞"
    return f"{value:{fmt}}{suffix}"


@dataclass
class BacktestResult:
    """Complete results from a backtest run."""

    strategy: str
    start_date: date
    end_date: date
    metrics: PerformanceMetrics
    trades: list[TradeResult]
    snapshots: list[PortfolioSnapshot]
    benchmark_comparison: Optional[BenchmarkComparison] = None

    @property
    def period(self) -> tuple[date, date]:
        return (self.start_date, self.end_date)

    @property
    def total_return(self) -> float:
        return self.metrics.total_return

    @property
    def annualized_return(self) -> float:
        return self.metrics.annualized_return

    @property
    def sharpe_ratio(self) -> float:
        return self.metrics.sharpe_ratio

    @property
    def max_drawdown(self) -> float:
        return self.metrics.max_drawdown

    @property
    def win_rate(self) -> Optional[float]:
        return self.metrics.win_rate

    @property
    def profit_factor(self) -> float:
        return self.metrics.profit_factor

    @property
    def equity_curve(self) -> pd.DataFrame:
        """Snapshot series as a DataFrame (date, portfolio_value)."""
        return pd.DataFrame(
            [{"date": s.date, "portfolio_value": s.value} for s in self.snapshots],
            columns=["date", "portfolio_value"],
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping for downstream renderers."""
        m = self.metrics
        bench = self.benchmark_comparison
        return {
            "strategy": self.strategy,
            "period": {"start": self.start_date.isoformat(), "end": self.end_date.isoformat()},
            "total_return": m.total_return,
            "annualized_return": m.annualized_return,
            "sharpe_ratio": m.sharpe_ratio,
            "max_drawdown": m.max_drawdown,
            "win_rate": m.win_rate,
            "profit_factor": m.profit_factor,
            "undefined_metrics": list(m.undefined_metrics),
            "trades": [
                {
                    "entry_date": t.entry_date.isoformat(),
                    "exit_date": t.exit_date.isoformat(),
                    "asset": t.asset,
                    "action": t.action.value,
                    "entry_price": t.entry_price,
                    "exit_price": t.exit_price,
                    "return": t.return_pct,
                    "duration": t.duration,
                    "exit_reason": t.exit_reason.value,
                    "fed_event_context": t.fed_event_context,
                }
                for t in self.trades
            ],
            "benchmark_comparison": None if bench is None else {
                "benchmark": bench.benchmark,
                "benchmark_return": bench.benchmark_return,
                "alpha": bench.alpha,
                "beta": bench.beta,
                "tracking_error": bench.tracking_error,
                "information_ratio": bench.information_ratio,
            },
        }

    def summary(self) -> str:
        """Generate human-readable summary."""
        m = self.metrics
        undefined = set(m.undefined_metrics)

        def metric(name: str, value: Optional[float], fmt: str, suffix: str = "") -> str:
            return "n/a" if name in undefined else _fmt(value, fmt, suffix)

        lines = [
            f"Backtest Results: {self.strategy}",
            "=" * 40,
            f"Period: {self.start_date.isoformat()} to {self.end_date.isoformat()}",
            f"Total Return: {m.total_return:.2f}%",
            f"Annualized Return: {metric('annualized_return', m.annualized_return, '.2f', '%')}",
            f"Sharpe Ratio: {metric('sharpe_ratio', m.sharpe_ratio, '.2f')}",
            f"Max Drawdown: {m.max_drawdown:.2f}%",
            f"Win Rate: {metric('win_rate', m.win_rate, '.1f', '%')}",
            f"Profit Factor: {metric('profit_factor', m.profit_factor, '.2f')}",
            f"Total Trades: {m.total_trades}",
            "",
            "Portfolio:",
            f"  Initial: ${m.initial_value:,.2f}",
            f"  Final: ${m.final_value:,.2f}",
            "",
            "Trade Stats:",
            f"  Avg Win: {m.avg_win:.2f}%",
            f"  Avg Loss: {m.avg_loss:.2f}%",
            f"  Avg Duration: {m.avg_duration:.1f}",
        ]

        bench = self.benchmark_comparison
        if bench is not None:
            lines += [
                "",
                f"Benchmark ({bench.benchmark}):",
                f"  Benchmark Return: {bench.benchmark_return:.2f}%",
                f"  Alpha: {bench.alpha:.2f}%",
                f"  Beta: {_fmt(bench.beta, '.2f')}",
                f"  Information Ratio: {_fmt(bench.information_ratio, '.2f')}",
            ]

        return "\n".join(lines)
