"""
Performance statistics for a completed replay.

Everything here is a pure function of its arguments: running the analyzer
twice on the same trades and snapshots yields identical metrics.

Ratios that cannot be computed from the inputs resolve to a sentinel
(0.0, None or inf) and are listed in PerformanceMetrics.undefined_metrics
so a report can tell "no data" apart from "zero performance".
"""

import math
from datetime import date
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from src.backtest.market_data import MarketDataStore
from src.backtest.models import (
    BenchmarkComparison,
    PerformanceMetrics,
    PortfolioSnapshot,
    TradeResult,
)

DEFAULT_RISK_FREE_RATE = 0.045
TRADING_DAYS_PER_YEAR = 252


def period_years(start: date, end: date) -> float:
    return (end - start).days / 365.25


def daily_returns(snapshots: Sequence[PortfolioSnapshot]) -> pd.Series:
    """Simple percent change between consecutive snapshots."""
    values = pd.Series([s.value for s in snapshots], dtype="float64")
    return values.pct_change().iloc[1:].reset_index(drop=True)


def has_finite_returns(returns: pd.Series) -> bool:
    return bool(np.isfinite(returns.to_numpy()).all())


def sharpe_ratio(
    returns: pd.Series,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """
    Annualized Sharpe ratio from per-period returns.

    Uses population standard deviation. Returns 0.0 when there are no
    returns, any return is non-finite (a zero-valued snapshot) or
    volatility is zero.
    """
    if len(returns) == 0 or not has_finite_returns(returns):
        return 0.0

    mean_return = float(returns.mean())
    std_return = float(returns.std(ddof=0))

    annualized_return = mean_return * periods_per_year
    annualized_volatility = std_return * math.sqrt(periods_per_year)

    # Float noise on a flat series must not produce a huge ratio
    if annualized_volatility < 1e-12:
        return 0.0
    return (annualized_return - risk_free_rate) / annualized_volatility


def max_drawdown(snapshots: Sequence[PortfolioSnapshot]) -> float:
    """Largest peak-to-trough decline (%) using the running peak."""
    if not snapshots:
        return 0.0

    values = pd.Series([s.value for s in snapshots], dtype="float64")
    peak = values.cummax()
    drawdown = (peak - values) / peak
    # A non-positive peak has no meaningful drawdown
    drawdown = drawdown.where(peak > 0, 0.0)
    return max(float(drawdown.max()), 0.0) * 100


def profit_factor(trades: Sequence[TradeResult]) -> float:
    """Gross profit over gross loss, in trade-return percent terms."""
    gross_profit = sum(t.return_pct for t in trades if t.return_pct > 0)
    gross_loss = abs(sum(t.return_pct for t in trades if t.return_pct < 0))

    if gross_loss == 0:
        return math.inf if gross_profit > 0 else 1.0
    return gross_profit / gross_loss


def win_rate(trades: Sequence[TradeResult]) -> Optional[float]:
    """Share of trades with a positive return (%), None without trades."""
    if not trades:
        return None
    winners = sum(1 for t in trades if t.return_pct > 0)
    return winners / len(trades) * 100


def calculate_metrics(
    initial_capital: float,
    snapshots: Sequence[PortfolioSnapshot],
    trades: Sequence[TradeResult],
    start_date: date,
    end_date: date,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> PerformanceMetrics:
    """
    Calculate performance metrics from a replay.

    Args:
        initial_capital: Starting cash
        snapshots: One valuation per signal event, in date order
        trades: Completed trades from the same replay
        start_date: Start of the evaluation period
        end_date: End of the evaluation period
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        periods_per_year: Annualization factor for snapshot returns

    Returns:
        PerformanceMetrics
    """
    undefined: list[str] = []

    initial_value = float(initial_capital)
    final_value = snapshots[-1].value if snapshots else initial_value

    total_return = (final_value - initial_value) / initial_value * 100

    years = period_years(start_date, end_date)
    if years > 0 and final_value > 0:
        annualized_return = ((final_value / initial_value) ** (1 / years) - 1) * 100
    else:
        annualized_return = 0.0
        undefined.append("annualized_return")

    returns = daily_returns(snapshots)
    if len(returns) == 0 or not has_finite_returns(returns):
        undefined.append("sharpe_ratio")
    sharpe = sharpe_ratio(returns, risk_free_rate, periods_per_year)

    drawdown = max_drawdown(snapshots)

    winners = [t for t in trades if t.return_pct > 0]
    losers = [t for t in trades if t.return_pct <= 0]
    rate = win_rate(trades)
    if rate is None:
        undefined.append("win_rate")

    pf = profit_factor(trades)
    if not any(t.return_pct != 0 for t in trades):
        undefined.append("profit_factor")

    avg_win = sum(t.return_pct for t in winners) / len(winners) if winners else 0.0
    avg_loss = abs(sum(t.return_pct for t in losers)) / len(losers) if losers else 0.0
    avg_duration = sum(t.duration for t in trades) / len(trades) if trades else 0.0

    return PerformanceMetrics(
        total_return=total_return,
        annualized_return=annualized_return,
        sharpe_ratio=sharpe,
        max_drawdown=drawdown,
        total_trades=len(trades),
        winning_trades=len(winners),
        losing_trades=len(losers),
        win_rate=rate,
        profit_factor=pf,
        avg_win=avg_win,
        avg_loss=avg_loss,
        avg_duration=avg_duration,
        final_value=final_value,
        initial_value=initial_value,
        undefined_metrics=tuple(undefined),
    )


def benchmark_comparison(
    market_data: MarketDataStore,
    benchmark_asset: str,
    snapshots: Sequence[PortfolioSnapshot],
    start_date: date,
    end_date: date,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> Optional[BenchmarkComparison]:
    """
    Compare the portfolio against a reference asset.

    Beta is the OLS slope of portfolio snapshot returns on benchmark
    returns sampled at the same dates. Tracking error is the annualized
    standard deviation of the active returns, and the information ratio
    is alpha over tracking error.

    Returns None if the benchmark has no price on or after either bound,
    or if there are no snapshots.
    """
    if not snapshots:
        return None

    start_point = market_data.price_on_or_after(benchmark_asset, start_date)
    end_point = market_data.price_on_or_after(benchmark_asset, end_date)
    if start_point is None or end_point is None or start_point.price == 0:
        return None

    benchmark_return = (end_point.price - start_point.price) / start_point.price * 100

    first_value = snapshots[0].value
    last_value = snapshots[-1].value
    portfolio_return = (last_value - first_value) / first_value * 100 if first_value else 0.0
    alpha = portfolio_return - benchmark_return

    beta, tracking_error = _beta_and_tracking_error(
        market_data, benchmark_asset, snapshots, periods_per_year
    )
    information_ratio = None
    if tracking_error is not None and tracking_error > 0:
        information_ratio = alpha / tracking_error

    return BenchmarkComparison(
        benchmark=benchmark_asset,
        benchmark_return=benchmark_return,
        portfolio_return=portfolio_return,
        alpha=alpha,
        beta=beta,
        tracking_error=tracking_error,
        information_ratio=information_ratio,
    )


def _beta_and_tracking_error(
    market_data: MarketDataStore,
    benchmark_asset: str,
    snapshots: Sequence[PortfolioSnapshot],
    periods_per_year: int,
) -> tuple[Optional[float], Optional[float]]:
    rows = []
    for snapshot in snapshots:
        point = market_data.price_on_or_after(benchmark_asset, snapshot.date)
        if point is not None:
            rows.append((snapshot.value, point.price))

    if len(rows) < 3:
        return None, None

    frame = (
        pd.DataFrame(rows, columns=["portfolio", "benchmark"])
        .pct_change()
        .replace([np.inf, -np.inf], np.nan)
        .dropna()
    )
    if len(frame) < 2:
        return None, None

    portfolio = frame["portfolio"].to_numpy()
    benchmark = frame["benchmark"].to_numpy()

    active = portfolio - benchmark
    tracking_error = float(np.std(active, ddof=1)) * math.sqrt(periods_per_year) * 100

    benchmark_var = float(np.var(benchmark, ddof=1))
    if benchmark_var == 0:
        return None, tracking_error

    beta = float(np.cov(portfolio, benchmark, ddof=1)[0, 1]) / benchmark_var
    return beta, tracking_error
