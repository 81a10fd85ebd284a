"""
Example demonstrating a Fed policy signal backtest.

This script shows how to:
1. Build price and economic DataFrames
2. Express a strategy as rules over macro data
3. Run a backtest against a benchmark
4. Break the results down by policy regime
"""

from dataclasses import replace
from datetime import date, timedelta

import numpy as np
import pandas as pd

from config.logging_config import setup_logging
from config.settings import get_settings
from src.backtest import (
    Backtester,
    MarketDataStore,
    SignalAction,
    SignalRule,
    generate_historical_signals,
)


def generate_sample_prices(start: date, days: int, drift: float, seed: int) -> pd.DataFrame:
    """
    Random-walk daily closes for demonstration.

    In production, load actual history from CSV or a data vendor.
    """
    rng = np.random.default_rng(seed)
    returns = rng.normal(drift, 0.01, size=days)
    prices = 100 * np.cumprod(1 + returns)
    dates = [start + timedelta(days=i) for i in range(days)]
    return pd.DataFrame({"date": dates, "price": prices})


def generate_sample_economic_data(start: date, months: int) -> pd.DataFrame:
    """Monthly Fed Funds and unemployment: a hiking cycle followed by cuts."""
    rows = []
    rate = 0.25
    unemployment = 3.5
    for m in range(months):
        if m < months // 2:
            rate = min(rate + 0.5, 5.5)
        else:
            rate = max(rate - 0.25, 3.0)
            unemployment += 0.1
        rows.append({
            "date": start + timedelta(days=30 * m),
            "DFF": round(rate, 2),
            "UNRATE": round(unemployment, 1),
        })
    return pd.DataFrame(rows)


def main():
    """Run backtest example."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file, settings.log_json)

    start = date(2022, 1, 1)
    days = 3 * 365

    # 1. Market data
    market_data = MarketDataStore.from_frames(
        prices={
            "TLT": generate_sample_prices(start, days, drift=0.0002, seed=1),
            "SPY": generate_sample_prices(start, days, drift=0.0004, seed=2),
        },
        economic_data=generate_sample_economic_data(start, months=36),
    )

    # 2. Strategy: buy duration when cuts start, buy equities when unemployment rises
    rules = [
        SignalRule(
            condition=lambda p: (p.policy_rate or 0) < 5.0 and p.date.year >= 2023,
            asset="TLT",
            action=SignalAction.BUY,
            expected_return=8.0,
            confidence=0.6,
        ),
        SignalRule(
            condition=lambda p: (p.get("UNRATE") or 0) >= 4.0,
            asset="TLT",
            action=SignalAction.SELL,
        ),
    ]
    events = generate_historical_signals(
        market_data.economic_data, start, start + timedelta(days=days - 1), rules
    )

    # 3. Run the backtest
    config = replace(
        settings.to_backtest_config(),
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        benchmark_asset="SPY",
    )
    backtester = Backtester(market_data, config)
    result = backtester.run(events)

    print(result.summary())
    print()

    # 4. Regime attribution
    print(backtester.analyze_by_regime(result).summary())
    print()

    if result.trades:
        print("Trades:")
        for trade in result.trades:
            print(
                f"  {trade.entry_date} -> {trade.exit_date} {trade.action.value} {trade.asset} "
                f"{trade.return_pct:+.2f}% ({trade.exit_reason.value})"
            )


if __name__ == "__main__":
    main()
