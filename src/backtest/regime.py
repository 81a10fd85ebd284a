"""
Monetary policy regime detection and trade attribution.

Classifies a date as easing, tightening or hold from the change in the
policy rate across a window of economic observations around it, then
groups trades by the regime at their entry date.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Sequence

import structlog

from src.backtest.market_data import MarketDataStore
from src.backtest.models import BacktestConfig, TradeResult

logger = structlog.get_logger(__name__)


class PolicyRegime(str, Enum):
    """Direction of monetary policy around a date."""
    EASING = "easing"
    TIGHTENING = "tightening"
    HOLD = "hold"


@dataclass(frozen=True)
class RegimeConfig:
    """Configuration for regime classification."""

    window_days: int = 90  # +/- days around the classified date
    rate_threshold: float = 0.25  # Percentage points
    policy_rate_field: str = "DFF"

    @classmethod
    def from_backtest_config(cls, config: BacktestConfig) -> "RegimeConfig":
        return cls(
            window_days=config.regime_window_days,
            rate_threshold=config.regime_rate_threshold,
            policy_rate_field=config.policy_rate_field,
        )


@dataclass
class RegimeStats:
    """Aggregate outcome of the trades entered in one regime."""

    trades: list[TradeResult] = field(default_factory=list)
    avg_return: float = 0.0  # %
    win_rate: float = 0.0  # %

    @property
    def trade_count(self) -> int:
        return len(self.trades)


@dataclass
class RegimeAttribution:
    """Per-regime breakdown of a backtest's trades."""

    regimes: dict[PolicyRegime, RegimeStats]
    unclassified: int = 0  # Trades without enough rate data around entry

    def __getitem__(self, regime: PolicyRegime) -> RegimeStats:
        return self.regimes[PolicyRegime(regime)]

    @property
    def easing(self) -> RegimeStats:
        return self.regimes[PolicyRegime.EASING]

    @property
    def tightening(self) -> RegimeStats:
        return self.regimes[PolicyRegime.TIGHTENING]

    @property
    def hold(self) -> RegimeStats:
        return self.regimes[PolicyRegime.HOLD]

    def summary(self) -> str:
        lines = ["Performance by Fed Regime", "=" * 25]
        for regime in PolicyRegime:
            stats = self.regimes[regime]
            lines.append(
                f"{REGIME_LABELS[regime]}: {stats.trade_count} trades, "
                f"avg {stats.avg_return:.2f}%, win rate {stats.win_rate:.1f}%"
            )
        if self.unclassified:
            lines.append(f"Unclassified: {self.unclassified} trades")
        return "\n".join(lines)


REGIME_LABELS: dict[PolicyRegime, str] = {
    PolicyRegime.EASING: "Easing",
    PolicyRegime.TIGHTENING: "Tightening",
    PolicyRegime.HOLD: "Hold",
}


class PolicyRegimeClassifier:
    """Classifies dates by the policy rate trend in surrounding economic data."""

    def __init__(self, market_data: MarketDataStore, config: Optional[RegimeConfig] = None):
        self.market_data = market_data
        self.config = config or RegimeConfig()

    def classify(self, on: date) -> Optional[PolicyRegime]:
        """
        Regime for a date, or None when fewer than two rate observations
        fall inside the window.
        """
        window = [
            point
            for point in self.market_data.economic_points_within(on, self.config.window_days)
            if point.get(self.config.policy_rate_field) is not None
        ]
        if len(window) < 2:
            return None

        window.sort(key=lambda p: p.date)
        earlier = window[0].get(self.config.policy_rate_field)
        later = window[-1].get(self.config.policy_rate_field)
        change = later - earlier

        if change > self.config.rate_threshold:
            return PolicyRegime.TIGHTENING
        if change < -self.config.rate_threshold:
            return PolicyRegime.EASING
        return PolicyRegime.HOLD

    def attribute(self, trades: Sequence[TradeResult]) -> RegimeAttribution:
        """Group trades by the regime at their entry date."""
        attribution = RegimeAttribution(regimes={regime: RegimeStats() for regime in PolicyRegime})

        for trade in trades:
            regime = self.classify(trade.entry_date)
            if regime is None:
                attribution.unclassified += 1
                continue
            attribution.regimes[regime].trades.append(trade)

        for stats in attribution.regimes.values():
            if stats.trades:
                stats.avg_return = sum(t.return_pct for t in stats.trades) / len(stats.trades)
                winners = sum(1 for t in stats.trades if t.return_pct > 0)
                stats.win_rate = winners / len(stats.trades) * 100

        logger.debug(
            "regime_attribution_complete",
            easing=attribution.easing.trade_count,
            tightening=attribution.tightening.trade_count,
            hold=attribution.hold.trade_count,
            unclassified=attribution.unclassified,
        )
        return attribution
