"""
Signal-to-trade simulation.

Turns one signal into at most one completed trade: locates the entry
price, applies slippage and, for new long positions, walks the forward
price path until the stop loss, the profit target or the holding
horizon closes the trade.
"""

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Optional

import structlog

from src.backtest.market_data import MarketDataStore
from src.backtest.models import (
    BacktestConfig,
    ExitReason,
    Position,
    Signal,
    SignalAction,
    TradeResult,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SimulatedExit:
    """Outcome of the forward exit scan."""

    exit_date: date
    exit_price: float
    return_pct: float
    duration: int
    reason: ExitReason


def apply_slippage(price: float, action: SignalAction, slippage_bps: float) -> float:
    """Pay more on buys, receive less on everything else."""
    slippage = slippage_bps / 10000
    if action == SignalAction.BUY:
        return price * (1 + slippage)
    return price * (1 - slippage)


def calendar_days_between(start: date, end: date) -> int:
    """Whole calendar days between two dates."""
    return abs((end - start).days)


class TradeSimulator:
    """
    Converts signals into trades against historical price paths.

    Long-only: BUY opens (and simulates the exit of) a position, SELL
    closes a position the ledger already holds. HOLD and SHORT never
    produce trades.
    """

    def __init__(self, market_data: MarketDataStore, config: BacktestConfig):
        self.market_data = market_data
        self.config = config

    def process_signal(
        self,
        signal: Signal,
        event_date: date,
        positions: Mapping[str, Position],
    ) -> Optional[TradeResult]:
        """
        Produce at most one trade for a signal.

        Missing price data drops the signal silently; a sparse series must
        never abort the run.

        Args:
            signal: Signal to execute
            event_date: Date of the signal event
            positions: Ledger's open positions (read-only here)

        Returns:
            TradeResult, or None if the signal produced no trade
        """
        entry_idx = self.market_data.find_index(signal.asset, event_date)
        if entry_idx is None:
            logger.debug(
                "signal_dropped",
                reason="no_price_data",
                asset=signal.asset,
                action=signal.action.value,
                date=event_date.isoformat(),
            )
            return None

        raw_price = self.market_data.series(signal.asset)[entry_idx].price
        fill_price = apply_slippage(raw_price, signal.action, self.config.slippage_bps)

        if signal.action == SignalAction.BUY:
            if signal.asset in positions:
                logger.debug(
                    "signal_ignored",
                    reason="position_already_open",
                    asset=signal.asset,
                    date=event_date.isoformat(),
                )
                return None

            exit_result = self.simulate_exit(
                signal.asset, entry_idx, fill_price, signal.expected_return
            )
            trade = TradeResult(
                entry_date=event_date,
                exit_date=exit_result.exit_date,
                asset=signal.asset,
                action=SignalAction.BUY,
                entry_price=fill_price,
                exit_price=exit_result.exit_price,
                return_pct=exit_result.return_pct,
                duration=exit_result.duration,
                exit_reason=exit_result.reason,
                fed_event_context=self.fed_event_context(event_date),
            )
            logger.debug(
                "backtest_buy",
                asset=signal.asset,
                date=event_date.isoformat(),
                entry_price=fill_price,
                exit_price=exit_result.exit_price,
                exit_reason=exit_result.reason.value,
                return_pct=exit_result.return_pct,
            )
            return trade

        if signal.action == SignalAction.SELL:
            position = positions.get(signal.asset)
            if position is None:
                return None

            return_pct = (fill_price - position.entry_price) / position.entry_price * 100
            trade = TradeResult(
                entry_date=position.entry_date,
                exit_date=event_date,
                asset=signal.asset,
                action=SignalAction.SELL,
                entry_price=position.entry_price,
                exit_price=fill_price,
                return_pct=return_pct,
                duration=calendar_days_between(position.entry_date, event_date),
                exit_reason=ExitReason.SIGNAL,
                fed_event_context=self.fed_event_context(event_date),
            )
            logger.debug(
                "backtest_sell",
                asset=signal.asset,
                date=event_date.isoformat(),
                entry_price=position.entry_price,
                exit_price=fill_price,
                return_pct=return_pct,
            )
            return trade

        if signal.action == SignalAction.SHORT:
            logger.debug("signal_ignored", reason="short_not_supported", asset=signal.asset)
        return None

    def simulate_exit(
        self,
        asset: str,
        entry_idx: int,
        entry_price: float,
        expected_return: float,
    ) -> SimulatedExit:
        """
        Walk forward from the entry observation looking for an exit.

        The stop loss is checked before the target on every observation,
        so a bar that satisfies both exits at the stop.
        """
        series = self.market_data.series(asset)
        horizon = self.config.max_holding_period
        target_price = entry_price * (1 + expected_return / 100)
        stop_loss_price = entry_price * (1 - self.config.stop_loss_percent / 100)

        for i in range(entry_idx + 1, min(entry_idx + horizon, len(series))):
            current = series[i]
            if current.price <= stop_loss_price:
                return self._exit_at(series[i], entry_price, i - entry_idx, ExitReason.STOP_LOSS)
            if current.price >= target_price:
                return self._exit_at(series[i], entry_price, i - entry_idx, ExitReason.TARGET)

        end_idx = min(entry_idx + horizon, len(series) - 1)
        reason = ExitReason.HORIZON if end_idx == entry_idx + horizon else ExitReason.END_OF_DATA
        return self._exit_at(series[end_idx], entry_price, end_idx - entry_idx, reason)

    @staticmethod
    def _exit_at(point, entry_price: float, duration: int, reason: ExitReason) -> SimulatedExit:
        return SimulatedExit(
            exit_date=point.date,
            exit_price=point.price,
            return_pct=(point.price - entry_price) / entry_price * 100,
            duration=duration,
            reason=reason,
        )

    def fed_event_context(self, on: date) -> Optional[str]:
        """Describe the policy rate from the economic point nearest to a date."""
        window = self.config.fed_context_window_days
        candidates = [
            (abs((point.date - on).days), rate)
            for point in self.market_data.economic_points_within(on, window)
            if (rate := point.get(self.config.policy_rate_field)) is not None
        ]
        if not candidates:
            return None
        # min() keeps the earliest listed point on distance ties
        _, rate = min(candidates, key=lambda c: c[0])
        return f"Fed Funds Rate: {rate:.2f}%"
