"""
Position and capital bookkeeping across a signal timeline.

The ledger is the only stateful piece of a run: cash and open positions
at step n depend on every trade from steps 1..n-1, so events must be
replayed in non-decreasing date order.

With CapitalModel.NOTIONAL a BUY pays for its shares out of cash and the
position is settled back into cash at its simulated exit (or at a SELL),
so a run over unchanged prices keeps its starting value apart from costs.
CapitalModel.ENTRY_PRICE books each trade's P&L on the entry price up
front and never debits the position, which inflates the portfolio value
by the marked positions.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

import structlog

from src.backtest.market_data import MarketDataStore
from src.backtest.models import (
    BacktestConfig,
    CapitalModel,
    PortfolioSnapshot,
    Position,
    SellWithoutPricePolicy,
    SignalAction,
    SignalEvent,
    TradeResult,
)
from src.backtest.simulator import TradeSimulator

logger = structlog.get_logger(__name__)


@dataclass
class LedgerReplay:
    """Trades and valuations produced by one pass over the signal events."""

    trades: list[TradeResult] = field(default_factory=list)
    snapshots: list[PortfolioSnapshot] = field(default_factory=list)
    final_cash: float = 0.0
    open_positions: dict[str, Position] = field(default_factory=dict)
    signals_processed: int = 0
    signals_without_trade: int = 0


class PositionLedger:
    """
    Tracks cash and open positions while replaying signal events.

    One ledger per run. Instances are not shared between runs, which is
    what allows parameter sweeps to execute concurrently against the same
    MarketDataStore.
    """

    def __init__(
        self,
        market_data: MarketDataStore,
        config: BacktestConfig,
        simulator: Optional[TradeSimulator] = None,
    ):
        self.market_data = market_data
        self.config = config
        self.simulator = simulator or TradeSimulator(market_data, config)
        self.cash = float(config.initial_capital)
        self.positions: dict[str, Position] = {}

    @property
    def notional(self) -> bool:
        return self.config.capital_model == CapitalModel.NOTIONAL

    def replay(self, signal_events: Iterable[SignalEvent]) -> LedgerReplay:
        """
        Replay signal events and record trades plus one snapshot per event.

        Args:
            signal_events: Events sorted by date ascending (not re-sorted here)

        Returns:
            LedgerReplay with the full trade list and valuation series
        """
        result = LedgerReplay()

        for event in signal_events:
            if self.notional:
                self.settle_due_exits(event.date)

            for signal in event.signals:
                result.signals_processed += 1
                trade = self.simulator.process_signal(signal, event.date, self.positions)

                if trade is not None:
                    result.trades.append(trade)
                    self.record_trade(trade)
                else:
                    result.signals_without_trade += 1
                    if signal.action == SignalAction.SELL and signal.asset in self.positions:
                        self._handle_unpriced_sell(signal.asset, event.date)

            result.snapshots.append(
                PortfolioSnapshot(date=event.date, value=self.portfolio_value(event.date))
            )

        result.final_cash = self.cash
        result.open_positions = dict(self.positions)
        return result

    def record_trade(self, trade: TradeResult) -> None:
        """Apply a realized trade to cash and the position map."""
        if self.notional:
            self._record_notional(trade)
            return

        if trade.action == SignalAction.BUY:
            # Sized from capital after the trade's P&L is booked
            self.cash = self.apply_trade(self.cash, trade)
            if trade.asset not in self.positions:
                self.positions[trade.asset] = Position(
                    shares=self.size_position(self.cash, trade.entry_price),
                    entry_price=trade.entry_price,
                    entry_date=trade.entry_date,
                )
        else:
            self.positions.pop(trade.asset, None)
            self.cash = self.apply_trade(self.cash, trade)

    def _record_notional(self, trade: TradeResult) -> None:
        if trade.action == SignalAction.BUY:
            shares = self.size_position(self.cash, trade.entry_price)
            cost = shares * trade.entry_price
            self.cash -= cost + self.transaction_cost(cost)
            self.positions[trade.asset] = Position(
                shares=shares,
                entry_price=trade.entry_price,
                entry_date=trade.entry_date,
                exit_date=trade.exit_date,
                exit_price=trade.exit_price,
            )
            return

        position = self.positions.pop(trade.asset, None)
        if position is not None:
            self._settle(position, trade.exit_price)

    def settle_due_exits(self, on: date) -> None:
        """Close positions whose simulated exit falls on or before a date."""
        for asset, position in list(self.positions.items()):
            if position.exit_date is None or position.exit_date > on:
                continue
            del self.positions[asset]
            self._settle(position, position.exit_price)
            logger.debug(
                "position_settled",
                asset=asset,
                exit_date=position.exit_date.isoformat(),
                exit_price=position.exit_price,
                shares=position.shares,
            )

    def _settle(self, position: Position, price: float) -> None:
        proceeds = position.shares * price
        self.cash += proceeds - self.transaction_cost(proceeds)

    def transaction_cost(self, trade_value: float) -> float:
        return abs(trade_value) * (self.config.transaction_cost_bps / 10000)

    def apply_trade(self, capital: float, trade: TradeResult) -> float:
        """
        Cash after a realized trade under CapitalModel.ENTRY_PRICE.

        The entry price stands in for the traded notional.
        """
        trade_value = abs(trade.entry_price)
        profit_loss = (trade.return_pct / 100) * trade_value
        return capital + profit_loss - self.transaction_cost(trade_value)

    def size_position(self, capital: float, price: float) -> int:
        """Whole shares for a fixed percent-of-capital allocation."""
        if price <= 0:
            return 0
        allocation = capital * (self.config.position_size_percent / 100)
        return max(int(math.floor(allocation / price)), 0)

    def _handle_unpriced_sell(self, asset: str, on: date) -> None:
        if self.config.sell_without_price == SellWithoutPricePolicy.KEEP_POSITION:
            logger.debug("sell_dropped_position_kept", asset=asset, date=on.isoformat())
            return

        # Only reachable under ENTRY_PRICE: notional positions settle at their
        # scheduled exit, which is never after the last observation
        self.positions.pop(asset, None)
        logger.warning(
            "position_liquidated_without_trade",
            asset=asset,
            date=on.isoformat(),
            reason="no_price_data",
        )

    def portfolio_value(self, on: date) -> float:
        """Cash plus open positions marked at the first price on or after a date."""
        positions_value = 0.0
        for asset, position in self.positions.items():
            point = self.market_data.price_on_or_after(asset, on)
            if point is not None:
                positions_value += position.shares * point.price
        return self.cash + positions_value
