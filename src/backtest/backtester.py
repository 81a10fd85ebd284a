"""
Historical backtesting engine for signal-driven strategies.

Replays dated trading signals against historical price paths with
simulated slippage, transaction costs and stop-loss/target exits, then
scores the run and attributes its trades to Fed policy regimes.
"""

from typing import Iterable, Optional

import structlog

from src.backtest.ledger import PositionLedger
from src.backtest.market_data import MarketDataStore
from src.backtest.models import BacktestConfig, BacktestResult, SignalEvent
from src.backtest.performance import benchmark_comparison, calculate_metrics
from src.backtest.regime import PolicyRegimeClassifier, RegimeAttribution, RegimeConfig
from src.backtest.simulator import TradeSimulator

logger = structlog.get_logger(__name__)


class Backtester:
    """
    Historical backtesting engine.

    Features:
    - Sequential event-by-event replay of signal history
    - Fill simulation with slippage and transaction costs
    - Forward exit simulation (stop loss, profit target, holding horizon)
    - Performance metrics and optional benchmark comparison
    - Trade attribution by Fed policy regime

    Limitations:
    - Long-only positions: SHORT signals are accepted but never traded.
    - Signal events must be sorted by date; the engine does not re-sort.

    Example:
        >>> bt = Backtester(
        ...     market_data=MarketDataStore.from_frames(prices, economic_df),
        ...     config=BacktestConfig(
        ...         start_date="2022-01-01",
        ...         end_date="2023-12-31",
        ...         initial_capital=100000,
        ...         slippage_bps=5,
        ...         transaction_cost_bps=10,
        ...     ),
        ... )
        >>> result = bt.run(signal_history)
        >>> print(result.summary())
    """

    def __init__(
        self,
        market_data: MarketDataStore,
        config: BacktestConfig,
        regime_config: Optional[RegimeConfig] = None,
    ):
        """
        Initialize backtester.

        Args:
            market_data: Read-only price and economic data, shareable across runs
            config: Run configuration (period, capital, costs, exit parameters)
            regime_config: Regime classification settings (derived from config if None)
        """
        self.market_data = market_data
        self.config = config
        self.simulator = TradeSimulator(market_data, config)
        self.regime_classifier = PolicyRegimeClassifier(
            market_data,
            regime_config or RegimeConfig.from_backtest_config(config),
        )

    def run(self, signal_events: Iterable[SignalEvent]) -> BacktestResult:
        """
        Run a backtest over a signal history.

        Args:
            signal_events: SignalEvents sorted by date ascending

        Returns:
            BacktestResult with metrics, trades and the valuation series
        """
        events = list(signal_events)

        # Every event logged during the run carries the run context
        with structlog.contextvars.bound_contextvars(
            strategy=self.config.strategy_name,
            backtest_start=self.config.start_date,
            backtest_end=self.config.end_date,
            capital_model=self.config.capital_model,
        ):
            return self._run(events)

    def _run(self, events: list[SignalEvent]) -> BacktestResult:
        logger.info(
            "backtest_starting",
            events=len(events),
            initial_capital=self.config.initial_capital,
        )

        # Fresh ledger per run so concurrent runs never share state
        ledger = PositionLedger(self.market_data, self.config, simulator=self.simulator)
        replay = ledger.replay(events)

        metrics = calculate_metrics(
            initial_capital=self.config.initial_capital,
            snapshots=replay.snapshots,
            trades=replay.trades,
            start_date=self.config.start_date,
            end_date=self.config.end_date,
            risk_free_rate=self.config.risk_free_rate,
            periods_per_year=self.config.trading_days_per_year,
        )

        comparison = None
        if self.config.benchmark_asset:
            comparison = benchmark_comparison(
                self.market_data,
                self.config.benchmark_asset,
                replay.snapshots,
                self.config.start_date,
                self.config.end_date,
                periods_per_year=self.config.trading_days_per_year,
            )
            if comparison is None:
                logger.warning(
                    "benchmark_unavailable",
                    benchmark=self.config.benchmark_asset,
                )

        result = BacktestResult(
            strategy=self.config.strategy_name,
            start_date=self.config.start_date,
            end_date=self.config.end_date,
            metrics=metrics,
            trades=replay.trades,
            snapshots=replay.snapshots,
            benchmark_comparison=comparison,
        )

        logger.info(
            "backtest_complete",
            total_trades=metrics.total_trades,
            signals_without_trade=replay.signals_without_trade,
            total_return=f"{metrics.total_return:.2f}%",
            sharpe_ratio=f"{metrics.sharpe_ratio:.2f}",
            max_drawdown=f"{metrics.max_drawdown:.2f}%",
            win_rate="n/a" if metrics.win_rate is None else f"{metrics.win_rate:.1f}%",
            undefined_metrics=list(metrics.undefined_metrics),
        )

        return result

    def analyze_by_regime(self, result: BacktestResult) -> RegimeAttribution:
        """Break a result's trades down by Fed policy regime at entry."""
        return self.regime_classifier.attribute(result.trades)
