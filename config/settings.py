"""
Configuration settings with Pydantic validation.
All settings are loaded from environment variables.
"""

from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.backtest.models import (
    BacktestConfig,
    CapitalModel,
    RebalanceFrequency,
    SellWithoutPricePolicy,
)


class Settings(BaseSettings):
    """Main application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BACKTEST_",
        case_sensitive=False,
        extra="ignore",
    )

    # Backtest Period
    start_date: date = Field(
        default=date(2020, 1, 1),
        description="First date of the evaluation period (YYYY-MM-DD)"
    )
    end_date: date = Field(
        default=date(2024, 12, 31),
        description="Last date of the evaluation period (YYYY-MM-DD)"
    )

    # Capital and Costs
    initial_capital: float = Field(
        default=100000.0,
        gt=0.0,
        description="Starting cash in quote currency"
    )
    transaction_cost_bps: float = Field(
        default=10.0,
        ge=0.0,
        le=10000.0,
        description="Transaction cost per trade in basis points"
    )
    slippage_bps: float = Field(
        default=5.0,
        ge=0.0,
        le=10000.0,
        description="Execution slippage in basis points (added on buys, subtracted on sells)"
    )

    # Benchmark
    benchmark_asset: Optional[str] = Field(
        default=None,
        description="Asset identifier used for alpha/beta comparison (e.g., SPY)"
    )
    rebalance_frequency: RebalanceFrequency = Field(
        default=RebalanceFrequency.QUARTERLY,
        description="Rebalance cadence (informational only)"
    )
    strategy_name: str = Field(
        default="Fed Policy Trading Strategy",
        description="Label carried on the backtest report"
    )

    # Exit Simulation
    max_holding_period: int = Field(
        default=126,
        ge=1,
        le=2520,
        description="Maximum forward observations scanned for an exit (~6 months of trading days)"
    )
    stop_loss_percent: float = Field(
        default=10.0,
        gt=0.0,
        lt=100.0,
        description="Stop loss distance below entry price (percentage)"
    )
    position_size_percent: float = Field(
        default=10.0,
        gt=0.0,
        le=100.0,
        description="Share of current capital allocated to each new ledger position (percentage)"
    )

    # Performance Metrics
    risk_free_rate: float = Field(
        default=0.045,
        ge=0.0,
        le=0.5,
        description="Annual risk-free rate used by the Sharpe ratio (0.045 = 4.5%)"
    )
    trading_days_per_year: int = Field(
        default=252,
        ge=1,
        le=366,
        description="Annualization factor for daily returns"
    )

    # Policy Regime Detection
    fed_context_window_days: int = Field(
        default=7,
        ge=0,
        le=90,
        description="Max distance (days) from a trade to the economic point used for its Fed context"
    )
    regime_window_days: int = Field(
        default=90,
        ge=1,
        le=730,
        description="Half-width (days) of the window used to classify the policy regime"
    )
    regime_rate_threshold: float = Field(
        default=0.25,
        ge=0.0,
        le=5.0,
        description="Minimum policy rate change (percentage points) to call easing or tightening"
    )
    policy_rate_field: str = Field(
        default="DFF",
        description="Economic data field holding the policy rate (Fed Funds effective rate)"
    )

    # Capital bookkeeping
    capital_model: CapitalModel = Field(
        default=CapitalModel.NOTIONAL,
        description=(
            "notional pays for positions in cash and settles them at their exit, "
            "entry_price books P&L on the entry price alone"
        )
    )
    sell_without_price: SellWithoutPricePolicy = Field(
        default=SellWithoutPricePolicy.LIQUIDATE,
        description="Behaviour for a SELL against an open position when no exit price exists"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional path to log file"
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON logs instead of the console renderer"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lower-case levels from the environment."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("benchmark_asset", mode="before")
    @classmethod
    def empty_benchmark_is_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat BACKTEST_BENCHMARK_ASSET="" as no benchmark."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_period(self) -> "Settings":
        """End date must not precede start date."""
        if self.end_date < self.start_date:
            raise ValueError(
                f"end_date ({self.end_date}) must not be before start_date ({self.start_date})"
            )
        return self

    def to_backtest_config(self) -> BacktestConfig:
        """Build the engine's BacktestConfig from these settings."""
        return BacktestConfig(
            start_date=self.start_date,
            end_date=self.end_date,
            initial_capital=self.initial_capital,
            benchmark_asset=self.benchmark_asset,
            rebalance_frequency=self.rebalance_frequency,
            transaction_cost_bps=self.transaction_cost_bps,
            slippage_bps=self.slippage_bps,
            strategy_name=self.strategy_name,
            max_holding_period=self.max_holding_period,
            stop_loss_percent=self.stop_loss_percent,
            position_size_percent=self.position_size_percent,
            risk_free_rate=self.risk_free_rate,
            trading_days_per_year=self.trading_days_per_year,
            fed_context_window_days=self.fed_context_window_days,
            regime_window_days=self.regime_window_days,
            regime_rate_threshold=self.regime_rate_threshold,
            policy_rate_field=self.policy_rate_field,
            capital_model=self.capital_model,
            sell_without_price=self.sell_without_price,
        )


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> tuple[Settings, dict[str, tuple]]:
    """
    Reload settings from environment and .env file.

    Returns:
        Tuple of (new_settings, changes_dict)
        changes_dict maps field_name -> (old_value, new_value)
    """
    global _settings

    old_settings = _settings
    new_settings = Settings()

    changes: dict[str, tuple] = {}
    if old_settings:
        for field_name in Settings.model_fields:
            old_val = getattr(old_settings, field_name)
            new_val = getattr(new_settings, field_name)
            if old_val != new_val:
                changes[field_name] = (old_val, new_val)

    _settings = new_settings
    return new_settings, changes
