"""
Read-only store of historical prices and economic observations.

Price series are trusted to be sorted ascending by date; lookups return
the first observation on or after the requested date and never re-sort.
"""

from typing import Iterable, Mapping, Optional, Sequence

import pandas as pd
import structlog

from src.backtest.models import DateLike, EconomicDataPoint, PricePoint, to_date

logger = structlog.get_logger(__name__)


class MarketDataStore:
    """
    Historical price paths per asset plus a macro data sequence.

    Safe to share between concurrent backtest runs: nothing here is
    mutated after construction.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, Sequence[PricePoint]]] = None,
        economic_data: Optional[Sequence[EconomicDataPoint]] = None,
    ):
        self._prices: dict[str, tuple[PricePoint, ...]] = {
            asset: tuple(series) for asset, series in (prices or {}).items()
        }
        self._economic: tuple[EconomicDataPoint, ...] = tuple(economic_data or ())

    @property
    def assets(self) -> list[str]:
        return list(self._prices)

    @property
    def economic_data(self) -> tuple[EconomicDataPoint, ...]:
        return self._economic

    def has_asset(self, asset: str) -> bool:
        return asset in self._prices

    def series(self, asset: str) -> tuple[PricePoint, ...]:
        """Full price series for an asset (empty if unknown)."""
        return self._prices.get(asset, ())

    def find_index(self, asset: str, on_or_after: DateLike) -> Optional[int]:
        """Index of the first observation with date >= on_or_after, or None."""
        target = to_date(on_or_after)
        for idx, point in enumerate(self._prices.get(asset, ())):
            if point.date >= target:
                return idx
        return None

    def price_on_or_after(self, asset: str, on_or_after: DateLike) -> Optional[PricePoint]:
        """First observation with date >= on_or_after, or None."""
        idx = self.find_index(asset, on_or_after)
        if idx is None:
            return None
        return self._prices[asset][idx]

    def economic_points_within(self, around: DateLike, days: int) -> list[EconomicDataPoint]:
        """Economic points within +/- days of a date, in sequence order."""
        target = to_date(around)
        return [p for p in self._economic if abs((p.date - target).days) <= days]

    # ------------------------------------------------------------------
    # Loaders
    # ------------------------------------------------------------------

    @classmethod
    def from_frames(
        cls,
        prices: Mapping[str, pd.DataFrame],
        economic_data: Optional[pd.DataFrame] = None,
    ) -> "MarketDataStore":
        """
        Build a store from pandas DataFrames.

        Args:
            prices: asset -> DataFrame with columns: date, price, and optionally volume.
                    Rows must already be sorted by date ascending.
            economic_data: DataFrame with a date column; every other column
                           becomes a field (e.g. DFF, UNRATE).

        Raises:
            ValueError: If a frame is empty or is missing required columns
        """
        price_series: dict[str, list[PricePoint]] = {}
        for asset, df in prices.items():
            price_series[asset] = price_points_from_frame(df, asset=asset)

        economic: list[EconomicDataPoint] = []
        if economic_data is not None:
            economic = economic_points_from_frame(economic_data)

        logger.debug(
            "market_data_loaded",
            assets=len(price_series),
            economic_points=len(economic),
        )
        return cls(prices=price_series, economic_data=economic)


def price_points_from_frame(df: pd.DataFrame, asset: str = "") -> list[PricePoint]:
    """Convert a (date, price[, volume]) DataFrame into PricePoints, keeping row order."""
    if df.empty:
        raise ValueError(f"Price data for {asset or 'asset'} cannot be empty")

    required_cols = {"date", "price"}
    if not required_cols.issubset(df.columns):
        raise ValueError(f"Price data must contain columns: {required_cols}")

    has_volume = "volume" in df.columns
    dates = pd.to_datetime(df["date"])
    points = []
    for i in range(len(df)):
        volume = None
        if has_volume and pd.notna(df["volume"].iloc[i]):
            volume = float(df["volume"].iloc[i])
        points.append(
            PricePoint(
                date=dates.iloc[i].date(),
                price=float(df["price"].iloc[i]),
                volume=volume,
            )
        )
    return points


def economic_points_from_frame(df: pd.DataFrame) -> list[EconomicDataPoint]:
    """Convert a wide economic DataFrame (date + indicator columns) into points."""
    if "date" not in df.columns:
        raise ValueError("Economic data must contain a 'date' column")

    field_cols = [c for c in df.columns if c != "date"]
    dates = pd.to_datetime(df["date"])
    # Non-numeric indicator cells are dropped
    numeric = df[field_cols].apply(pd.to_numeric, errors="coerce")
    points = []
    for i, row in enumerate(numeric.itertuples(index=False, name=None)):
        fields = {
            col: float(val)
            for col, val in zip(field_cols, row)
            if pd.notna(val)
        }
        points.append(EconomicDataPoint(date=dates.iloc[i].date(), fields=fields))
    return points


def price_points(rows: Iterable[tuple[DateLike, float]]) -> list[PricePoint]:
    """Shorthand for building a series from (date, price) pairs."""
    return [PricePoint(date=to_date(d), price=float(p)) for d, p in rows]
