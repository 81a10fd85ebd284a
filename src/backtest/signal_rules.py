"""
Historical signal generation from economic conditions.

Lets a strategy be expressed as rules over macro data points so it can be
backtested without an external signal source.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from src.backtest.models import (
    DateLike,
    EconomicDataPoint,
    Signal,
    SignalAction,
    SignalEvent,
    to_date,
)


@dataclass(frozen=True)
class SignalRule:
    """Emit a signal for an asset whenever condition(point) is true."""

    condition: Callable[[EconomicDataPoint], bool]
    asset: str
    action: SignalAction
    expected_return: float = 0.0
    confidence: float = 0.0


def generate_historical_signals(
    economic_data: Iterable[EconomicDataPoint],
    start_date: DateLike,
    end_date: DateLike,
    rules: Sequence[SignalRule],
) -> list[SignalEvent]:
    """
    Evaluate rules against every economic point in [start_date, end_date].

    Points are visited in the order given; dates with no matching rule
    produce no event.
    """
    start = to_date(start_date)
    end = to_date(end_date)

    events = []
    for point in economic_data:
        if not (start <= point.date <= end):
            continue

        signals = [
            Signal(
                asset=rule.asset,
                action=rule.action,
                confidence=rule.confidence,
                reasoning=f"Economic condition triggered at {point.date.isoformat()}",
                expected_return=rule.expected_return,
            )
            for rule in rules
            if rule.condition(point)
        ]
        if signals:
            events.append(SignalEvent(date=point.date, signals=tuple(signals)))

    return events
