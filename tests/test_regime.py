"""
Tests for Fed policy regime classification and trade attribution.

Tests cover:
- Tightening / easing / hold classification from the policy rate trend
- Unclassified dates (fewer than two observations in the window)
- Window boundaries and custom thresholds
- Per-regime average return and win rate
"""

from datetime import date, timedelta

import pytest

from src.backtest.market_data import MarketDataStore
from src.backtest.models import EconomicDataPoint, ExitReason, SignalAction, TradeResult
from src.backtest.regime import (
    PolicyRegime,
    PolicyRegimeClassifier,
    RegimeAttribution,
    RegimeConfig,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def classifier_for(rate_points):
    """Classifier over a list of (date, DFF) pairs."""
    def _make(pairs, config=None):
        store = MarketDataStore(economic_data=rate_points(pairs))
        return PolicyRegimeClassifier(store, config)
    return _make


def _trade(entry_date, return_pct):
    return TradeResult(
        entry_date=entry_date,
        exit_date=entry_date + timedelta(days=10),
        asset="TLT",
        action=SignalAction.BUY,
        entry_price=100.0,
        exit_price=100.0 * (1 + return_pct / 100),
        return_pct=return_pct,
        duration=10,
        exit_reason=ExitReason.HORIZON,
    )


# ============================================================================
# Classification
# ============================================================================

@pytest.mark.parametrize(
    "later_rate,expected",
    [
        (2.50, PolicyRegime.TIGHTENING),
        (1.70, PolicyRegime.EASING),
        (2.10, PolicyRegime.HOLD),
    ],
)
def test_classification_from_rate_change(classifier_for, later_rate, expected):
    classifier = classifier_for([
        (date(2023, 3, 1), 2.00),
        (date(2023, 4, 30), later_rate),  # 60 days later
    ])

    assert classifier.classify(date(2023, 3, 31)) == expected


def test_change_equal_to_threshold_is_hold(classifier_for):
    classifier = classifier_for([
        (date(2023, 3, 1), 2.00),
        (date(2023, 4, 30), 2.25),
    ])

    assert classifier.classify(date(2023, 3, 31)) == PolicyRegime.HOLD


def test_uses_earliest_and_latest_in_window(classifier_for):
    # Unsorted input; middle points are ignored
    classifier = classifier_for([
        (date(2023, 4, 30), 3.00),
        (date(2023, 3, 1), 2.00),
        (date(2023, 3, 20), 1.00),
    ])

    assert classifier.classify(date(2023, 3, 31)) == PolicyRegime.TIGHTENING


def test_fewer_than_two_points_is_unclassified(classifier_for):
    classifier = classifier_for([(date(2023, 3, 1), 2.00)])

    assert classifier.classify(date(2023, 3, 31)) is None


def test_points_outside_window_are_ignored(classifier_for):
    classifier = classifier_for([
        (date(2022, 1, 1), 0.25),  # far outside +/- 90 days
        (date(2023, 3, 1), 2.00),
        (date(2023, 4, 30), 2.10),
    ])

    assert classifier.classify(date(2023, 3, 31)) == PolicyRegime.HOLD


def test_points_without_policy_rate_are_ignored():
    store = MarketDataStore(economic_data=[
        EconomicDataPoint(date=date(2023, 3, 1), fields={"DFF": 2.0}),
        EconomicDataPoint(date=date(2023, 4, 1), fields={"UNRATE": 3.5}),
    ])

    assert PolicyRegimeClassifier(store).classify(date(2023, 3, 15)) is None


def test_custom_threshold_and_window(classifier_for):
    config = RegimeConfig(window_days=30, rate_threshold=0.05)
    classifier = classifier_for(
        [
            (date(2023, 3, 10), 2.00),
            (date(2023, 4, 9), 2.10),
            (date(2023, 6, 1), 5.00),  # outside the 30-day window
        ],
        config=config,
    )

    assert classifier.classify(date(2023, 3, 25)) == PolicyRegime.TIGHTENING


def test_unknown_regime_key_rejected():
    with pytest.raises(ValueError):
        PolicyRegime("pivot")


# ============================================================================
# Attribution
# ============================================================================

@pytest.fixture
def hiking_then_cutting(classifier_for):
    """Tightening around spring 2022, easing around autumn 2024."""
    return classifier_for([
        (date(2022, 3, 1), 0.25),
        (date(2022, 5, 1), 1.00),
        (date(2024, 8, 1), 5.33),
        (date(2024, 10, 1), 4.83),
    ])


def test_attribution_buckets_trades(hiking_then_cutting):
    trades = [
        _trade(date(2022, 4, 1), 5.0),
        _trade(date(2022, 4, 2), -3.0),
        _trade(date(2024, 9, 1), 8.0),
        _trade(date(2019, 1, 1), 1.0),  # no data nearby
    ]

    attribution = hiking_then_cutting.attribute(trades)

    assert isinstance(attribution, RegimeAttribution)
    assert attribution.tightening.trade_count == 2
    assert attribution.tightening.avg_return == pytest.approx(1.0)
    assert attribution.tightening.win_rate == pytest.approx(50.0)
    assert attribution.easing.trade_count == 1
    assert attribution.easing.avg_return == pytest.approx(8.0)
    assert attribution.easing.win_rate == pytest.approx(100.0)
    assert attribution.hold.trade_count == 0
    assert attribution.hold.avg_return == 0.0
    assert attribution.hold.win_rate == 0.0
    assert attribution.unclassified == 1


def test_attribution_lookup_by_enum_and_value(hiking_then_cutting):
    attribution = hiking_then_cutting.attribute([_trade(date(2022, 4, 1), 5.0)])

    assert attribution[PolicyRegime.TIGHTENING] is attribution.tightening
    assert attribution["tightening"] is attribution.tightening


def test_attribution_empty_trade_list(hiking_then_cutting):
    attribution = hiking_then_cutting.attribute([])

    assert all(stats.trade_count == 0 for stats in attribution.regimes.values())
    assert set(attribution.regimes) == set(PolicyRegime)
    assert attribution.unclassified == 0


def test_attribution_summary(hiking_then_cutting):
    attribution = hiking_then_cutting.attribute([_trade(date(2022, 4, 1), 5.0)])

    summary = attribution.summary()

    assert "Tightening: 1 trades" in summary
    assert "Easing: 0 trades" in summary
