"""Tests for Fibonacci anchor selection and the level ladder."""

from decimal import Decimal

from chartexam.detection.fibonacci import (
    FIBONACCI_RATIOS,
    calculate_fibonacci_levels,
    get_fibonacci_retracement,
    levels_to_dicts,
    select_retracement,
)
from chartexam.models import Candle, SwingKind, SwingPoint, SwingPoints, TrendDirection

T0 = 1_700_000_000
DAY = 86_400


def _high(time: int, price: str) -> SwingPoint:
    return SwingPoint(time=time, price=Decimal(price), significance=Decimal("0.5"), kind=SwingKind.HIGH)


def _low(time: int, price: str) -> SwingPoint:
    return SwingPoint(time=time, price=Decimal(price), significance=Decimal("0.5"), kind=SwingKind.LOW)


def _sample_swings() -> SwingPoints:
    return SwingPoints(
        highs=(_high(300, "120"), _high(700, "130"), _high(800, "125")),
        lows=(_low(100, "90"), _low(500, "95")),
    )


class TestSelectRetracement:
    """Tests for anchor pair selection from detected swings."""

    def test_uptrend_uses_most_recent_low_with_later_high(self) -> None:
        """Latest low (t=500) paired with the highest later high (t=700)."""
        fib = select_retracement(_sample_swings(), TrendDirection.UPTREND)

        assert fib is not None
        assert (fib.start.time, fib.start.price) == (500, Decimal("95"))
        assert (fib.end.time, fib.end.price) == (700, Decimal("130"))
        assert fib.direction is TrendDirection.UPTREND

    def test_downtrend_skips_highs_without_later_lows(self) -> None:
        """Highs at 800 and 700 have no later low; the high at 300 anchors."""
        fib = select_retracement(_sample_swings(), TrendDirection.DOWNTREND)

        assert fib is not None
        assert (fib.start.time, fib.end.time) == (300, 500)
        assert fib.start.time < fib.end.time

    def test_equal_extremes_resolve_to_earliest(self) -> None:
        swings = SwingPoints(highs=(_high(700, "130"), _high(800, "130")), lows=(_low(500, "95"),))
        fib = select_retracement(swings, TrendDirection.UPTREND)
        assert fib is not None
        assert fib.end.time == 700

    def test_no_pair_returns_none(self) -> None:
        swings = SwingPoints(highs=(_high(100, "130"),), lows=(_low(500, "95"),))
        assert select_retracement(swings, TrendDirection.UPTREND) is None
        assert select_retracement(SwingPoints(), TrendDirection.DOWNTREND) is None


class TestGetFibonacciRetracement:
    """Tests for anchor detection straight from candles."""

    def test_uptrend_from_valley(self, valley_candles: list[Candle]) -> None:
        fib = get_fibonacci_retracement(valley_candles, TrendDirection.UPTREND)

        assert fib is not None
        assert (fib.start.time, fib.start.price) == (T0 + 10 * DAY, Decimal("79"))
        assert (fib.end.time, fib.end.price) == (T0 + 20 * DAY, Decimal("121"))

    def test_downtrend_needs_wider_confirmation(self, valley_candles: list[Candle]) -> None:
        """The downtrend lookback of 7 cannot confirm the late high."""
        assert get_fibonacci_retracement(valley_candles, TrendDirection.DOWNTREND) is None

    def test_empty_series(self) -> None:
        assert get_fibonacci_retracement([], TrendDirection.UPTREND) is None

    def test_to_dict(self, valley_candles: list[Candle]) -> None:
        fib = get_fibonacci_retracement(valley_candles, TrendDirection.UPTREND)
        assert fib is not None
        assert fib.to_dict() == {
            "startTime": T0 + 10 * DAY,
            "startPrice": Decimal("79"),
            "endTime": T0 + 20 * DAY,
            "endPrice": Decimal("121"),
            "direction": "uptrend",
        }


class TestCalculateFibonacciLevels:
    """Tests for the retracement ladder."""

    def test_uptrend_ladder(self) -> None:
        levels = calculate_fibonacci_levels(_low(0, "100"), _high(1, "200"))

        assert levels.direction is TrendDirection.UPTREND
        assert len(levels.levels) == len(FIBONACCI_RATIOS)
        assert levels.price_at(Decimal("0")) == Decimal("100")
        assert levels.price_at(Decimal("0.5")) == Decimal("150")
        assert levels.price_at(Decimal("0.618")) == Decimal("161.8")
        assert levels.price_at(Decimal("1")) == Decimal("200")
        assert levels.price_at(Decimal("1.618")) == Decimal("261.8")

    def test_downtrend_ladder(self) -> None:
        levels = calculate_fibonacci_levels(_high(0, "200"), _low(1, "100"))

        assert levels.direction is TrendDirection.DOWNTREND
        assert levels.price_at(Decimal("0.382")) == Decimal("161.8")

    def test_zero_sentinel_gives_empty_ladder(self) -> None:
        levels = calculate_fibonacci_levels(_low(0, "0"), _high(0, "0"))
        assert levels.levels == ()
        assert levels_to_dicts(levels) == []

    def test_unknown_ratio(self) -> None:
        levels = calculate_fibonacci_levels(_low(0, "100"), _high(1, "200"))
        assert levels.price_at(Decimal("0.7")) is None

    def test_levels_to_dicts(self) -> None:
        levels = calculate_fibonacci_levels(_low(0, "100"), _high(1, "200"))
        first = levels_to_dicts(levels)[0]
        assert first == {"level": Decimal("0"), "label": "0", "price": Decimal("100")}
