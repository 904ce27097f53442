"""Tests for Fair Value Gap detection and fill tracking."""

from decimal import Decimal

import pytest

from chartexam.candles import normalize_candles
from chartexam.config import FvgSettings
from chartexam.detection.fvg import (
    adaptive_min_gap_percent,
    check_fvg_filled,
    detect_fair_value_gaps,
    find_fill_time,
    min_gap_percent_for,
)
from chartexam.models import Candle, FairValueGap, GapKind

T0 = 1_700_000_000
DAY = 86_400


def _make_candles(ranges: list[tuple[int, int]]) -> list[Candle]:
    return normalize_candles(
        [{"time": T0 + i * DAY, "high": h, "low": l} for i, (h, l) in enumerate(ranges)]
    )


def _make_gap(kind: GapKind, top: str, bottom: str, end_time: int = T0 + 2 * DAY) -> FairValueGap:
    return FairValueGap(
        start_time=T0,
        end_time=end_time,
        top_price=Decimal(top),
        bottom_price=Decimal(bottom),
        kind=kind,
        size=Decimal(top) - Decimal(bottom),
    )


class TestDetectFairValueGaps:
    """Tests for three-candle gap detection."""

    def test_single_bullish_gap(self, bullish_gap_candles: list[Candle]) -> None:
        """First high 10, third low 15: one bullish gap spanning 10-15."""
        gaps = detect_fair_value_gaps(bullish_gap_candles, GapKind.BULLISH, timeframe="1day")

        assert len(gaps) == 1
        gap = gaps[0]
        assert gap.bottom_price == Decimal("10")
        assert gap.top_price == Decimal("15")
        assert gap.size == Decimal("5")
        assert (gap.start_time, gap.end_time) == (T0, T0 + 2 * DAY)
        assert gap.mid_price == Decimal("12.5")

    def test_no_bearish_gap_in_rally(self, bullish_gap_candles: list[Candle]) -> None:
        assert detect_fair_value_gaps(bullish_gap_candles, GapKind.BEARISH) == []

    def test_bearish_gap(self) -> None:
        """First low 110, third high 105: bearish gap spanning 105-110."""
        candles = _make_candles([(120, 110), (112, 102), (105, 98)])
        gaps = detect_fair_value_gaps(candles, GapKind.BEARISH)

        assert len(gaps) == 1
        assert (gaps[0].bottom_price, gaps[0].top_price) == (Decimal("105"), Decimal("110"))
        assert gaps[0].top_price > gaps[0].bottom_price

    def test_touching_ranges_are_not_gaps(self) -> None:
        candles = _make_candles([(10, 5), (14, 9), (20, 10)])
        assert detect_fair_value_gaps(candles, GapKind.BULLISH) == []

    def test_threshold_filters_small_gaps(self, bullish_gap_candles: list[Candle]) -> None:
        """Range 15 * 0.5 = 7.5 minimum, so the 5-wide gap is dropped."""
        gaps = detect_fair_value_gaps(
            bullish_gap_candles, GapKind.BULLISH, min_gap_percent=Decimal("0.5")
        )
        assert gaps == []

    def test_sorted_by_size_and_capped(self) -> None:
        """Gaps of 2, 6 and 11 come back largest first; a cap of 2 drops the smallest."""
        candles = _make_candles([(100, 95), (106, 101), (110, 102), (120, 112), (125, 121)])

        all_gaps = detect_fair_value_gaps(candles, GapKind.BULLISH)
        capped = detect_fair_value_gaps(candles, GapKind.BULLISH, max_results=2)

        assert [g.size for g in all_gaps] == [Decimal("11"), Decimal("6"), Decimal("2")]
        assert [g.size for g in capped] == [Decimal("11"), Decimal("6")]

    def test_settings_cap_applies(self) -> None:
        candles = _make_candles([(100, 95), (106, 101), (110, 102), (120, 112), (125, 121)])
        gaps = detect_fair_value_gaps(candles, GapKind.BULLISH, settings=FvgSettings(max_results=1))
        assert len(gaps) == 1

    def test_fewer_than_three_candles(self) -> None:
        candles = _make_candles([(10, 5), (20, 15)])
        assert detect_fair_value_gaps(candles, GapKind.BULLISH) == []
        assert detect_fair_value_gaps([], GapKind.BEARISH) == []

    def test_to_dict(self, bullish_gap_candles: list[Candle]) -> None:
        (gap,) = detect_fair_value_gaps(bullish_gap_candles, GapKind.BULLISH)
        data = gap.to_dict()
        assert data["type"] == "bullish"
        assert data["time"] == data["startTime"] == T0


class TestMinGapPercent:
    """Tests for timeframe-scaled thresholds (current calibration)."""

    @pytest.mark.parametrize(
        ("timeframe", "expected"),
        [
            ("1h", Decimal("0.002")),
            ("4h", Decimal("0.003")),
            ("1day", Decimal("0.005")),
            ("1week", Decimal("0.01")),
            ("15m", Decimal("0.005")),
            (None, Decimal("0.005")),
        ],
    )
    def test_table(self, timeframe: str | None, expected: Decimal) -> None:
        assert min_gap_percent_for(timeframe) == expected

    def test_adaptive_short_series_scales_baseline(self) -> None:
        """Too few candles to measure volatility: baseline * 1.3."""
        candles = _make_candles([(10, 5), (14, 9), (20, 15)])
        assert adaptive_min_gap_percent(candles, "1day") == Decimal("0.0065")

    def test_adaptive_is_capped(self) -> None:
        """Wild ranges relative to price hit the 1% ceiling."""
        candles = _make_candles([(200, 10), (210, 5), (190, 15), (205, 8), (220, 12)])
        assert adaptive_min_gap_percent(candles, "1week") == Decimal("0.01")

    def test_adaptive_setting_changes_threshold(self, bullish_gap_candles: list[Candle]) -> None:
        gaps = detect_fair_value_gaps(
            bullish_gap_candles, GapKind.BULLISH, settings=FvgSettings(adaptive=True)
        )
        assert len(gaps) == 1


class TestFillTracking:
    """Tests for gap fill detection."""

    def test_bullish_filled_by_first_low_inside(self) -> None:
        gap = _make_gap(GapKind.BULLISH, "105", "100")
        candles = _make_candles([(110, 90), (112, 106), (113, 107), (111, 106), (108, 104.5)])

        assert find_fill_time(gap, candles) == T0 + 4 * DAY
        assert check_fvg_filled(gap, candles)

    def test_candles_before_gap_end_ignored(self) -> None:
        """The low of 90 at the first candle predates the gap."""
        gap = _make_gap(GapKind.BULLISH, "105", "100")
        candles = _make_candles([(110, 90), (112, 106), (113, 107), (111, 106)])
        assert find_fill_time(gap, candles) is None
        assert not check_fvg_filled(gap, candles)

    def test_bearish_filled_when_high_reaches_bottom(self) -> None:
        gap = _make_gap(GapKind.BEARISH, "110", "105")
        candles = _make_candles([(120, 110), (112, 102), (104, 98), (105, 99)])
        assert find_fill_time(gap, candles) == T0 + 3 * DAY


class TestFvgProperties:
    """Properties that hold for any input series."""

    def test_monotonic_in_threshold(self) -> None:
        """Raising the minimum gap size never adds gaps."""
        candles = _make_candles([(100, 95), (106, 101), (110, 102), (120, 112), (125, 121)])
        thresholds = [Decimal("0"), Decimal("0.1"), Decimal("0.25"), Decimal("0.4")]
        counts = [
            len(detect_fair_value_gaps(candles, GapKind.BULLISH, min_gap_percent=t, max_results=100))
            for t in thresholds
        ]
        assert counts == sorted(counts, reverse=True)
        assert counts[0] == 3

    def test_idempotent(self, bullish_gap_candles: list[Candle]) -> None:
        first = detect_fair_value_gaps(bullish_gap_candles, GapKind.BULLISH)
        assert detect_fair_value_gaps(bullish_gap_candles, GapKind.BULLISH) == first
