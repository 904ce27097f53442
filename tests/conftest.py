"""Shared test fixtures for the chart exam grader.

Chart fixtures are small hand-built series whose swings and gaps can be read
off directly; the expected detections are noted on each fixture.
"""

from decimal import Decimal

import pytest

from chartexam.candles import normalize_candles
from chartexam.config import AppSettings, TimeframeTolerance
from chartexam.models import Candle

T0 = 1_700_000_000
DAY = 86_400


def _raw_from_mids(mids: list[int], half_range: int = 1) -> list[dict]:
    return [
        {"time": T0 + i * DAY, "open": m, "high": m + half_range, "low": m - half_range, "close": m}
        for i, m in enumerate(mids)
    ]


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(log_level="DEBUG")


@pytest.fixture
def daily_tolerance() -> TimeframeTolerance:
    """Daily match window: 6% price, two days of time."""
    return TimeframeTolerance(price_pct=Decimal("0.06"), time_seconds=2 * DAY)


@pytest.fixture
def peak_chart_data() -> list[dict]:
    """Eleven daily candles rising to one peak at index 5 (high 111).

    With the daily profile (lookback 5) this holds exactly one swing high and
    no swing low.
    """
    return _raw_from_mids([100, 102, 104, 106, 108, 110, 108, 106, 104, 102, 100])


@pytest.fixture
def peak_candles(peak_chart_data: list[dict]) -> list[Candle]:
    return normalize_candles(peak_chart_data)


@pytest.fixture
def valley_chart_data() -> list[dict]:
    """Twenty-seven daily candles: fall to 80, rally to 120, fade to 108.

    Lookback 5 finds a swing low at index 10 (low 79) and a swing high at
    index 20 (high 121). Lookback 7 cannot confirm the high (too close to the
    end), so no downtrend anchor pair exists.
    """
    falling = [100, 98, 96, 94, 92, 90, 88, 86, 84, 82, 80]
    rising = [84, 88, 92, 96, 100, 104, 108, 112, 116, 120]
    fading = [118, 116, 114, 112, 110, 108]
    return _raw_from_mids(falling + rising + fading)


@pytest.fixture
def valley_candles(valley_chart_data: list[dict]) -> list[Candle]:
    return normalize_candles(valley_chart_data)


@pytest.fixture
def bullish_gap_chart_data() -> list[dict]:
    """Three daily candles with first high 10 and third low 15: one bullish gap 10-15."""
    return [
        {"time": T0, "open": 6, "high": 10, "low": 5, "close": 9},
        {"time": T0 + DAY, "open": 9, "high": 14, "low": 9, "close": 13},
        {"time": T0 + 2 * DAY, "open": 16, "high": 20, "low": 15, "close": 19},
    ]


@pytest.fixture
def bullish_gap_candles(bullish_gap_chart_data: list[dict]) -> list[Candle]:
    return normalize_candles(bullish_gap_chart_data)
