"""Fair Value Gap detection over three-candle windows.

For a window ``[c1, c2, c3]``:

- BULLISH gap: ``c3.low - c1.high > 0``; the gap spans ``c1.high .. c3.low``.
- BEARISH gap: ``c1.low - c3.high > 0``; the gap spans ``c3.high .. c1.low``.

The middle candle only has to exist. A gap counts once its size reaches
``series range * min_gap_percent``, where the percentage grows with the
timeframe so that daily and weekly charts are not flooded by micro-gaps.

Fill tracking is a one-way transition: a gap is filled by the first later
candle that trades back into it and never reopens.

CRITICAL: All computations use Decimal. Never use float for prices.
"""

from collections.abc import Sequence
from decimal import Decimal

from chartexam.candles import price_range
from chartexam.config import FvgSettings
from chartexam.logging import get_logger
from chartexam.models import Candle, FairValueGap, GapKind

logger = get_logger(__name__)

_DEFAULT_SETTINGS = FvgSettings()

#: Bounds for the volatility-adaptive threshold.
_ADAPTIVE_FLOOR = Decimal("0.0005")
_ADAPTIVE_CEILING = Decimal("0.01")


def min_gap_percent_for(timeframe: str | None, settings: FvgSettings | None = None) -> Decimal:
    """Timeframe-scaled minimum gap size as a fraction of the series range."""
    table = (settings or _DEFAULT_SETTINGS).min_gap_percent
    return table.get(timeframe or "1day", table.get("1day", Decimal("0.005")))


def average_true_range_ratio(candles: Sequence[Candle]) -> Decimal:
    """Average true range as a percentage of the average mid price.

    Returns 1 for series too short to measure, which leaves the adaptive
    threshold at its timeframe baseline.
    """
    if len(candles) < 5:
        return Decimal("1")

    true_ranges = [
        max(cur.high - cur.low, abs(cur.high - prev.close), abs(cur.low - prev.close))
        for prev, cur in zip(candles, candles[1:])
    ]
    atr = sum(true_ranges, Decimal("0")) / len(true_ranges)
    average_mid = sum(((c.high + c.low) / 2 for c in candles), Decimal("0")) / len(candles)
    if average_mid <= 0:
        return Decimal("1")
    return atr / average_mid * 100


def adaptive_min_gap_percent(
    candles: Sequence[Candle],
    timeframe: str | None,
    settings: FvgSettings | None = None,
) -> Decimal:
    """Scale the timeframe baseline by recent volatility, bounded to [0.05%, 1%]."""
    base = min_gap_percent_for(timeframe, settings)
    volatility = average_true_range_ratio(candles)
    scaled = base * (volatility * Decimal("0.5") + Decimal("0.8"))
    return max(_ADAPTIVE_FLOOR, min(_ADAPTIVE_CEILING, scaled))


def _gap_at(window: Sequence[Candle], kind: GapKind) -> tuple[Decimal, Decimal] | None:
    first, _, third = window
    if kind is GapKind.BULLISH:
        top, bottom = third.low, first.high
    else:
        top, bottom = first.low, third.high
    if top - bottom <= 0:
        return None
    return top, bottom


def detect_fair_value_gaps(
    candles: Sequence[Candle],
    kind: GapKind,
    min_gap_percent: Decimal | None = None,
    timeframe: str | None = "1day",
    max_results: int | None = None,
    settings: FvgSettings | None = None,
) -> list[FairValueGap]:
    """Find the most significant gaps of one polarity.

    Args:
        candles: Normalized candles ordered by time.
        kind: BULLISH or BEARISH.
        min_gap_percent: Threshold as a fraction of the series range. None
            derives it from the timeframe (adaptively when enabled in settings).
        timeframe: Timeframe key used when deriving the threshold.
        max_results: Cap on returned gaps; None uses ``settings.max_results``.
        settings: FVG settings; defaults apply when omitted.

    Returns:
        Gaps sorted by size descending (earlier gaps first on ties).
    """
    settings = settings or _DEFAULT_SETTINGS
    limit = settings.max_results if max_results is None else max_results

    if len(candles) < 3:
        return []

    if min_gap_percent is None:
        if settings.adaptive:
            min_gap_percent = adaptive_min_gap_percent(candles, timeframe, settings)
        else:
            min_gap_percent = min_gap_percent_for(timeframe, settings)
    min_gap_size = price_range(candles) * min_gap_percent

    gaps: list[FairValueGap] = []
    for i in range(len(candles) - 2):
        window = candles[i : i + 3]
        bounds = _gap_at(window, kind)
        if bounds is None:
            continue
        top, bottom = bounds
        size = top - bottom
        if size < min_gap_size:
            continue
        gaps.append(
            FairValueGap(
                start_time=window[0].time,
                end_time=window[2].time,
                top_price=top,
                bottom_price=bottom,
                kind=kind,
                size=size,
                first_index=window[0].index,
                third_index=window[2].index,
            )
        )

    gaps.sort(key=lambda g: (-g.size, g.start_time))

    logger.debug(
        "fvg_detected",
        kind=kind.value,
        timeframe=timeframe,
        min_gap_size=str(min_gap_size),
        found=len(gaps),
        returned=min(len(gaps), limit),
    )
    return gaps[:limit]


def find_fill_time(gap: FairValueGap, candles: Sequence[Candle]) -> int | None:
    """Time of the first candle after the gap that trades back into it, or None."""
    for candle in candles:
        if candle.time <= gap.end_time:
            continue
        if gap.kind is GapKind.BULLISH and candle.low <= gap.top_price:
            return candle.time
        if gap.kind is GapKind.BEARISH and candle.high >= gap.bottom_price:
            return candle.time
    return None


def check_fvg_filled(gap: FairValueGap, later_candles: Sequence[Candle]) -> bool:
    """True once any candle after the gap has crossed back into its range."""
    return find_fill_time(gap, later_candles) is not None
