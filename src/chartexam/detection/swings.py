"""Swing high/low detection over a symmetric lookback window.

A candle at index ``i`` is a swing HIGH when its high is strictly greater than
the high of every candle in the ``lookback`` candles before and after it; a
swing LOW is the mirror case on lows. Comparing against a whole window rather
than the immediate neighbours keeps one-candle spikes out of the result.

Each candidate carries a significance: the excursion from the extremum to the
opposite extreme inside its ``2 * lookback + 1`` window, divided by the price
range of the whole series. Candidates below ``min_significance`` are dropped.

When more than ``max_count`` candidates of a kind survive, selection keeps the
``min_count`` most significant and fills the remaining slots from the largest
time gaps between already-selected points, so the answer key is spread across
the chart instead of clustering around one move.

Graceful degradation: series shorter than one full window, flat series and
series without strict extrema all produce empty highs and lows.

CRITICAL: All computations use Decimal. Never use float for prices.
"""

from collections.abc import Sequence
from decimal import Decimal

from chartexam.candles import price_range
from chartexam.config import SwingSettings
from chartexam.logging import get_logger
from chartexam.models import Candle, SwingKind, SwingPoint, SwingPoints

logger = get_logger(__name__)

#: Per-timeframe detection parameters: (lookback, min_significance, min_count, max_count).
#: Empirically chosen calibration values.
_TIMEFRAME_PROFILES: dict[str, tuple[int, Decimal, int, int]] = {
    "1h": (4, Decimal("0.007"), 3, 12),
    "4h": (5, Decimal("0.01"), 3, 10),
    "1day": (5, Decimal("0.01"), 3, 8),
    "1week": (6, Decimal("0.015"), 2, 6),
}


def swing_profile(timeframe: str | None, fallback: SwingSettings | None = None) -> SwingSettings:
    """Detection parameters tuned for a timeframe.

    Unknown timeframes use ``fallback`` when given, otherwise the daily profile.
    """
    if timeframe not in _TIMEFRAME_PROFILES and fallback is not None:
        return fallback
    lookback, min_significance, min_count, max_count = _TIMEFRAME_PROFILES.get(
        timeframe or "1day", _TIMEFRAME_PROFILES["1day"]
    )
    return SwingSettings(
        lookback=lookback,
        min_significance=min_significance,
        min_count=min_count,
        max_count=max_count,
    )


def is_strict_extremum(candles: Sequence[Candle], i: int, lookback: int, kind: SwingKind) -> bool:
    """True when candle ``i`` strictly beats every candle within ``lookback`` on both sides."""
    if i < lookback or i + lookback >= len(candles):
        return False

    neighbours = [*candles[i - lookback : i], *candles[i + 1 : i + 1 + lookback]]
    if kind is SwingKind.HIGH:
        return all(c.high < candles[i].high for c in neighbours)
    return all(c.low > candles[i].low for c in neighbours)


def _find_candidates(
    candles: Sequence[Candle],
    lookback: int,
    min_significance: Decimal,
    series_range: Decimal,
    kind: SwingKind,
) -> list[SwingPoint]:
    candidates: list[SwingPoint] = []
    for i in range(lookback, len(candles) - lookback):
        if not is_strict_extremum(candles, i, lookback, kind):
            continue

        window = candles[i - lookback : i + lookback + 1]
        if kind is SwingKind.HIGH:
            price = candles[i].high
            excursion = price - min(c.low for c in window)
        else:
            price = candles[i].low
            excursion = max(c.high for c in window) - price

        significance = excursion / series_range
        if significance < min_significance:
            continue

        candidates.append(
            SwingPoint(
                time=candles[i].time,
                price=price,
                significance=significance,
                kind=kind,
                index=candles[i].index,
            )
        )
    return candidates


def _by_significance(points: Sequence[SwingPoint]) -> list[SwingPoint]:
    # Ties resolve to the earlier point so selection is deterministic.
    return sorted(points, key=lambda p: (-p.significance, p.time))


def _largest_gap(selected: Sequence[SwingPoint]) -> tuple[int, int] | None:
    ordered = sorted(p.time for p in selected)
    best: tuple[int, int] | None = None
    for left, right in zip(ordered, ordered[1:]):
        if best is None or right - left > best[1] - best[0]:
            best = (left, right)
    return best


def select_distributed(
    candidates: Sequence[SwingPoint],
    min_count: int,
    max_count: int | None,
) -> list[SwingPoint]:
    """Pick at most ``max_count`` points that are both significant and spread out in time.

    The ``min_count`` most significant candidates are always kept. Each further
    slot goes to the most significant remaining candidate strictly inside the
    widest time gap between selected points; if that gap is empty the next
    most significant candidate is taken instead.

    Returns:
        Selected points ordered by time.
    """
    if max_count is None or len(candidates) <= max_count:
        return sorted(candidates, key=lambda p: p.time)

    ranked = _by_significance(candidates)
    keep = max(0, min(min_count, max_count))
    selected = ranked[:keep]
    remaining = ranked[keep:]

    while len(selected) < max_count and remaining:
        choice = remaining[0]
        gap = _largest_gap(selected)
        if gap is not None:
            inside = [p for p in remaining if gap[0] < p.time < gap[1]]
            if inside:
                choice = inside[0]
        selected.append(choice)
        remaining.remove(choice)

    return sorted(selected, key=lambda p: p.time)


def detect_swing_points(
    candles: Sequence[Candle],
    lookback: int = 5,
    min_significance: Decimal = Decimal("0.01"),
    min_count: int = 3,
    max_count: int | None = 10,
) -> SwingPoints:
    """Detect significant, well-distributed swing highs and lows.

    Args:
        candles: Normalized candles ordered by time.
        lookback: Candles compared on each side of a candidate.
        min_significance: Minimum excursion as a fraction of the series range.
        min_count: Most significant points per kind that are always kept.
        max_count: Maximum points per kind; None disables the cap.

    Returns:
        SwingPoints with highs and lows ordered by time. Empty when the series
        is shorter than ``2 * lookback + 1`` candles or has no range.
    """
    if lookback < 1 or len(candles) < 2 * lookback + 1:
        return SwingPoints()

    series_range = price_range(candles)
    if series_range <= 0:
        return SwingPoints()

    highs = _find_candidates(candles, lookback, min_significance, series_range, SwingKind.HIGH)
    lows = _find_candidates(candles, lookback, min_significance, series_range, SwingKind.LOW)

    result = SwingPoints(
        highs=tuple(select_distributed(highs, min_count, max_count)),
        lows=tuple(select_distributed(lows, min_count, max_count)),
    )

    logger.debug(
        "swing_points_detected",
        candle_count=len(candles),
        lookback=lookback,
        high_candidates=len(highs),
        low_candidates=len(lows),
        highs=len(result.highs),
        lows=len(result.lows),
    )
    return result


def detect_with_settings(candles: Sequence[Candle], settings: SwingSettings) -> SwingPoints:
    """Run ``detect_swing_points`` with parameters taken from a settings object."""
    return detect_swing_points(
        candles,
        lookback=settings.lookback,
        min_significance=settings.min_significance,
        min_count=settings.min_count,
        max_count=settings.max_count,
    )
