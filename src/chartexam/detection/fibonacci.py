"""Fibonacci retracement anchor selection and level ladder.

The expected retracement is anchored on the most recent qualifying swing
structure: for an uptrend, the latest swing LOW that is followed by at least
one swing HIGH, paired with the highest of those later highs. Downtrends
mirror this. Fresh structure is preferred over older, larger moves that a
trader would no longer draw on the live edge of the chart.

CRITICAL: All computations use Decimal. Never use float for prices.
"""

from collections.abc import Sequence
from decimal import Decimal

from chartexam.config import FibonacciSettings
from chartexam.detection.swings import detect_swing_points
from chartexam.logging import get_logger
from chartexam.models import (
    Candle,
    FibonacciLevel,
    FibonacciLevels,
    FibonacciRetracement,
    SwingPoint,
    SwingPoints,
    TrendDirection,
)

logger = get_logger(__name__)

#: Standard retracement and extension ratios, lowest first.
FIBONACCI_RATIOS: tuple[Decimal, ...] = (
    Decimal("0"),
    Decimal("0.236"),
    Decimal("0.382"),
    Decimal("0.5"),
    Decimal("0.618"),
    Decimal("0.786"),
    Decimal("1"),
    Decimal("1.272"),
    Decimal("1.618"),
)

_DEFAULT_SETTINGS = FibonacciSettings()


def _anchor_swings(
    candles: Sequence[Candle],
    direction: TrendDirection,
    settings: FibonacciSettings,
) -> SwingPoints:
    lookback = (
        settings.uptrend_lookback if direction is TrendDirection.UPTREND else settings.downtrend_lookback
    )
    return detect_swing_points(candles, lookback=lookback, max_count=None)


def select_retracement(swings: SwingPoints, direction: TrendDirection) -> FibonacciRetracement | None:
    """Pick the anchor pair from already-detected swings.

    Scans origins (lows for uptrends, highs for downtrends) from the most
    recent backwards and returns the first one that has an opposite swing
    after it, paired with the most extreme such swing.
    """
    if direction is TrendDirection.UPTREND:
        origins, targets = swings.lows, swings.highs
    else:
        origins, targets = swings.highs, swings.lows

    for origin in sorted(origins, key=lambda p: p.time, reverse=True):
        later = [t for t in targets if t.time > origin.time]
        if not later:
            continue
        if direction is TrendDirection.UPTREND:
            # ties go to the earliest extreme
            end = max(later, key=lambda p: (p.price, -p.time))
        else:
            end = min(later, key=lambda p: (p.price, p.time))
        return FibonacciRetracement(start=origin, end=end, direction=direction)

    return None


def get_fibonacci_retracement(
    candles: Sequence[Candle],
    direction: TrendDirection,
    settings: FibonacciSettings | None = None,
) -> FibonacciRetracement | None:
    """Compute the expected retracement for a direction.

    Returns:
        The anchor pair, or None when the chart holds no qualifying swing pair
        (the HTTP layer renders this as a ``{time: 0, price: 0}`` sentinel).
    """
    settings = settings or _DEFAULT_SETTINGS
    swings = _anchor_swings(candles, direction, settings)
    retracement = select_retracement(swings, direction)

    if retracement is None:
        logger.debug("fibonacci_no_anchor_pair", direction=direction.value, swing_count=len(swings))
    else:
        logger.debug(
            "fibonacci_anchor_selected",
            direction=direction.value,
            start_time=retracement.start.time,
            start_price=str(retracement.start.price),
            end_time=retracement.end.time,
            end_price=str(retracement.end.price),
        )
    return retracement


def calculate_fibonacci_levels(start: SwingPoint, end: SwingPoint) -> FibonacciLevels:
    """Interpolate the ratio ladder between two anchors.

    ``price = start.price + ratio * (end.price - start.price)``. The direction
    follows the sign of the price delta. Zero-priced anchors (the empty
    sentinel) produce an empty ladder.
    """
    delta = end.price - start.price
    direction = TrendDirection.UPTREND if delta > 0 else TrendDirection.DOWNTREND

    if start.price == 0 or end.price == 0:
        return FibonacciLevels(direction=direction, start_price=start.price, end_price=end.price)

    levels = tuple(
        FibonacciLevel(ratio=ratio, label=str(ratio), price=start.price + ratio * delta)
        for ratio in FIBONACCI_RATIOS
    )
    return FibonacciLevels(
        direction=direction,
        start_price=start.price,
        end_price=end.price,
        levels=levels,
    )


def levels_to_dicts(levels: FibonacciLevels) -> list[dict]:
    return [{"level": lvl.ratio, "label": lvl.label, "price": lvl.price} for lvl in levels.levels]
