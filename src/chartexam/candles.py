"""Candle normalization for heterogeneous OHLC feeds.

Chart data arrives from several front-end and provider formats (``high``,
``h`` or ``High``; epoch seconds, epoch milliseconds or ISO strings). This
module is the single place those variants are resolved; everything downstream
works on ``Candle`` only.

Malformed rows are dropped, never raised on. The one fatal condition is a
caller-requested minimum window that the surviving candles cannot fill.

CRITICAL: All prices are converted to Decimal via ``str`` to avoid float noise.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from statistics import median
from typing import Any

from chartexam.exceptions import InsufficientCandlesError
from chartexam.logging import get_logger
from chartexam.models import Candle

logger = get_logger(__name__)

_HIGH_KEYS = ("high", "h", "High")
_LOW_KEYS = ("low", "l", "Low")
_OPEN_KEYS = ("open", "o", "Open")
_CLOSE_KEYS = ("close", "c", "Close")
_VOLUME_KEYS = ("volume", "v", "Volume")
_TIME_KEYS = ("time", "t", "timestamp", "date", "Time")

#: Epoch values above this are treated as milliseconds.
_MILLISECOND_CUTOFF = 100_000_000_000

#: Median candle spacing (seconds) upper bounds for timeframe inference.
_TIMEFRAME_BOUNDS: tuple[tuple[int, str], ...] = (
    (2 * 3600, "1h"),
    (6 * 3600, "4h"),
    (2 * 86400, "1day"),
)


def _first_present(record: Mapping[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def to_price(value: Any) -> Decimal | None:
    """Convert a raw numeric value to a finite Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite():
        return None
    return price


def to_epoch_seconds(value: Any) -> int | None:
    """Convert an int/float/numeric-string/ISO timestamp to epoch seconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())
    if isinstance(value, str):
        numeric = to_price(value)
        if numeric is None:
            try:
                dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                return None
            return to_epoch_seconds(dt)
        value = numeric
    seconds = to_price(value)
    if seconds is None:
        return None
    if abs(seconds) > _MILLISECOND_CUTOFF:
        seconds = seconds / 1000
    return int(seconds)


def _parse_record(record: Any, index: int) -> Candle | None:
    if not isinstance(record, Mapping):
        return None

    high = to_price(_first_present(record, _HIGH_KEYS))
    low = to_price(_first_present(record, _LOW_KEYS))
    time = to_epoch_seconds(_first_present(record, _TIME_KEYS))
    if high is None or low is None or time is None or high < low:
        return None

    open_ = to_price(_first_present(record, _OPEN_KEYS))
    close = to_price(_first_present(record, _CLOSE_KEYS))
    volume = to_price(_first_present(record, _VOLUME_KEYS))

    return Candle(
        time=time,
        open=low if open_ is None else open_,
        high=high,
        low=low,
        close=high if close is None else close,
        volume=volume,
        index=index,
    )


def normalize_candles(records: Iterable[Any] | None, min_count: int = 0) -> list[Candle]:
    """Canonicalize raw candle records into a time-ordered list of Candle.

    Rows that are not mappings, lack a parseable high/low/time, hold NaN or
    infinite values, or have ``high < low`` are dropped. Rows sharing a
    timestamp with an earlier row are dropped so time is strictly increasing.

    Args:
        records: Raw candle-like records (dicts) in any supported field format.
        min_count: Minimum number of valid candles required. 0 disables the check.

    Returns:
        Candles sorted by time, each carrying its original input index.

    Raises:
        InsufficientCandlesError: If fewer than ``min_count`` candles survive.
    """
    parsed: list[Candle] = []
    dropped = 0
    for index, record in enumerate(records or ()):
        candle = _parse_record(record, index)
        if candle is None:
            dropped += 1
            continue
        parsed.append(candle)

    parsed.sort(key=lambda c: (c.time, c.index))

    candles: list[Candle] = []
    for candle in parsed:
        if candles and candle.time <= candles[-1].time:
            dropped += 1
            continue
        candles.append(candle)

    if dropped:
        logger.debug("candles_dropped", dropped=dropped, kept=len(candles))

    if len(candles) < min_count:
        raise InsufficientCandlesError(required=min_count, available=len(candles))

    return candles


def price_range(candles: Sequence[Candle]) -> Decimal:
    """Highest high minus lowest low over the series (0 for an empty series)."""
    if not candles:
        return Decimal("0")
    return max(c.high for c in candles) - min(c.low for c in candles)


def infer_timeframe(candles: Sequence[Candle], default: str = "1day") -> str:
    """Guess the chart timeframe key from the median spacing between candles."""
    if len(candles) < 2:
        return default

    spacings = [b.time - a.time for a, b in zip(candles, candles[1:]) if b.time > a.time]
    if not spacings:
        return default

    spacing = median(spacings)
    for bound, timeframe in _TIMEFRAME_BOUNDS:
        if spacing < bound:
            return timeframe
    return "1week"
