"""Shared data models for the chart exam grader.

CRITICAL: All price values use Decimal. Never use float for prices, sizes, or scores.
Times are integer epoch seconds.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any


class SwingKind(str, Enum):
    """Which side of the market a swing point marks."""

    HIGH = "high"
    LOW = "low"


class TrendDirection(str, Enum):
    """Direction of a Fibonacci retracement anchor pair."""

    UPTREND = "uptrend"
    DOWNTREND = "downtrend"


class GapKind(str, Enum):
    """Fair Value Gap polarity."""

    BULLISH = "bullish"
    BEARISH = "bearish"


class Tool(str, Enum):
    """Annotation tools a trader can be graded on."""

    SWINGS = "swings"
    FIBONACCI = "fibonacci"
    FVG = "fvg"


@dataclass(frozen=True)
class Candle:
    """A single normalized OHLC candle.

    ``index`` is the position of the source record in the caller's input,
    kept so detections can be traced back to the raw feed.
    """

    time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal | None = None
    index: int = 0


@dataclass(frozen=True)
class SwingPoint:
    """A confirmed local extremum."""

    time: int
    price: Decimal
    significance: Decimal  # excursion / series range, 0-1
    kind: SwingKind
    index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "price": self.price,
            "type": self.kind.value,
            "significance": self.significance,
        }


@dataclass(frozen=True)
class SwingPoints:
    """Swing highs and lows, each ordered by time."""

    highs: tuple[SwingPoint, ...] = ()
    lows: tuple[SwingPoint, ...] = ()

    def all(self) -> list[SwingPoint]:
        """Highs and lows merged in time order."""
        return sorted((*self.highs, *self.lows), key=lambda p: (p.time, p.kind.value))

    def of_kind(self, kind: SwingKind) -> tuple[SwingPoint, ...]:
        return self.highs if kind is SwingKind.HIGH else self.lows

    def __len__(self) -> int:
        return len(self.highs) + len(self.lows)


@dataclass(frozen=True)
class FibonacciRetracement:
    """Anchor pair for a retracement. start.time < end.time always holds."""

    start: SwingPoint
    end: SwingPoint
    direction: TrendDirection

    def to_dict(self) -> dict[str, Any]:
        return {
            "startTime": self.start.time,
            "startPrice": self.start.price,
            "endTime": self.end.time,
            "endPrice": self.end.price,
            "direction": self.direction.value,
        }


@dataclass(frozen=True)
class FibonacciLevel:
    """One rung of the retracement ladder."""

    ratio: Decimal
    label: str
    price: Decimal


@dataclass(frozen=True)
class FibonacciLevels:
    """Retracement ladder between two anchors."""

    direction: TrendDirection
    start_price: Decimal
    end_price: Decimal
    levels: tuple[FibonacciLevel, ...] = ()

    def price_at(self, ratio: Decimal) -> Decimal | None:
        for level in self.levels:
            if level.ratio == ratio:
                return level.price
        return None


@dataclass(frozen=True)
class FairValueGap:
    """Three-candle imbalance. top_price > bottom_price always holds."""

    start_time: int
    end_time: int
    top_price: Decimal
    bottom_price: Decimal
    kind: GapKind
    size: Decimal
    first_index: int = 0
    third_index: int = 0

    @property
    def mid_price(self) -> Decimal:
        return (self.top_price + self.bottom_price) / 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "topPrice": self.top_price,
            "bottomPrice": self.bottom_price,
            "type": self.kind.value,
            "size": self.size,
            "time": self.start_time,
        }


@dataclass
class ValidationResult:
    """Outcome of grading one submission.

    ``correct_answers`` holds plain dicts ready for JSON serialization;
    ``expected`` carries tool-specific extras such as the Fibonacci ladders.
    """

    score: Decimal
    total_expected_points: Decimal
    feedback: list[str] = field(default_factory=list)
    correct_answers: list[dict[str, Any]] = field(default_factory=list)
    message: str = ""
    expected: dict[str, Any] | None = None

    @property
    def percentage(self) -> int:
        """Whole-number percentage; 0 when nothing was expected."""
        if self.total_expected_points <= 0:
            return 0
        ratio = self.score / self.total_expected_points * 100
        return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
