"""Parsing of raw user drawings into typed annotations.

Front-end drawings arrive as loosely shaped JSON. Each tool has one parser that
turns a raw dict into a typed annotation or None; rejected drawings are
counted and excluded from scoring rather than failing the request.

A submission may instead be a "none found" claim: a drawing carrying one of the
sentinel flags and nothing else to score.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from chartexam.candles import to_epoch_seconds, to_price
from chartexam.logging import get_logger
from chartexam.models import GapKind, SwingKind, Tool, TrendDirection

logger = get_logger(__name__)

_NONE_FOUND_FLAGS = (
    "none_found",
    "no_swings_found",
    "no_fvgs_found",
    "no_fibonacci_found",
    "no_fibs_found",
)


@dataclass(frozen=True)
class ChartPoint:
    """A user-picked (time, price) location on the chart."""

    time: int
    price: Decimal


@dataclass(frozen=True)
class PointAnnotation:
    """A swing point marked by the user as a HIGH or a LOW."""

    point: ChartPoint
    kind: SwingKind


@dataclass(frozen=True)
class RetracementAnnotation:
    """A Fibonacci drawing from ``start`` to ``end``."""

    start: ChartPoint
    end: ChartPoint
    direction: TrendDirection


@dataclass(frozen=True)
class GapAnnotation:
    """An FVG rectangle, or a horizontal line when ``is_line`` is set.

    For lines ``top_price == bottom_price`` and ``line_time`` is where the line
    was placed.
    """

    top_price: Decimal
    bottom_price: Decimal
    kind: GapKind | None = None
    start_time: int | None = None
    end_time: int | None = None
    is_line: bool = False
    line_time: int | None = None

    @property
    def line_price(self) -> Decimal:
        return (self.top_price + self.bottom_price) / 2


@dataclass(frozen=True)
class NoneFoundClaim:
    """The user asserts the chart holds nothing to mark.

    ``scope`` optionally narrows the claim (a gap kind for FVGs, a trend
    direction for Fibonacci).
    """

    scope: str | None = None


@dataclass
class ParsedSubmission:
    """Typed drawings for one tool plus bookkeeping about rejected input."""

    annotations: list[Any] = field(default_factory=list)
    claim: NoneFoundClaim | None = None
    rejected: int = 0


def _enum_or_none(enum_cls: type, value: Any) -> Any:
    if value is None:
        return None
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        return None


def _chart_point(raw: Any) -> ChartPoint | None:
    if not isinstance(raw, Mapping):
        return None
    time = to_epoch_seconds(raw.get("time"))
    price = to_price(raw.get("price"))
    if time is None or price is None:
        return None
    return ChartPoint(time=time, price=price)


def parse_point(raw: Mapping[str, Any]) -> PointAnnotation | None:
    point = _chart_point(raw)
    kind = _enum_or_none(SwingKind, raw.get("type"))
    if point is None or kind is None:
        return None
    return PointAnnotation(point=point, kind=kind)


def parse_retracement(raw: Mapping[str, Any]) -> RetracementAnnotation | None:
    start = _chart_point(raw.get("start"))
    end = _chart_point(raw.get("end"))
    if start is None or end is None or start.price == end.price:
        return None

    direction = _enum_or_none(TrendDirection, raw.get("direction"))
    if direction is None:
        direction = TrendDirection.UPTREND if end.price > start.price else TrendDirection.DOWNTREND
    return RetracementAnnotation(start=start, end=end, direction=direction)


def parse_gap(raw: Mapping[str, Any]) -> GapAnnotation | None:
    kind = _enum_or_none(GapKind, raw.get("type"))
    start_time = to_epoch_seconds(raw.get("startTime"))
    end_time = to_epoch_seconds(raw.get("endTime"))
    if start_time is not None and end_time is not None and end_time < start_time:
        start_time, end_time = end_time, start_time

    top = to_price(raw.get("topPrice"))
    bottom = to_price(raw.get("bottomPrice"))

    if top is None and bottom is None:
        # bare horizontal line: {"drawingType": "hline", "price": ..., "time": ...}
        price = to_price(raw.get("price"))
        if price is None:
            return None
        top = bottom = price
    elif top is None or bottom is None:
        return None

    if top < bottom:
        top, bottom = bottom, top

    is_line = raw.get("drawingType") == "hline" or top == bottom
    line_time = to_epoch_seconds(raw.get("time")) if is_line else None
    if is_line and line_time is None:
        line_time = start_time

    return GapAnnotation(
        top_price=top,
        bottom_price=bottom,
        kind=kind,
        start_time=start_time,
        end_time=end_time,
        is_line=is_line,
        line_time=line_time,
    )


_PARSERS: dict[Tool, Callable[[Mapping[str, Any]], Any]] = {
    Tool.SWINGS: parse_point,
    Tool.FIBONACCI: parse_retracement,
    Tool.FVG: parse_gap,
}


def _is_claim(raw: Mapping[str, Any]) -> bool:
    return any(bool(raw.get(flag)) for flag in _NONE_FOUND_FLAGS)


def parse_submission(tool: Tool, drawings: Iterable[Any] | None) -> ParsedSubmission:
    """Split raw drawings into typed annotations and an optional none-found claim.

    The claim only stands when no geometric drawing survived parsing; a mixed
    submission is graded on its geometry.
    """
    parser = _PARSERS[tool]
    submission = ParsedSubmission()
    claim: NoneFoundClaim | None = None

    for raw in drawings or ():
        if not isinstance(raw, Mapping):
            submission.rejected += 1
            continue
        if _is_claim(raw):
            scope = raw.get("type") or raw.get("direction")
            claim = NoneFoundClaim(scope=str(scope).lower() if scope else None)
            continue
        annotation = parser(raw)
        if annotation is None:
            submission.rejected += 1
            continue
        submission.annotations.append(annotation)

    if claim is not None and not submission.annotations:
        submission.claim = claim

    if submission.rejected:
        logger.debug("drawings_rejected", tool=tool.value, rejected=submission.rejected)
    return submission
