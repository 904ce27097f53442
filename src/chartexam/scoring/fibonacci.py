"""Fibonacci retracement grading with continuous partial credit.

Each expected direction is worth 100 points, 50 per anchor. An anchor earns:

- full credit inside ``tight_factor`` of both tolerances,
- a linear 50 -> 25 slide between the tight window and the tolerance edge,
- a flat plausible-swing credit when it misses the expected anchor but still
  sits on a real swing of the right kind,
- nothing otherwise.

CRITICAL: All computations use Decimal. Never use float for scores.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from chartexam.config import FibonacciSettings, TimeframeTolerance
from chartexam.detection.fibonacci import calculate_fibonacci_levels, levels_to_dicts
from chartexam.models import (
    FibonacciRetracement,
    SwingKind,
    SwingPoint,
    SwingPoints,
    TrendDirection,
    ValidationResult,
)
from chartexam.scoring.annotations import ChartPoint, NoneFoundClaim, RetracementAnnotation
from chartexam.scoring.matching import tolerance_ratios, within_tolerance

#: Decides whether a missed anchor still lands on a genuine swing of a kind.
SwingChecker = Callable[[ChartPoint, SwingKind], bool]

_POINTS_QUANTUM = Decimal("0.01")
_POINTS_PER_DIRECTION = Decimal("100")


class EndpointGrade(str, Enum):
    PERFECT = "perfect"
    CLOSE = "close"
    PLAUSIBLE = "plausible"
    MISSED = "missed"


@dataclass(frozen=True)
class EndpointScore:
    points: Decimal
    grade: EndpointGrade


def swing_checker_from(swings: SwingPoints, tolerance: TimeframeTolerance) -> SwingChecker:
    """Build a checker accepting points within tolerance of a detected swing of the asked kind."""

    def check(point: ChartPoint, kind: SwingKind) -> bool:
        return any(
            within_tolerance(point.time, point.price, swing.time, swing.price, tolerance)
            for swing in swings.of_kind(kind)
        )

    return check


def score_endpoint(
    user: ChartPoint,
    expected: SwingPoint,
    tolerance: TimeframeTolerance,
    plausible: Callable[[], bool],
    settings: FibonacciSettings,
) -> EndpointScore:
    """Score one anchor. ``plausible`` is only consulted when the anchor misses."""
    ratios = tolerance_ratios(user.time, user.price, expected.time, expected.price, tolerance)
    worst = max(ratios) if ratios is not None else None

    if worst is not None and worst <= settings.tight_factor:
        return EndpointScore(settings.endpoint_points, EndpointGrade.PERFECT)

    if worst is not None and worst <= 1:
        span = settings.endpoint_points - settings.near_miss_floor
        slide = (1 - worst) / (1 - settings.tight_factor)
        points = (settings.near_miss_floor + span * slide).quantize(_POINTS_QUANTUM)
        return EndpointScore(points, EndpointGrade.CLOSE)

    if plausible():
        return EndpointScore(settings.plausible_swing_points, EndpointGrade.PLAUSIBLE)
    return EndpointScore(Decimal("0"), EndpointGrade.MISSED)


def _endpoint_feedback(label: str, score: EndpointScore, settings: FibonacciSettings) -> str:
    if score.grade is EndpointGrade.PERFECT:
        return f"✓ Perfect {label.lower()} point!"
    if score.grade is EndpointGrade.CLOSE:
        accuracy = round(score.points / settings.endpoint_points * 100)
        return f"✓ Good {label.lower()} point ({accuracy}% accurate)"
    if score.grade is EndpointGrade.PLAUSIBLE:
        return f"⚠ {label} is a valid swing but not optimal"
    return f"✗ {label} point not a valid swing"


def _anchor_kinds(direction: TrendDirection) -> tuple[SwingKind, SwingKind]:
    if direction is TrendDirection.UPTREND:
        return SwingKind.LOW, SwingKind.HIGH
    return SwingKind.HIGH, SwingKind.LOW


def score_retracement(
    drawing: RetracementAnnotation,
    expected: FibonacciRetracement,
    tolerance: TimeframeTolerance,
    checker: SwingChecker,
    settings: FibonacciSettings,
) -> tuple[EndpointScore, EndpointScore]:
    """Score both anchors of one drawing against the expected retracement."""
    start_kind, end_kind = _anchor_kinds(expected.direction)
    start = score_endpoint(
        drawing.start, expected.start, tolerance, lambda: checker(drawing.start, start_kind), settings
    )
    end = score_endpoint(
        drawing.end, expected.end, tolerance, lambda: checker(drawing.end, end_kind), settings
    )
    return start, end


def expected_payload(expected: Mapping[TrendDirection, FibonacciRetracement | None]) -> dict:
    """Anchors and level ladders per direction; missing anchors use the zero sentinel."""
    payload: dict = {}
    for direction, retracement in expected.items():
        if retracement is None:
            payload[direction.value] = {
                "start": {"time": 0, "price": 0},
                "end": {"time": 0, "price": 0},
                "direction": direction.value,
                "levels": [],
            }
            continue
        payload[direction.value] = {
            "start": {"time": retracement.start.time, "price": retracement.start.price},
            "end": {"time": retracement.end.time, "price": retracement.end.price},
            "direction": direction.value,
            "levels": levels_to_dicts(calculate_fibonacci_levels(retracement.start, retracement.end)),
        }
    return payload


def score_fibonacci_claim(
    claim: NoneFoundClaim,
    expected: Mapping[TrendDirection, FibonacciRetracement | None],
) -> ValidationResult:
    """Grade a "no retracement here" claim, optionally scoped to one direction.

    A scope naming a direction outside ``expected`` widens to every evaluated
    direction.
    """
    scope = claim.scope if claim.scope in {d.value for d in expected} else None
    present = [r for d, r in expected.items() if r is not None and scope in (None, d.value)]
    if not present:
        return ValidationResult(
            score=Decimal("1"),
            total_expected_points=Decimal("1"),
            feedback=["✓ Correctly identified that no Fibonacci retracements exist"],
            message="Correct! No clear trend to retrace in this chart.",
            expected=expected_payload(expected),
        )
    return ValidationResult(
        score=Decimal("0"),
        total_expected_points=Decimal(len(present)),
        feedback=[f"✗ Actually found {len(present)} Fibonacci retracement(s)"],
        message=f"Incorrect. There are {len(present)} Fibonacci retracement(s) in this chart.",
        correct_answers=[r.to_dict() for r in present],
        expected=expected_payload(expected),
    )


def score_fibonacci(
    drawings: Sequence[RetracementAnnotation],
    expected: Mapping[TrendDirection, FibonacciRetracement | None],
    tolerance: TimeframeTolerance,
    checker: SwingChecker,
    settings: FibonacciSettings,
) -> ValidationResult:
    """Grade the first drawing of each direction against that direction's anchors.

    Directions without an expected retracement are not scored and add nothing
    to the total.
    """
    score = Decimal("0")
    total = Decimal("0")
    feedback: list[str] = []
    correct_answers: list[dict] = []

    for direction, retracement in expected.items():
        if retracement is None:
            continue
        total += _POINTS_PER_DIRECTION
        correct_answers.append(retracement.to_dict())
        tag = f"[{direction.value.capitalize()}]"

        drawing = next((d for d in drawings if d.direction is direction), None)
        if drawing is None:
            feedback.append(f"⚠ Missed {direction.value} Fibonacci retracement")
            continue

        start, end = score_retracement(drawing, retracement, tolerance, checker, settings)
        raw = start.points + end.points
        score += raw
        feedback.append(f"{tag} {_endpoint_feedback('Start', start, settings)}")
        feedback.append(f"{tag} {_endpoint_feedback('End', end, settings)}")
        feedback.append(f"{tag} Overall accuracy: {round(raw)}%")

    if total == 0:
        return ValidationResult(
            score=Decimal("0"),
            total_expected_points=Decimal("0"),
            feedback=["No clear trends found for Fibonacci retracement"],
            message="No clear trend patterns detected in this chart",
            expected=expected_payload(expected),
        )

    return ValidationResult(
        score=score,
        total_expected_points=total,
        feedback=feedback,
        message=f"Fibonacci retracements: {score.normalize():f}/{total:f} points",
        correct_answers=correct_answers,
        expected=expected_payload(expected),
    )
