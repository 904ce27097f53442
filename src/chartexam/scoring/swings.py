"""Swing point grading: one point of credit per ground-truth swing found."""

from collections.abc import Callable, Sequence
from decimal import Decimal

from chartexam.config import TimeframeTolerance
from chartexam.models import SwingPoint, SwingPoints, ValidationResult
from chartexam.scoring.annotations import NoneFoundClaim, PointAnnotation
from chartexam.scoring.matching import greedy_match, within_tolerance


def _point_matcher(tolerance: TimeframeTolerance) -> Callable[[PointAnnotation, SwingPoint], bool | None]:
    def match(user: PointAnnotation, truth: SwingPoint) -> bool | None:
        if user.kind is not truth.kind:
            return None
        if within_tolerance(user.point.time, user.point.price, truth.time, truth.price, tolerance):
            return True
        return None

    return match


def score_swing_claim(claim: NoneFoundClaim, swings: SwingPoints) -> ValidationResult:
    """Grade a "no swings here" claim against the detected swings."""
    truth = swings.all()
    if not truth:
        return ValidationResult(
            score=Decimal("1"),
            total_expected_points=Decimal("1"),
            feedback=["✓ Correctly identified that no swing points exist"],
            message="Correct! No swing points found in this chart.",
        )
    return ValidationResult(
        score=Decimal("0"),
        total_expected_points=Decimal(len(truth)),
        feedback=[f"✗ Actually found {len(truth)} swing points"],
        message=f"Incorrect. There are {len(truth)} swing points in this chart.",
        correct_answers=[p.to_dict() for p in truth],
    )


def score_swings(
    annotations: Sequence[PointAnnotation],
    swings: SwingPoints,
    tolerance: TimeframeTolerance,
) -> ValidationResult:
    """Match user swing points against detected swings of the same kind.

    Each correct point earns one point; ground-truth swings nobody marked and
    user points with no counterpart each get their own feedback line.
    """
    truth = swings.all()
    outcome = greedy_match(annotations, truth, _point_matcher(tolerance))

    feedback: list[str] = []
    matched_users = {id(user): swing for user, swing, _ in outcome.pairs}
    for user in annotations:
        swing = matched_users.get(id(user))
        if swing is not None:
            feedback.append(f"✓ Correctly identified {swing.kind.value} at {swing.price:.2f}")
        else:
            feedback.append(f"✗ No {user.kind.value} found near price {user.point.price:.2f}")
    for swing in outcome.unmatched_truth:
        feedback.append(f"⚠ Missed {swing.kind.value} at {swing.price:.2f}")

    if truth:
        message = f"You correctly identified {outcome.matched} out of {len(truth)} swing points"
    else:
        message = "No swing patterns detected in this chart."

    return ValidationResult(
        score=Decimal(outcome.matched),
        total_expected_points=Decimal(len(truth)),
        feedback=feedback,
        message=message,
        correct_answers=[p.to_dict() for p in truth],
    )
