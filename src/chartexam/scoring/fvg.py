"""Fair Value Gap grading.

A rectangle matches a detected gap when both edges sit within the edge
tolerance, or failing that when the two price ranges overlap by at least the
overlap threshold of the smaller range. A horizontal line matches when it sits
near the gap midpoint and was placed inside the gap's time span. The path that
produced a match is kept so feedback can tell a precise drawing from a
roughly right one.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from enum import Enum

from chartexam.config import FvgSettings, TimeframeTolerance
from chartexam.detection.fvg import find_fill_time
from chartexam.models import Candle, FairValueGap, GapKind, ValidationResult
from chartexam.scoring.annotations import GapAnnotation, NoneFoundClaim
from chartexam.scoring.matching import greedy_match, relative_diff


class GapMatchPath(str, Enum):
    EDGES = "edges"
    OVERLAP = "overlap"
    LINE = "line"


def overlap_ratio(bottom_a: Decimal, top_a: Decimal, bottom_b: Decimal, top_b: Decimal) -> Decimal:
    """Overlap of two price ranges as a fraction of the smaller range."""
    overlap = min(top_a, top_b) - max(bottom_a, bottom_b)
    if overlap <= 0:
        return Decimal("0")
    smaller = min(top_a - bottom_a, top_b - bottom_b)
    if smaller <= 0:
        return Decimal("0")
    return overlap / smaller


def _within(value: Decimal, reference: Decimal, limit: Decimal) -> bool:
    diff = relative_diff(value, reference)
    return diff is not None and diff <= limit


def match_gap(
    drawing: GapAnnotation,
    gap: FairValueGap,
    tolerance: TimeframeTolerance,
    settings: FvgSettings,
) -> GapMatchPath | None:
    """Return how ``drawing`` matches ``gap``, or None."""
    if drawing.kind is not None and drawing.kind is not gap.kind:
        return None

    if drawing.is_line:
        if drawing.line_time is None:
            return None
        if not gap.start_time <= drawing.line_time <= gap.end_time:
            return None
        if _within(drawing.line_price, gap.mid_price, tolerance.price_pct):
            return GapMatchPath.LINE
        return None

    if _within(drawing.top_price, gap.top_price, settings.edge_tolerance) and _within(
        drawing.bottom_price, gap.bottom_price, settings.edge_tolerance
    ):
        return GapMatchPath.EDGES

    ratio = overlap_ratio(drawing.bottom_price, drawing.top_price, gap.bottom_price, gap.top_price)
    if ratio >= settings.overlap_threshold:
        return GapMatchPath.OVERLAP
    return None


def _range_label(bottom: Decimal, top: Decimal) -> str:
    return f"{bottom:.2f}-{top:.2f}"


def _matched_feedback(gap: FairValueGap, path: GapMatchPath) -> str:
    where = _range_label(gap.bottom_price, gap.top_price)
    if path is GapMatchPath.EDGES:
        return f"✓ Correctly identified {gap.kind.value} FVG at {where}"
    if path is GapMatchPath.OVERLAP:
        return f"✓ Identified {gap.kind.value} FVG at {where} (boundaries slightly off)"
    return f"✓ Horizontal line marks the {gap.kind.value} FVG at {where}"


def gap_answers(gaps: Sequence[FairValueGap], candles: Sequence[Candle]) -> list[dict]:
    """Serializable answer key entries, including whether each gap has since been filled."""
    answers = []
    for gap in gaps:
        filled_at = find_fill_time(gap, candles)
        entry = gap.to_dict()
        entry.update(
            gapTop=gap.top_price,
            gapBottom=gap.bottom_price,
            filled=filled_at is not None,
            filledAt=filled_at,
        )
        answers.append(entry)
    return answers


def score_fvg_claim(
    claim: NoneFoundClaim,
    gaps: Mapping[GapKind, Sequence[FairValueGap]],
    candles: Sequence[Candle],
) -> ValidationResult:
    """Grade a "no gaps here" claim, optionally scoped to bullish or bearish."""
    # scopes outside the evaluated kinds widen to all of them
    scope = claim.scope if claim.scope in {kind.value for kind in gaps} else None
    relevant = [g for kind, kind_gaps in gaps.items() for g in kind_gaps if scope in (None, kind.value)]
    label = f"{scope} " if scope else ""

    if not relevant:
        return ValidationResult(
            score=Decimal("1"),
            total_expected_points=Decimal("1"),
            feedback=[f"✓ Correctly identified that no {label}FVGs exist"],
            message=f"Correct! No {label}Fair Value Gaps found.",
        )
    return ValidationResult(
        score=Decimal("0"),
        total_expected_points=Decimal(len(relevant)),
        feedback=[f"✗ Actually found {len(relevant)} {label}FVGs"],
        message=f"Incorrect. There are {len(relevant)} {label}Fair Value Gaps.",
        correct_answers=gap_answers(relevant, candles),
    )


def score_fvg(
    drawings: Sequence[GapAnnotation],
    gaps: Mapping[GapKind, Sequence[FairValueGap]],
    candles: Sequence[Candle],
    tolerance: TimeframeTolerance,
    settings: FvgSettings,
) -> ValidationResult:
    """Match user rectangles and lines against detected gaps, one point per gap found."""
    truth = [g for kind_gaps in gaps.values() for g in kind_gaps]
    outcome = greedy_match(drawings, truth, lambda d, g: match_gap(d, g, tolerance, settings))

    feedback = [_matched_feedback(gap, path) for _, gap, path in outcome.pairs]
    for drawing in outcome.unmatched_user:
        kind = drawing.kind.value if drawing.kind else "fair value"
        feedback.append(
            f"✗ No {kind} gap near {_range_label(drawing.bottom_price, drawing.top_price)}"
        )
    for gap in outcome.unmatched_truth:
        feedback.append(
            f"⚠ Missed {gap.kind.value} FVG at {_range_label(gap.bottom_price, gap.top_price)}"
        )

    if truth:
        message = f"Identified {outcome.matched} out of {len(truth)} Fair Value Gaps"
    else:
        message = "No Fair Value Gap patterns detected in this chart."

    return ValidationResult(
        score=Decimal(outcome.matched),
        total_expected_points=Decimal(len(truth)),
        feedback=feedback,
        message=message,
        correct_answers=gap_answers(truth, candles),
    )
