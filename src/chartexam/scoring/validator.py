"""Top-level grading entry point (ValidationScorer).

``validate`` is the single call the HTTP layer makes:

1. Resolve the tool and timeframe (inferred from candle spacing when absent)
2. Parse the raw drawings, dropping malformed ones
3. Detect the ground truth for the tool
4. Settle a "none found" claim before any geometric matching
5. Otherwise match and score the drawings with the timeframe tolerance

Graceful degradation: an empty or too-short chart produces empty ground truth,
which is graded like any other answer key (0% with a "no patterns" message).
"""

from collections.abc import Iterable, Sequence
from typing import Any

from chartexam.candles import infer_timeframe
from chartexam.config import AppSettings, TimeframeTolerance
from chartexam.detection.fibonacci import get_fibonacci_retracement
from chartexam.detection.fvg import detect_fair_value_gaps
from chartexam.detection.swings import detect_swing_points, detect_with_settings, swing_profile
from chartexam.exceptions import UnknownToolError
from chartexam.logging import get_logger
from chartexam.models import Candle, GapKind, Tool, TrendDirection, ValidationResult
from chartexam.scoring.annotations import ParsedSubmission, parse_submission
from chartexam.scoring.fibonacci import score_fibonacci, score_fibonacci_claim, swing_checker_from
from chartexam.scoring.fvg import score_fvg, score_fvg_claim
from chartexam.scoring.swings import score_swing_claim, score_swings

logger = get_logger(__name__)

_DIRECTIONS_BY_PART: dict[int | None, tuple[TrendDirection, ...]] = {
    None: (TrendDirection.UPTREND, TrendDirection.DOWNTREND),
    1: (TrendDirection.UPTREND,),
    2: (TrendDirection.DOWNTREND,),
}

_GAP_KINDS_BY_PART: dict[int | None, tuple[GapKind, ...]] = {
    None: (GapKind.BULLISH, GapKind.BEARISH),
    1: (GapKind.BULLISH,),
    2: (GapKind.BEARISH,),
}


def resolve_tool(tool: str | Tool) -> Tool:
    try:
        return Tool(tool)
    except ValueError as exc:
        raise UnknownToolError(f"unknown tool {tool!r}") from exc


def _validate_swings(
    submission: ParsedSubmission,
    candles: Sequence[Candle],
    timeframe: str,
    tolerance: TimeframeTolerance,
    settings: AppSettings,
) -> ValidationResult:
    profile = swing_profile(timeframe, fallback=settings.swing)
    swings = detect_with_settings(candles, profile)
    if submission.claim is not None:
        return score_swing_claim(submission.claim, swings)
    return score_swings(submission.annotations, swings, tolerance)


def _validate_fibonacci(
    submission: ParsedSubmission,
    candles: Sequence[Candle],
    timeframe: str,
    tolerance: TimeframeTolerance,
    settings: AppSettings,
    part: int | None,
) -> ValidationResult:
    expected = {
        direction: get_fibonacci_retracement(candles, direction, settings.fibonacci)
        for direction in _DIRECTIONS_BY_PART.get(part, _DIRECTIONS_BY_PART[None])
    }
    if submission.claim is not None:
        return score_fibonacci_claim(submission.claim, expected)

    # any real swing of the right kind earns plausible-swing credit, not just the top few
    profile = swing_profile(timeframe, fallback=settings.swing)
    all_swings = detect_swing_points(
        candles,
        lookback=profile.lookback,
        min_significance=profile.min_significance,
        max_count=None,
    )
    checker = swing_checker_from(all_swings, tolerance)
    return score_fibonacci(submission.annotations, expected, tolerance, checker, settings.fibonacci)


def _validate_fvg(
    submission: ParsedSubmission,
    candles: Sequence[Candle],
    timeframe: str,
    tolerance: TimeframeTolerance,
    settings: AppSettings,
    part: int | None,
) -> ValidationResult:
    gaps = {
        kind: detect_fair_value_gaps(candles, kind, timeframe=timeframe, settings=settings.fvg)
        for kind in _GAP_KINDS_BY_PART.get(part, _GAP_KINDS_BY_PART[None])
    }
    if submission.claim is not None:
        return score_fvg_claim(submission.claim, gaps, candles)
    return score_fvg(submission.annotations, gaps, candles, tolerance, settings.fvg)


def validate(
    tool: str | Tool,
    drawings: Iterable[Any] | None,
    candles: Sequence[Candle],
    timeframe: str | None = None,
    part: int | None = None,
    settings: AppSettings | None = None,
) -> ValidationResult:
    """Grade one submission against ground truth detected from ``candles``.

    Args:
        tool: "swings", "fibonacci" or "fvg".
        drawings: Raw drawing dicts as sent by the client.
        candles: Normalized candles (see ``chartexam.candles.normalize_candles``).
        timeframe: Timeframe key; inferred from the candles when None.
        part: Exam part; 1 restricts to uptrend/bullish, 2 to downtrend/bearish.
        settings: Application settings; defaults apply when omitted.

    Raises:
        UnknownToolError: If ``tool`` is not a supported annotation tool.
    """
    settings = settings or AppSettings()
    resolved = resolve_tool(tool)
    timeframe = timeframe or infer_timeframe(candles, default=settings.tolerance.default_timeframe)
    tolerance = settings.tolerance_table().for_timeframe(timeframe)
    submission = parse_submission(resolved, drawings)

    if resolved is Tool.SWINGS:
        result = _validate_swings(submission, candles, timeframe, tolerance, settings)
    elif resolved is Tool.FIBONACCI:
        result = _validate_fibonacci(submission, candles, timeframe, tolerance, settings, part)
    else:
        result = _validate_fvg(submission, candles, timeframe, tolerance, settings, part)

    logger.info(
        "validation_completed",
        tool=resolved.value,
        timeframe=timeframe,
        part=part,
        candle_count=len(candles),
        drawings=len(submission.annotations),
        rejected_drawings=submission.rejected,
        none_found_claim=submission.claim is not None,
        score=str(result.score),
        total=str(result.total_expected_points),
        percentage=result.percentage,
    )
    return result
