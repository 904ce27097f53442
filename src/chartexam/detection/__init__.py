"""Ground-truth detectors for the chart exam.

Swing points, Fibonacci retracement anchors and Fair Value Gaps computed from
normalized candles. Every detector is pure and returns empty results rather
than raising on short or flat data.
"""

from chartexam.detection.fibonacci import (
    FIBONACCI_RATIOS,
    calculate_fibonacci_levels,
    get_fibonacci_retracement,
    select_retracement,
)
from chartexam.detection.fvg import (
    adaptive_min_gap_percent,
    check_fvg_filled,
    detect_fair_value_gaps,
    find_fill_time,
    min_gap_percent_for,
)
from chartexam.detection.swings import (
    detect_swing_points,
    detect_with_settings,
    select_distributed,
    swing_profile,
)

__all__ = [
    "FIBONACCI_RATIOS",
    "adaptive_min_gap_percent",
    "calculate_fibonacci_levels",
    "check_fvg_filled",
    "detect_fair_value_gaps",
    "detect_swing_points",
    "detect_with_settings",
    "find_fill_time",
    "get_fibonacci_retracement",
    "min_gap_percent_for",
    "select_distributed",
    "select_retracement",
    "swing_profile",
]
