"""Tolerance matching and partial-credit scoring of user chart annotations."""

from chartexam.scoring.annotations import parse_submission
from chartexam.scoring.matching import greedy_match, relative_diff, within_tolerance
from chartexam.scoring.validator import validate

__all__ = [
    "greedy_match",
    "parse_submission",
    "relative_diff",
    "validate",
    "within_tolerance",
]
