"""Custom exceptions for the chart exam grader.

Detectors degrade gracefully instead of raising; these exceptions mark the
few places where a request cannot be graded at all.
"""


class GraderError(Exception):
    """Base exception for all grader errors."""


class InvalidRequestError(GraderError):
    """Raised when a grading request is missing required fields or has wrong types."""


class UnknownToolError(InvalidRequestError):
    """Raised when the requested annotation tool is not one of swings/fibonacci/fvg."""


class InsufficientCandlesError(GraderError):
    """Raised when fewer valid candles remain than a detection window requires."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"need at least {required} valid candles, got {available}")
        self.required = required
        self.available = available


class AuthenticationError(GraderError):
    """Raised when a bearer token is presented but cannot be verified."""
