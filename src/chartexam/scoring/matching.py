"""Tolerance checks and greedy first-eligible matching.

Matching is a left fold over the user's annotations that threads an immutable
set of already-claimed ground-truth indices. Each annotation claims the first
unclaimed truth item the predicate accepts, so the outcome depends only on the
order of the two input sequences.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from functools import reduce
from typing import Generic, TypeVar

from chartexam.config import TimeframeTolerance

U = TypeVar("U")
T = TypeVar("T")
R = TypeVar("R")

# (pairs so far, unmatched user items, claimed truth indices)
_FoldState = tuple[tuple[tuple[U, T, R], ...], tuple[U, ...], frozenset[int]]


def relative_diff(value: Decimal, reference: Decimal) -> Decimal | None:
    """``|value - reference| / |reference|``; None when the reference is zero."""
    if reference == 0:
        return Decimal("0") if value == 0 else None
    return abs(value - reference) / abs(reference)


def tolerance_ratios(
    time: int,
    price: Decimal,
    ref_time: int,
    ref_price: Decimal,
    tolerance: TimeframeTolerance,
) -> tuple[Decimal, Decimal] | None:
    """How much of the price and time tolerance a point uses up (1 = at the edge).

    Returns None when the reference price is zero and the ratio is undefined.
    """
    price_diff = relative_diff(price, ref_price)
    if price_diff is None:
        return None
    price_ratio = price_diff / tolerance.price_pct if tolerance.price_pct > 0 else (
        Decimal("0") if price_diff == 0 else Decimal("Infinity")
    )
    time_diff = Decimal(abs(time - ref_time))
    time_ratio = time_diff / tolerance.time_seconds if tolerance.time_seconds > 0 else (
        Decimal("0") if time_diff == 0 else Decimal("Infinity")
    )
    return price_ratio, time_ratio


def within_tolerance(
    time: int,
    price: Decimal,
    ref_time: int,
    ref_price: Decimal,
    tolerance: TimeframeTolerance,
) -> bool:
    """Fuzzy point equality: both price (relative) and time within the window."""
    ratios = tolerance_ratios(time, price, ref_time, ref_price, tolerance)
    return ratios is not None and max(ratios) <= 1


@dataclass(frozen=True)
class MatchOutcome(Generic[U, T, R]):
    """Result of a greedy matching pass.

    ``pairs`` keeps user order; ``unmatched_truth`` keeps truth order.
    """

    pairs: tuple[tuple[U, T, R], ...]
    unmatched_user: tuple[U, ...]
    unmatched_truth: tuple[T, ...]

    @property
    def matched(self) -> int:
        return len(self.pairs)


def greedy_match(
    user_items: Sequence[U],
    truth_items: Sequence[T],
    matcher: Callable[[U, T], R | None],
) -> MatchOutcome[U, T, R]:
    """Match each user item to the first unused truth item the matcher accepts.

    Args:
        user_items: Annotations in submission order.
        truth_items: Ground truth in canonical order.
        matcher: Returns a match detail (anything not None) when the pair matches.
    """

    def step(state: _FoldState[U, T, R], user_item: U) -> _FoldState[U, T, R]:
        pairs, unmatched, used = state
        for idx, truth_item in enumerate(truth_items):
            if idx in used:
                continue
            detail = matcher(user_item, truth_item)
            if detail is not None:
                return (*pairs, (user_item, truth_item, detail)), unmatched, used | {idx}
        return pairs, (*unmatched, user_item), used

    pairs, unmatched, used = reduce(step, user_items, ((), (), frozenset()))
    return MatchOutcome(
        pairs=pairs,
        unmatched_user=unmatched,
        unmatched_truth=tuple(t for idx, t in enumerate(truth_items) if idx not in used),
    )
