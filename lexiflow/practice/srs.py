"""Fixed-table spaced repetition."""

from typing import Optional, Union

from ..models import HistoryEntry, Outcome, ReviewItem
from ..utils.helpers import minutes_to_ms, now_ms

# Minutes until the next review
IMMEDIATE_FLOOR_MINUTES = 30
AFTER_HINT_MINUTES = 10
GIVE_UP_MINUTES = 5


def next_interval(interval: int, outcome: Outcome) -> int:
    """Interval in minutes that follows ``interval`` for an outcome."""
    if outcome == Outcome.CORRECT_IMMEDIATE:
        # Floor of 30 minutes, doubling once past it
        return max(IMMEDIATE_FLOOR_MINUTES, interval * 2)
    if outcome == Outcome.CORRECT_AFTER_HINT:
        return AFTER_HINT_MINUTES
    return GIVE_UP_MINUTES


def calculate_next_review(
    item: ReviewItem,
    outcome: Union[Outcome, str],
    now: Optional[int] = None,
) -> ReviewItem:
    """
    Apply one practice outcome to a review record.

    Args:
        item: Current review record (left untouched)
        outcome: Outcome member or its name
        now: Current time in epoch milliseconds (defaults to the wall clock)

    Returns:
        New review record with updated interval, due time, counters and history

    Raises:
        ValueError: If outcome is not a known outcome name
    """
    outcome = Outcome(outcome)
    now = now_ms() if now is None else now
    interval = next_interval(item.interval, outcome)

    wrong_count = item.wrong_count + 1 if outcome == Outcome.WRONG_GIVE_UP else item.wrong_count

    return item.copy(
        interval=interval,
        next_review=now + minutes_to_ms(interval),
        review_count=item.review_count + 1,
        wrong_count=wrong_count,
        history=[*item.history, HistoryEntry(date=now, outcome=outcome)],
    )
