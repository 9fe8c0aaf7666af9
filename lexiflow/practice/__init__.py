"""Practice: word selection, interval scheduling and answer sessions."""

from .scheduler import PracticeScheduler, Selection, candidate_words, priority_score, select_word
from .session import AttemptState, PracticeAttempt, PracticeSession, PracticeStateError, SessionStatus
from .srs import calculate_next_review, next_interval

__all__ = [
    'PracticeScheduler',
    'Selection',
    'candidate_words',
    'priority_score',
    'select_word',
    'AttemptState',
    'PracticeAttempt',
    'PracticeSession',
    'PracticeStateError',
    'SessionStatus',
    'calculate_next_review',
    'next_interval',
]
