"""Data models."""

from .vocabulary import (
    Category,
    EvaluationResult,
    EvaluationType,
    HistoryEntry,
    Outcome,
    Question,
    QuestionData,
    ReviewItem,
    Word,
    WordData,
)

__all__ = [
    'Category',
    'EvaluationResult',
    'EvaluationType',
    'HistoryEntry',
    'Outcome',
    'Question',
    'QuestionData',
    'ReviewItem',
    'Word',
    'WordData',
]
