"""Data models for LexiFlow.

Each entity converts to and from the camelCase dict shape used by the
persisted state document and by import/export files.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.helpers import new_id, now_ms


class Outcome(str, Enum):
    """Result of a single practice attempt."""
    CORRECT_IMMEDIATE = "CORRECT_IMMEDIATE"
    CORRECT_AFTER_HINT = "CORRECT_AFTER_HINT"
    WRONG_GIVE_UP = "WRONG_GIVE_UP"


class EvaluationType(str, Enum):
    """Classification returned by answer evaluation."""
    CORRECT = "CORRECT"
    TYPO = "TYPO"
    WRONG_MEANING = "WRONG_MEANING"
    UNRELATED = "UNRELATED"
    CLOSE_SYNONYM = "CLOSE_SYNONYM"


@dataclass
class Question:
    """A practice sentence with its translation and cloze."""

    sentence: str
    translation: str
    cloze: str
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sentence": self.sentence,
            "translation": self.translation,
            "cloze": self.cloze,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        return cls(
            id=data.get("id") or new_id(),
            sentence=data.get("sentence", ""),
            translation=data.get("translation", ""),
            cloze=data.get("cloze", ""),
        )


@dataclass
class Word:
    """A vocabulary entry and its embedded questions."""

    id: str
    original: str
    word_translation: str = ""
    questions: List[Question] = field(default_factory=list)
    enabled: bool = True
    added_at: int = 0
    category_ids: List[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        original: str,
        word_translation: str = "",
        questions: Optional[List[Question]] = None,
        category_ids: Optional[List[str]] = None,
        added_at: Optional[int] = None,
    ) -> "Word":
        """Build a new enabled word with a fresh id."""
        return cls(
            id=new_id(),
            original=original,
            word_translation=word_translation,
            questions=list(questions or []),
            enabled=True,
            added_at=now_ms() if added_at is None else added_at,
            category_ids=list(category_ids or []),
        )

    def copy(self, **changes: Any) -> "Word":
        """Copy with its own question and category lists."""
        changes.setdefault("questions", [replace(q) for q in self.questions])
        changes.setdefault("category_ids", list(self.category_ids))
        return replace(self, **changes)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "original": self.original,
            "wordTranslation": self.word_translation,
            "questions": [q.to_dict() for q in self.questions],
            "enabled": self.enabled,
            "addedAt": self.added_at,
            "categoryIds": list(self.category_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Word":
        return cls(
            id=data["id"],
            original=data.get("original", ""),
            word_translation=data.get("wordTranslation", ""),
            questions=[Question.from_dict(q) for q in data.get("questions") or []],
            enabled=bool(data.get("enabled", True)),
            added_at=int(data.get("addedAt") or 0),
            category_ids=list(data.get("categoryIds") or []),
        )


@dataclass
class Category:
    id: str
    name: str
    created_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "createdAt": self.created_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            created_at=int(data.get("createdAt") or 0),
        )


@dataclass
class HistoryEntry:
    date: int
    outcome: Outcome

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "outcome": self.outcome.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(date=int(data.get("date") or 0), outcome=Outcome(data["outcome"]))


@dataclass
class ReviewItem:
    """Spaced-repetition record of one word.

    ``interval`` is in minutes, ``next_review`` in epoch milliseconds.
    """

    word_id: str
    next_review: int
    interval: int = 0
    review_count: int = 0
    wrong_count: int = 0
    history: List[HistoryEntry] = field(default_factory=list)

    @classmethod
    def fresh(cls, word_id: str, now: int) -> "ReviewItem":
        """A never-reviewed item, due immediately."""
        return cls(word_id=word_id, next_review=now)

    def copy(self, **changes: Any) -> "ReviewItem":
        changes.setdefault("history", list(self.history))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wordId": self.word_id,
            "nextReview": self.next_review,
            "interval": self.interval,
            "reviewCount": self.review_count,
            "wrongCount": self.wrong_count,
            "history": [h.to_dict() for h in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewItem":
        return cls(
            word_id=data["wordId"],
            next_review=int(data.get("nextReview") or 0),
            interval=int(data.get("interval") or 0),
            review_count=int(data.get("reviewCount") or 0),
            wrong_count=int(data.get("wrongCount") or 0),
            history=[HistoryEntry.from_dict(h) for h in data.get("history") or []],
        )


@dataclass
class QuestionData:
    """Generated question content, before it gets an id."""
    sentence: str
    translation: str
    cloze: str

    def to_question(self) -> Question:
        return Question(sentence=self.sentence, translation=self.translation, cloze=self.cloze)


@dataclass
class WordData:
    """Generated word content returned by an enricher."""
    original: str
    word_translation: str
    questions: List[QuestionData] = field(default_factory=list)


@dataclass
class EvaluationResult:
    is_correct: bool
    type: EvaluationType
    feedback: str = ""
