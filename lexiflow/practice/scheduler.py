"""
Practice Scheduler - chooses what to practise next.

Words are drawn at random with a softmax-like bias toward words that have
been practised little or answered wrong often:

    score  = max(0, reviewCount - wrongCount)
    weight = exp(-score / T)

The word shown last is excluded from the next draw whenever another
candidate exists.
"""

import math
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

from ..config import Config
from ..models import Question, ReviewItem, Word
from ..services.vocabulary_service import ALL_CATEGORIES, VocabularyStore

T = TypeVar("T")


@dataclass
class Selection:
    """A word and the question to present for it."""
    word: Word
    question: Question
    review: Optional[ReviewItem]


def _filter_ids(category_filter: Optional[Iterable[str]]) -> Optional[set]:
    """Normalise a category filter; None means no filtering."""
    if category_filter is None:
        return None
    ids = set(category_filter)
    if not ids or ALL_CATEGORIES in ids:
        return None
    return ids


def candidate_words(words: Iterable[Word], category_filter: Optional[Iterable[str]] = None) -> List[Word]:
    """
    Words eligible for practice.

    Args:
        words: All words
        category_filter: Category ids, or None / ["all"] for every category

    Returns:
        Enabled words with at least one question that match the filter
    """
    ids = _filter_ids(category_filter)
    return [
        w for w in words
        if w.enabled and w.questions and (ids is None or ids.intersection(w.category_ids))
    ]


def priority_score(review: Optional[ReviewItem]) -> int:
    """Lower score means the word should come up sooner."""
    if review is None:
        return 0
    return max(0, review.review_count - review.wrong_count)


def selection_weights(scores: Sequence[float], temperature: float = Config.SELECTION_TEMPERATURE) -> List[float]:
    return [math.exp(-score / temperature) for score in scores]


def weighted_choice(items: Sequence[T], weights: Sequence[float], rng: random.Random) -> T:
    """
    Pick one item with probability proportional to its weight.

    Walks the cumulative weights with ``r`` uniform in [0, total); falls back
    to the last item if rounding lets the walk finish without a hit.
    """
    remainder = rng.random() * sum(weights)
    for item, weight in zip(items, weights):
        remainder -= weight
        if remainder < 0:
            return item
    return items[-1]


def select_word(
    words: Iterable[Word],
    reviews: Dict[str, ReviewItem],
    category_filter: Optional[Iterable[str]] = None,
    previous_id: Optional[str] = None,
    rng: Optional[random.Random] = None,
    temperature: float = Config.SELECTION_TEMPERATURE,
) -> Optional[Word]:
    """
    Draw the next word to practise.

    Args:
        words: All words
        reviews: Review records keyed by word id
        category_filter: Category ids, or None / ["all"] for every category
        previous_id: Id of the word shown last, excluded if others exist
        rng: Random source (module-level random if None)
        temperature: Softmax temperature; lower values favour low scores harder

    Returns:
        The chosen word, or None if no word is eligible
    """
    rng = rng or random.Random()
    candidates = candidate_words(words, category_filter)
    if not candidates:
        return None

    if len(candidates) > 1 and previous_id is not None:
        candidates = [w for w in candidates if w.id != previous_id] or candidates

    scores = [priority_score(reviews.get(w.id)) for w in candidates]
    return weighted_choice(candidates, selection_weights(scores, temperature), rng)


class PracticeScheduler:
    """
    Stateful selection over a VocabularyStore.

    Remembers the last word drawn so consecutive draws differ whenever
    possible. The random source is injectable so tests can force draws.
    """

    def __init__(
        self,
        store: VocabularyStore,
        rng: Optional[random.Random] = None,
        temperature: float = Config.SELECTION_TEMPERATURE,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.temperature = temperature
        self.previous_word_id: Optional[str] = None

    def select_next(self, category_filter: Optional[Iterable[str]] = None) -> Optional[Selection]:
        """
        Draw a word and one of its questions.

        Args:
            category_filter: Category ids to draw from; None uses the store's
                current selection

        Returns:
            The selection, or None when no word is eligible
        """
        if category_filter is None:
            category_filter = self.store.selected_category_ids

        word = select_word(
            self.store.words.values(),
            self.store.reviews,
            category_filter=category_filter,
            previous_id=self.previous_word_id,
            rng=self.rng,
            temperature=self.temperature,
        )
        if word is None:
            return None

        question = self.rng.choice(word.questions)
        self.previous_word_id = word.id
        return Selection(word=word, question=question, review=self.store.get_review(word.id))
