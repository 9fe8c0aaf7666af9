"""
Vocabulary Store - single source of truth for the learning state.

Holds words, questions, categories, review records, the enrichment queue,
the category selection and the user settings. Every mutation is
synchronous and atomic: the new value is built completely before it
replaces the old one, so a failure leaves the last valid state in place.
Operations that target a missing id are no-ops.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from ..config import Config, SettingsManager
from ..models import Category, Question, ReviewItem, Word
from ..utils.helpers import new_id, now_ms
from .repository import BaseRepository, migrate_state

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"

ChangeCallback = Callable[[FrozenSet[str]], None]

# State keys reported to change listeners
WORDS = "words"
REVIEWS = "reviews"
CATEGORIES = "categories"
CATEGORY_ORDER = "categoryOrder"
SELECTION = "selectedCategoryIds"
SETTINGS = "settings"
PENDING = "processingQueue"
ACTIVE = "activeQueue"


class VocabularyStore:
    """
    In-memory vocabulary state with optional persistence.

    Constructed once per process and passed to the queue controller and the
    practice scheduler.

    Usage:
        store = VocabularyStore(JSONStateRepository("state.json"))
        store.load()
        store.add_to_queue(["serendipity"])
        ...
        store.close()
    """

    def __init__(
        self,
        repository: Optional[BaseRepository] = None,
        settings: Optional[SettingsManager] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the store.

        Args:
            repository: Where state is loaded from and saved to (None = memory only)
            settings: User settings (defaults plus environment if None)
            clock: Returns the current time in epoch milliseconds
        """
        self._repository = repository
        self._settings = settings or SettingsManager()
        self._clock = clock or now_ms

        self._words: Dict[str, Word] = {}
        self._reviews: Dict[str, ReviewItem] = {}
        self._categories: Dict[str, Category] = {}
        self._category_order: List[str] = []
        self._selected_category_ids: List[str] = [ALL_CATEGORIES]
        self._processing_queue: List[str] = []
        self._active_queue: List[str] = []

        self._dirty: bool = False
        self._change_callbacks: List[ChangeCallback] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def now(self) -> int:
        return self._clock()

    @property
    def has_unsaved_changes(self) -> bool:
        """Check for unsaved changes."""
        return self._dirty

    def on_change(self, callback: ChangeCallback) -> None:
        """
        Register a callback for state changes.

        Args:
            callback: Called with the set of changed state keys
        """
        self._change_callbacks.append(callback)

    def remove_listener(self, callback: ChangeCallback) -> None:
        if callback in self._change_callbacks:
            self._change_callbacks.remove(callback)

    def _commit(self, *changed: str) -> None:
        """Mark state dirty and notify listeners of the changed keys."""
        self._dirty = True
        self._notify(*changed)

    def _notify(self, *changed: str) -> None:
        keys = frozenset(changed)
        for callback in list(self._change_callbacks):
            try:
                callback(keys)
            except Exception:
                logger.exception("State change listener failed")

    def load(self) -> bool:
        """
        Load state from the repository.

        Entries that were in flight when the state was saved go back to the
        head of the pending queue, since no call survives a restart.

        Returns:
            True if a stored state was loaded
        """
        if self._repository is None:
            return False

        raw = self._repository.load()
        if raw is None:
            return False

        try:
            state = migrate_state(raw)
            words = {wid: Word.from_dict(w) for wid, w in state["words"].items()}
            reviews = {wid: ReviewItem.from_dict(r) for wid, r in state["reviews"].items()}
            categories = {cid: Category.from_dict(c) for cid, c in state["categories"].items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error("Stored state is malformed, starting empty: %s", e)
            return False

        for word_id in words:
            if word_id not in reviews:
                reviews[word_id] = ReviewItem.fresh(word_id, self.now())
        reviews = {wid: r for wid, r in reviews.items() if wid in words}

        # Blank stored values don't mask environment settings (e.g. an exported apiKey)
        stored_settings = {k: v for k, v in (state.get("settings") or {}).items() if v not in ("", None)}
        try:
            self._settings.update(stored_settings)
        except ValueError as e:
            logger.error("Ignoring invalid stored settings: %s", e)

        self._words = words
        self._reviews = reviews
        self._categories = categories
        self._category_order = list(state["categoryOrder"])
        self._selected_category_ids = self._clean_selection(state["selectedCategoryIds"])
        self._processing_queue = list(state["activeQueue"]) + list(state["processingQueue"])
        self._active_queue = []
        self._dirty = False

        logger.info(
            "Loaded %d words, %d categories, %d pending",
            len(self._words), len(self._categories), len(self._processing_queue),
        )
        self._notify(WORDS, REVIEWS, CATEGORIES, CATEGORY_ORDER, SELECTION, SETTINGS, PENDING, ACTIVE)
        return True

    def save(self) -> bool:
        """
        Save state to the repository.

        Returns:
            True if saved successfully
        """
        if self._repository is None:
            return False
        success = self._repository.save(self.to_state())
        if success:
            self._dirty = False
        return success

    async def save_async(self) -> bool:
        """Save state without blocking the event loop."""
        if self._repository is None:
            return False
        success = await self._repository.save_async(self.to_state())
        if success:
            self._dirty = False
        return success

    def close(self) -> None:
        """Flush unsaved changes. Call once at process end."""
        if self._dirty:
            self.save()

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def words(self) -> Dict[str, Word]:
        return dict(self._words)

    @property
    def reviews(self) -> Dict[str, ReviewItem]:
        return dict(self._reviews)

    @property
    def categories(self) -> Dict[str, Category]:
        return dict(self._categories)

    @property
    def category_order(self) -> List[str]:
        return list(self._category_order)

    @property
    def selected_category_ids(self) -> List[str]:
        return list(self._selected_category_ids)

    @property
    def processing_queue(self) -> List[str]:
        return list(self._processing_queue)

    @property
    def active_queue(self) -> List[str]:
        return list(self._active_queue)

    @property
    def settings(self) -> SettingsManager:
        return self._settings

    def get_word(self, word_id: str) -> Optional[Word]:
        return self._words.get(word_id)

    def get_review(self, word_id: str) -> Optional[ReviewItem]:
        return self._reviews.get(word_id)

    def get_category(self, category_id: str) -> Optional[Category]:
        return self._categories.get(category_id)

    def ordered_categories(self) -> List[Category]:
        """Categories in display order."""
        return [self._categories[cid] for cid in self._category_order if cid in self._categories]

    def get_due_reviews(self) -> List[ReviewItem]:
        """
        Get reviews that are due now.

        Returns:
            Reviews with next_review <= now, earliest first
        """
        now = self.now()
        due = [r for r in self._reviews.values() if r.next_review <= now]
        return sorted(due, key=lambda r: r.next_review)

    # ------------------------------------------------------------------
    # Words
    # ------------------------------------------------------------------

    def add_word(self, word: Word) -> None:
        """Insert or overwrite a word together with a fresh review record."""
        words = {**self._words, word.id: word}
        reviews = {**self._reviews, word.id: ReviewItem.fresh(word.id, self.now())}
        self._words, self._reviews = words, reviews
        self._commit(WORDS, REVIEWS)

    def delete_word(self, word_id: str) -> None:
        """Remove a word and its review record."""
        if word_id not in self._words and word_id not in self._reviews:
            return
        words = {k: v for k, v in self._words.items() if k != word_id}
        reviews = {k: v for k, v in self._reviews.items() if k != word_id}
        self._words, self._reviews = words, reviews
        self._commit(WORDS, REVIEWS)

    def clear_all_words(self) -> None:
        """Remove all words, reviews and queued work."""
        self._words = {}
        self._reviews = {}
        self._processing_queue = []
        self._active_queue = []
        self._commit(WORDS, REVIEWS, PENDING, ACTIVE)

    def toggle_word_status(self, word_id: str) -> None:
        word = self._words.get(word_id)
        if word is None:
            return
        self._replace_word(word.copy(enabled=not word.enabled))

    def _replace_word(self, word: Word) -> None:
        self._words = {**self._words, word.id: word}
        self._commit(WORDS)

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def add_question(self, word_id: str, question: Question) -> None:
        word = self._words.get(word_id)
        if word is None:
            return
        self._replace_word(word.copy(questions=[*word.questions, question]))

    def update_question(self, word_id: str, question_id: str, partial: Dict[str, Any]) -> None:
        """
        Merge new field values into one question.

        Args:
            word_id: Owning word
            question_id: Question to update
            partial: Any of sentence, translation, cloze
        """
        word = self._words.get(word_id)
        if word is None or word.get_question(question_id) is None:
            return
        fields = {k: str(v) for k, v in partial.items() if k in ("sentence", "translation", "cloze")}
        questions = [replace(q, **fields) if q.id == question_id else q for q in word.questions]
        self._replace_word(word.copy(questions=questions))

    def delete_question(self, word_id: str, question_id: str) -> None:
        """Remove a question. Removing the last one is allowed; callers decide."""
        word = self._words.get(word_id)
        if word is None or word.get_question(question_id) is None:
            return
        questions = [q for q in word.questions if q.id != question_id]
        self._replace_word(word.copy(questions=questions))

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def update_review(self, review: ReviewItem) -> None:
        """Replace a word's review record. Ignored if the word is gone."""
        if review.word_id not in self._words:
            return
        self._reviews = {**self._reviews, review.word_id: review}
        self._commit(REVIEWS)

    def reset_word_stats(self, word_id: str) -> None:
        if word_id not in self._words:
            return
        self._reviews = {**self._reviews, word_id: ReviewItem.fresh(word_id, self.now())}
        self._commit(REVIEWS)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def add_category(self, name: str) -> str:
        """
        Create a category at the end of the display order.

        Returns:
            The new category id
        """
        category = Category(id=new_id(), name=name, created_at=self.now())
        self._categories = {**self._categories, category.id: category}
        self._category_order = [*self._category_order, category.id]
        self._commit(CATEGORIES, CATEGORY_ORDER)
        return category.id

    def delete_category(self, category_id: str) -> None:
        """
        Delete a category and every reference to it.

        Words keep existing; the id is stripped from their categories, from the
        display order and from the selection (which falls back to "all").
        """
        if category_id not in self._categories:
            return

        words = {
            wid: w.copy(category_ids=[c for c in w.category_ids if c != category_id])
            if category_id in w.category_ids else w
            for wid, w in self._words.items()
        }
        categories = {k: v for k, v in self._categories.items() if k != category_id}
        order = [c for c in self._category_order if c != category_id]
        selection = self._clean_selection([c for c in self._selected_category_ids if c != category_id])

        self._words = words
        self._categories = categories
        self._category_order = order
        self._selected_category_ids = selection
        self._commit(WORDS, CATEGORIES, CATEGORY_ORDER, SELECTION)

    def rename_category(self, category_id: str, name: str) -> None:
        category = self._categories.get(category_id)
        if category is None:
            return
        self._categories = {**self._categories, category_id: replace(category, name=name)}
        self._commit(CATEGORIES)

    def move_category(self, category_id: str, direction: str) -> None:
        """
        Swap a category with its neighbour in the display order.

        Args:
            category_id: Category to move
            direction: "up" or "down"

        Raises:
            ValueError: If direction is not "up" or "down"
        """
        if direction not in ("up", "down"):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
        if category_id not in self._category_order:
            return

        order = list(self._category_order)
        index = order.index(category_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(order):
            return

        order[index], order[target] = order[target], order[index]
        self._category_order = order
        self._commit(CATEGORY_ORDER)

    def add_word_to_category(self, word_id: str, category_id: str) -> None:
        word = self._words.get(word_id)
        if word is None or category_id not in self._categories or category_id in word.category_ids:
            return
        self._replace_word(word.copy(category_ids=[*word.category_ids, category_id]))

    def remove_word_from_category(self, word_id: str, category_id: str) -> None:
        word = self._words.get(word_id)
        if word is None or category_id not in word.category_ids:
            return
        self._replace_word(word.copy(category_ids=[c for c in word.category_ids if c != category_id]))

    def set_selected_categories(self, category_ids: Iterable[str]) -> None:
        """Replace the category filter. An empty selection means all categories."""
        self._selected_category_ids = self._clean_selection(category_ids)
        self._commit(SELECTION)

    def _clean_selection(self, category_ids: Iterable[str]) -> List[str]:
        selection = []
        for cid in category_ids:
            if cid == ALL_CATEGORIES:
                return [ALL_CATEGORIES]
            if cid in self._categories and cid not in selection:
                selection.append(cid)
        return selection or [ALL_CATEGORIES]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_settings(self, partial: Dict[str, Any]) -> None:
        """
        Shallow-merge settings.

        Raises:
            ValueError: If a value is invalid (nothing is changed)
        """
        self._settings.update(partial)
        self._commit(SETTINGS)

    # ------------------------------------------------------------------
    # Enrichment queue primitives
    # ------------------------------------------------------------------

    def add_to_queue(self, words: Iterable[str]) -> None:
        """Append word strings to the pending queue. Duplicates are kept."""
        new_words = [w for w in words]
        if not new_words:
            return
        self._processing_queue = [*self._processing_queue, *new_words]
        self._commit(PENDING)

    def move_to_active(self) -> Optional[str]:
        """
        Move the head of the pending queue onto the active set.

        Returns:
            The moved word, or None if nothing is pending
        """
        if not self._processing_queue:
            return None
        word = self._processing_queue[0]
        self._processing_queue = self._processing_queue[1:]
        self._active_queue = [*self._active_queue, word]
        self._commit(PENDING, ACTIVE)
        return word

    def complete_processing(self, word: str) -> None:
        """Remove one occurrence of a word from the active set."""
        if word not in self._active_queue:
            return
        active = list(self._active_queue)
        active.remove(word)
        self._active_queue = active
        self._commit(ACTIVE)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def to_state(self, include_credentials: bool = True) -> Dict[str, Any]:
        """Serialize the whole store to the persisted document shape."""
        return {
            "version": Config.STATE_VERSION,
            "words": {wid: w.to_dict() for wid, w in self._words.items()},
            "categories": {cid: c.to_dict() for cid, c in self._categories.items()},
            "reviews": {wid: r.to_dict() for wid, r in self._reviews.items()},
            "settings": self._settings.export(include_credentials=include_credentials),
            "processingQueue": list(self._processing_queue),
            "activeQueue": list(self._active_queue),
            "selectedCategoryIds": list(self._selected_category_ids),
            "categoryOrder": list(self._category_order),
        }

    def export_data(self, include_credentials: bool = False) -> Dict[str, Any]:
        """
        Build an export snapshot.

        Credentials are blanked unless explicitly requested.
        """
        data = self.to_state(include_credentials=include_credentials)
        data["exportDate"] = datetime.fromtimestamp(self.now() / 1000).isoformat()
        return data

    def import_data(self, data: Dict[str, Any]) -> None:
        """
        Merge a partial snapshot into the store.

        Imported words, reviews and categories win on id collision; entries
        missing from the payload are kept. New category ids are appended to
        the display order, the selection is replaced if provided, settings are
        shallow-merged and imported pending words are appended to the queue.

        Raises:
            ValueError: If the payload is malformed (nothing is changed)
        """
        try:
            imported_words = {wid: Word.from_dict(w) for wid, w in (data.get("words") or {}).items()}
            imported_reviews = {wid: ReviewItem.from_dict(r) for wid, r in (data.get("reviews") or {}).items()}
            imported_categories = {cid: Category.from_dict(c) for cid, c in (data.get("categories") or {}).items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValueError(f"Malformed import payload: {e}") from e

        settings_update = {k: v for k, v in (data.get("settings") or {}).items() if v not in ("", None)}
        self._settings.validate(settings_update)

        words = {**self._words, **imported_words}
        reviews = {**self._reviews, **imported_reviews}
        for word_id in words:
            if word_id not in reviews:
                reviews[word_id] = ReviewItem.fresh(word_id, self.now())
        reviews = {wid: r for wid, r in reviews.items() if wid in words}

        categories = {**self._categories, **imported_categories}
        order = list(self._category_order)
        for cid in list(data.get("categoryOrder") or []) + list(imported_categories):
            if cid in categories and cid not in order:
                order.append(cid)

        self._settings.update(settings_update)
        self._words = words
        self._reviews = reviews
        self._categories = categories
        self._category_order = order
        if "selectedCategoryIds" in data:
            self._selected_category_ids = self._clean_selection(data.get("selectedCategoryIds") or [])

        changed = [WORDS, REVIEWS, CATEGORIES, CATEGORY_ORDER, SELECTION, SETTINGS]
        pending = list(data.get("processingQueue") or [])
        if pending:
            self._processing_queue = [*self._processing_queue, *pending]
            changed.append(PENDING)
        self._commit(*changed)
