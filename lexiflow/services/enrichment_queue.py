"""
Enrichment Queue Controller - bounded-concurrency background enrichment.

Moves submitted word strings from the store's pending queue into its active
set, at most ``concurrencyLimit`` at a time, enriches each one through a
WordEnricher and writes the resulting Word back into the store.
"""

import asyncio
import logging
from collections import Counter
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Set

from ..models import Question, Word
from .ai_service import EnrichmentError, WordEnricher
from .vocabulary_service import ACTIVE, PENDING, SETTINGS, VocabularyStore

logger = logging.getLogger(__name__)

# Store keys that can change the admission decision
_WATCHED_KEYS = frozenset({PENDING, ACTIVE, SETTINGS})


class EnrichmentQueueController:
    """
    Drains the pending queue into a bounded set of in-flight enrichment calls.

    The controller re-evaluates admission after every change of the pending
    queue, the active set or the settings. Admission is FIFO; completion
    order is whatever order the calls return in. A failed word is logged
    and dropped (no retry), and its slot is always released.

    Usage:
        controller = EnrichmentQueueController(store, ai_service)
        controller.enqueue(["ephemeral", "lucid"])
        await controller.drain()
    """

    def __init__(self, store: VocabularyStore, enricher: WordEnricher):
        """
        Initialize the controller and subscribe to store changes.

        Args:
            store: Vocabulary store holding the queue state
            enricher: Client used to generate word data
        """
        self.store = store
        self.enricher = enricher

        self._tasks: Set[asyncio.Task] = set()
        self._evaluating: bool = False
        self._drain_waiters: Set[asyncio.Event] = set()

        self._counters: Counter = Counter()
        self._failed_words: List[str] = []

        store.on_change(self._on_store_change)

    def close(self) -> None:
        """Stop reacting to store changes. In-flight calls still finish."""
        self.store.remove_listener(self._on_store_change)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def enqueue(self, words: Iterable[str]) -> None:
        """Append words to the pending queue; admission follows immediately."""
        self.store.add_to_queue(words)

    def _on_store_change(self, changed: FrozenSet[str]) -> None:
        if changed & _WATCHED_KEYS:
            self.on_state_change()

    def on_state_change(self) -> None:
        """
        Admit pending words while there is free capacity.

        Idempotent: calling it with no capacity or nothing pending does
        nothing. Calls made while the loop is already running (the store
        notifies on every move) are ignored; the loop re-checks its condition.
        """
        if self._evaluating:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Admission resumes once drain() runs inside an event loop
            return
        self._evaluating = True
        try:
            while (
                len(self.store.active_queue) < self.store.settings.concurrency_limit
                and self.store.processing_queue
            ):
                word = self.store.move_to_active()
                if word is None:
                    break
                self._start(word)
        finally:
            self._evaluating = False
        self._update_idle()

    def _start(self, word: str) -> None:
        logger.debug("Admitted %r (%d active)", word, len(self.store.active_queue))
        task = asyncio.get_running_loop().create_task(self._process(word))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Per-item work
    # ------------------------------------------------------------------

    async def _process(self, word: str) -> None:
        """Enrich one word; the active slot is released whatever happens."""
        try:
            data = await self.enricher.generate_word_data(word)
            new_word = Word.create(
                original=data.original or word,
                word_translation=data.word_translation,
                questions=[q.to_question() for q in data.questions],
                added_at=self.store.now(),
            )
            self.store.add_word(new_word)
            self._counters["succeeded"] += 1
            logger.debug("Enriched %r", word)
        except EnrichmentError as e:
            self._record_failure(word, e)
        except Exception as e:
            logger.exception("Unexpected error while enriching %r", word)
            self._record_failure(word, e)
        finally:
            self.store.complete_processing(word)
            self._update_idle()

    def _record_failure(self, word: str, error: Exception) -> None:
        self._counters["failed"] += 1
        self._failed_words.append(word)
        logger.warning("Enrichment failed for %r, dropping it: %s", word, error)

    # ------------------------------------------------------------------
    # Completion tracking
    # ------------------------------------------------------------------

    @property
    def is_idle(self) -> bool:
        return not self.store.processing_queue and not self.store.active_queue

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def _update_idle(self) -> None:
        if self.is_idle:
            for waiter in self._drain_waiters:
                waiter.set()

    async def drain(self) -> None:
        """
        Wait until both the pending queue and the active set are empty.

        Returns immediately when there is nothing to do. Terminates even if
        every enrichment fails.
        """
        self.on_state_change()
        waiter = asyncio.Event()
        self._drain_waiters.add(waiter)
        try:
            while not self.is_idle:
                waiter.clear()
                await waiter.wait()
        finally:
            self._drain_waiters.discard(waiter)
        if self._counters:
            logger.info(
                "Enrichment queue drained: %d succeeded, %d failed",
                self._counters["succeeded"], self._counters["failed"],
            )

    # ------------------------------------------------------------------
    # Single-question generation
    # ------------------------------------------------------------------

    async def generate_question(self, word_id: str) -> Optional[Question]:
        """
        Add a freshly generated question to an existing word.

        Returns:
            The new question, or None if the word no longer exists

        Raises:
            EnrichmentError: If generation fails
        """
        word = self.store.get_word(word_id)
        if word is None:
            return None
        data = await self.enricher.generate_question(word.original)
        if self.store.get_word(word_id) is None:
            # Deleted while the call was in flight
            return None
        question = data.to_question()
        self.store.add_question(word_id, question)
        return question

    @property
    def stats(self) -> Dict[str, Any]:
        """Counters of processed words."""
        return {
            "succeeded": self._counters["succeeded"],
            "failed": self._counters["failed"],
            "failed_words": list(self._failed_words),
            "pending": len(self.store.processing_queue),
            "active": len(self.store.active_queue),
        }
