"""
Practice Session - one cloze question at a time.

Each attempt moves through a small state machine:

    PRESENTED --(0..3 hints)--> COMPLETED          correct answer
    PRESENTED --give up------> REVEALED --ack--> COMPLETED

Only a completed outcome touches the word's review record. A wrong answer
leaves the attempt open for another try.
"""

import logging
from enum import Enum
from typing import Optional

from ..config import Config
from ..models import EvaluationResult, Outcome, Question, Word
from ..services.ai_service import WordEnricher
from ..services.vocabulary_service import VocabularyStore
from ..utils.parsing import TextParser
from .scheduler import PracticeScheduler, Selection
from .srs import calculate_next_review

logger = logging.getLogger(__name__)


class PracticeStateError(Exception):
    """Raised on an action the current attempt state does not allow."""
    pass


class AttemptState(str, Enum):
    PRESENTED = "PRESENTED"
    REVEALED = "REVEALED"
    COMPLETED = "COMPLETED"


class SessionStatus(str, Enum):
    LOADING = "LOADING"
    EMPTY = "EMPTY"
    ACTIVE = "ACTIVE"


class PracticeAttempt:
    """
    State of a single question being answered.

    The attempt only tracks hints and the outcome; evaluating answers and
    writing reviews is the session's job.
    """

    MAX_HINTS = Config.MAX_HINTS

    def __init__(self, word: Word, question: Question):
        self.word = word
        self.question = question
        self.state = AttemptState.PRESENTED
        self.hints_used = 0
        self.outcome: Optional[Outcome] = None
        self.last_evaluation: Optional[EvaluationResult] = None

    @property
    def answer(self) -> str:
        return self.word.original

    @property
    def hints_left(self) -> int:
        return self.MAX_HINTS - self.hints_used

    @property
    def hint_text(self) -> str:
        return TextParser.hint_prefix(self.answer, self.hints_used)

    @property
    def revealed_answer(self) -> Optional[str]:
        """The answer once the user has given up, else None."""
        if self.outcome == Outcome.WRONG_GIVE_UP:
            return self.answer
        return None

    def _require(self, state: AttemptState, action: str) -> None:
        if self.state != state:
            raise PracticeStateError(f"Cannot {action} while attempt is {self.state.value}")

    def take_hint(self) -> str:
        """
        Reveal one more character range of the answer.

        Once all hints are used further calls return the last hint unchanged.

        Returns:
            The current hint text, e.g. ``"ep..."``

        Raises:
            PracticeStateError: If the attempt is no longer open
        """
        self._require(AttemptState.PRESENTED, "take a hint")
        if self.hints_used < self.MAX_HINTS:
            self.hints_used += 1
        return self.hint_text

    def record_evaluation(self, result: EvaluationResult) -> Optional[Outcome]:
        """
        Apply an evaluation result.

        Returns:
            The outcome if the answer was correct, else None (attempt stays open)
        """
        self._require(AttemptState.PRESENTED, "submit an answer")
        self.last_evaluation = result
        if not result.is_correct:
            return None
        self.outcome = Outcome.CORRECT_AFTER_HINT if self.hints_used else Outcome.CORRECT_IMMEDIATE
        self.state = AttemptState.COMPLETED
        return self.outcome

    def give_up(self) -> Outcome:
        self._require(AttemptState.PRESENTED, "give up")
        self.outcome = Outcome.WRONG_GIVE_UP
        self.state = AttemptState.REVEALED
        return self.outcome

    def acknowledge(self) -> None:
        self._require(AttemptState.REVEALED, "acknowledge")
        self.state = AttemptState.COMPLETED


class PracticeSession:
    """
    Drives practice over a VocabularyStore.

    Usage:
        session = PracticeSession(store, ai_service)
        session.advance()
        session.hint()
        result = await session.submit("ephemeral")
        if session.attempt.state is AttemptState.COMPLETED:
            session.advance()
    """

    def __init__(
        self,
        store: VocabularyStore,
        enricher: WordEnricher,
        scheduler: Optional[PracticeScheduler] = None,
    ):
        """
        Initialize the session.

        Args:
            store: Vocabulary store with words and reviews
            enricher: Client used to evaluate answers
            scheduler: Word selection (a fresh PracticeScheduler if None)
        """
        self.store = store
        self.enricher = enricher
        self.scheduler = scheduler or PracticeScheduler(store)
        self.attempt: Optional[PracticeAttempt] = None
        self._status = SessionStatus.LOADING

    @property
    def status(self) -> SessionStatus:
        return self._status

    def _current(self) -> PracticeAttempt:
        if self.attempt is None:
            raise PracticeStateError("No question is being practised")
        return self.attempt

    def advance(self) -> Optional[Selection]:
        """
        Draw the next question from the store's current category selection.

        Returns:
            The new selection, or None when no word is eligible (status EMPTY)

        Raises:
            PracticeStateError: If the current attempt is not completed
        """
        if self.attempt is not None and self.attempt.state != AttemptState.COMPLETED:
            raise PracticeStateError("Finish the current question before moving on")

        selection = self.scheduler.select_next()
        if selection is None:
            self.attempt = None
            self._status = SessionStatus.EMPTY
            return None

        self.attempt = PracticeAttempt(selection.word, selection.question)
        self._status = SessionStatus.ACTIVE
        return selection

    def hint(self) -> str:
        return self._current().take_hint()

    async def submit(self, answer: str) -> Optional[EvaluationResult]:
        """
        Evaluate an answer for the current question.

        Args:
            answer: User's answer; blank answers are ignored

        Returns:
            The evaluation, or None for a blank answer

        Raises:
            PracticeStateError: If the attempt does not accept answers
            EnrichmentError: If evaluation fails (attempt and review unchanged)
        """
        attempt = self._current()
        if attempt.state != AttemptState.PRESENTED:
            raise PracticeStateError(f"Cannot submit an answer while attempt is {attempt.state.value}")
        if not answer or not answer.strip():
            return None

        result = await self.enricher.evaluate_answer(
            attempt.answer, answer.strip(), attempt.question.sentence
        )
        if self.attempt is not attempt:
            # Session moved on while the evaluation was in flight
            return result

        outcome = attempt.record_evaluation(result)
        if outcome is not None:
            self._record(attempt, outcome)
        return result

    def give_up(self) -> str:
        """
        Reveal the answer and record the attempt as failed.

        Returns:
            The revealed answer
        """
        attempt = self._current()
        outcome = attempt.give_up()
        self._record(attempt, outcome)
        return attempt.answer

    def acknowledge(self) -> None:
        self._current().acknowledge()

    def _record(self, attempt: PracticeAttempt, outcome: Outcome) -> None:
        review = self.store.get_review(attempt.word.id)
        if review is None:
            logger.debug("No review record for %s, outcome not recorded", attempt.word.id)
            return
        self.store.update_review(calculate_next_review(review, outcome, now=self.store.now()))
