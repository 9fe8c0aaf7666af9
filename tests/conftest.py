"""
Pytest configuration and fixtures for LexiFlow tests.
"""

import asyncio
import os
import sys
from typing import Dict, Iterable, List, Optional

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from lexiflow.config import Config, SettingsManager
from lexiflow.models import EvaluationResult, EvaluationType, Question, QuestionData, Word, WordData
from lexiflow.services import EnrichmentError, MemoryRepository, VocabularyStore, WordEnricher

START_MS = 1_700_000_000_000


class FakeClock:
    """Settable millisecond clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += int(minutes * 60_000)


class FakeEnricher(WordEnricher):
    """
    Scripted enricher.

    Words listed in ``fail`` raise EnrichmentError. With ``hold=True`` every
    generate_word_data call waits until ``release(word)`` or ``release_all()``
    is called.
    ``evaluations`` is consumed in order by evaluate_answer; an exception
    instance in it is raised instead of returned.
    """

    def __init__(self, fail: Iterable[str] = (), hold: bool = False, evaluations: Optional[List] = None):
        self.fail = set(fail)
        self.hold = hold
        self.evaluations = list(evaluations or [])
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.question_calls: List[str] = []
        self.evaluate_calls: List[tuple] = []
        self.running = 0
        self.max_running = 0

    async def generate_word_data(self, word: str) -> WordData:
        self.calls.append(word)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if self.hold:
                gate = self.gates.setdefault(word, asyncio.Event())
                await gate.wait()
            else:
                await asyncio.sleep(0)
            if word in self.fail:
                raise EnrichmentError("Failed to generate word data.")
            return WordData(
                original=word,
                word_translation=f"{word} (translated)",
                questions=[make_question_data(word)],
            )
        finally:
            self.running -= 1

    async def generate_question(self, word: str) -> QuestionData:
        self.question_calls.append(word)
        await asyncio.sleep(0)
        if word in self.fail:
            raise EnrichmentError("Failed to generate question.")
        return QuestionData(
            sentence=f"Another {word} here.",
            translation="translation",
            cloze=f"Another {Config.CLOZE_BLANK} here.",
        )

    async def evaluate_answer(self, target_word: str, user_input: str, context_sentence: str) -> EvaluationResult:
        self.evaluate_calls.append((target_word, user_input, context_sentence))
        await asyncio.sleep(0)
        result = self.evaluations.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def release(self, word: str) -> None:
        self.gates.setdefault(word, asyncio.Event()).set()

    def release_all(self) -> None:
        self.hold = False
        for gate in self.gates.values():
            gate.set()


def make_question_data(word: str) -> QuestionData:
    return QuestionData(
        sentence=f"I like the word {word} a lot.",
        translation="translation",
        cloze=f"I like the word {Config.CLOZE_BLANK} a lot.",
    )


def correct() -> EvaluationResult:
    return EvaluationResult(is_correct=True, type=EvaluationType.CORRECT, feedback="Well done")


def wrong() -> EvaluationResult:
    return EvaluationResult(is_correct=False, type=EvaluationType.WRONG_MEANING, feedback="Not quite")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return SettingsManager(use_env=False)


@pytest.fixture
def repository():
    return MemoryRepository()


@pytest.fixture
def store(repository, settings, clock):
    return VocabularyStore(repository, settings=settings, clock=clock)


@pytest.fixture
def enricher():
    return FakeEnricher()


@pytest.fixture
def add_word(store):
    """Factory that inserts a word with ``questions`` generated questions."""

    def _add(original: str, categories: Iterable[str] = (), questions: int = 1, enabled: bool = True) -> Word:
        word = Word.create(
            original=original,
            word_translation=f"{original} (translated)",
            questions=[
                Question(
                    sentence=f"Sentence {i} with {original}.",
                    translation="translation",
                    cloze=f"Sentence {i} with {Config.CLOZE_BLANK}.",
                )
                for i in range(questions)
            ],
            category_ids=list(categories),
            added_at=store.now(),
        )
        word.enabled = enabled
        store.add_word(word)
        return word

    return _add
