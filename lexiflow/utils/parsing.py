"""Text parsing utilities for consistent text processing across the application."""

import json
import math
import re
import unicodedata
from typing import Any, List

from ..config import Config


class TextParser:
    """
    Centralized text parsing utilities.

    Single source of truth for word-list splitting, text normalization,
    LLM response cleanup and cloze handling.
    """

    # Markdown code fences around JSON answers (```json ... ```)
    CODE_FENCE_PATTERN = re.compile(r'```(?:json)?', re.IGNORECASE)

    # Outermost JSON object in a noisy response
    JSON_OBJECT_PATTERN = re.compile(r'\{.*\}', re.DOTALL)

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    # Any run of three or more underscores is a blank, whatever its length
    BLANK_PATTERN = re.compile(r'_{3,}')

    BLANK = Config.CLOZE_BLANK

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Prevents issues with characters like é being represented as
        either a single codepoint (NFC) or base + combining accent (NFD).
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def normalize_whitespace(cls, text: str) -> str:
        """Collapse runs of whitespace into single spaces and strip."""
        if not text:
            return ""
        return cls.WHITESPACE_PATTERN.sub(' ', str(text)).strip()

    @classmethod
    def parse_word_list(cls, text: str) -> List[str]:
        """
        Split batch input into word strings, one per non-blank line.

        Duplicates are kept; each line is enqueued independently.
        """
        if not text:
            return []
        words = []
        for line in str(text).splitlines():
            line = cls.normalize_whitespace(cls.normalize_unicode(line))
            if line:
                words.append(line)
        return words

    @classmethod
    def extract_json(cls, text: str) -> Any:
        """
        Parse a JSON object out of an LLM response.

        Strips markdown code fences and falls back to the outermost
        ``{...}`` span when the model wraps the object in prose.

        Raises:
            ValueError: If no JSON object can be parsed
        """
        if not text or not str(text).strip():
            raise ValueError("Empty response")

        cleaned = cls.CODE_FENCE_PATTERN.sub('', str(text)).strip()
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            match = cls.JSON_OBJECT_PATTERN.search(cleaned)
            if not match:
                raise ValueError("No JSON object in response")
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError as e:
                raise ValueError(f"Malformed JSON in response: {e}") from e

    @classmethod
    def normalize_blanks(cls, cloze: str) -> str:
        """Rewrite every run of underscores as the standard blank marker."""
        return cls.BLANK_PATTERN.sub(cls.BLANK, str(cloze or ""))

    @classmethod
    def count_blanks(cls, cloze: str) -> int:
        return len(cls.BLANK_PATTERN.findall(str(cloze or "")))

    @classmethod
    def make_cloze(cls, sentence: str, word: str) -> str:
        """
        Blank out the first occurrence of ``word`` in ``sentence``.

        Matches case-insensitively on a word boundary and swallows a trailing
        inflection (``apple`` -> ``apples``). Later occurrences stay visible;
        a cloze carries exactly one blank.

        Returns:
            The cloze text, or "" if the word does not occur
        """
        if not sentence or not word:
            return ""
        pattern = re.compile(r'\b' + re.escape(word.strip()) + r'\w*', re.IGNORECASE)
        cloze, count = pattern.subn(cls.BLANK, sentence, count=1)
        return cloze if count else ""

    @classmethod
    def ensure_cloze(cls, cloze: str, sentence: str, word: str) -> str:
        """
        Return a cloze containing exactly one standard blank marker.

        Blanks of any length are accepted. A cloze with no blank or with
        several is rebuilt from the sentence when the word occurs in it.

        Raises:
            ValueError: If the cloze cannot be repaired
        """
        blanks = cls.count_blanks(cloze)
        if blanks == 1:
            return cls.normalize_blanks(cloze)
        repaired = cls.make_cloze(sentence, word)
        if repaired:
            return repaired
        raise ValueError(f"Cloze must contain exactly one blank, found {blanks}")

    @classmethod
    def hint_prefix(cls, answer: str, hints_used: int) -> str:
        """
        Reveal a growing prefix of the answer.

        One hint shows the first letter, two hints the first two letters and
        three hints the first half (rounded up).
        """
        if hints_used <= 0 or not answer:
            return ""
        if hints_used == 1:
            prefix = answer[:1]
        elif hints_used == 2:
            prefix = answer[:2]
        else:
            prefix = answer[:math.ceil(len(answer) / 2)]
        return prefix + "..."
