"""
AI Service - LLM integration for vocabulary enrichment.

Provides abstraction over LLM providers (Google Gemini, any OpenAI-compatible
chat-completions server such as OpenAI, vLLM or Ollama) for:
- Generating a word's translation, example sentence and cloze
- Generating additional questions for an existing word
- Evaluating a learner's free-text answer
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from ..config import Config, SettingsManager, render_prompt
from ..models import EvaluationResult, EvaluationType, QuestionData, WordData
from ..utils.parsing import TextParser

logger = logging.getLogger(__name__)


class EnrichmentError(Exception):
    """Enrichment or evaluation is unavailable for this item."""


class ProviderError(Exception):
    """A provider returned an error response or could not be reached."""


class AIProvider(Enum):
    """Supported AI providers."""
    GEMINI = "gemini"
    OPENAI = "openai"  # Also vLLM / Ollama / any compatible server


@dataclass
class AIConfig:
    """Configuration for AI service."""
    provider: AIProvider = AIProvider.GEMINI
    model: str = "gemini-1.5-flash"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = Config.TEMPERATURE
    max_tokens: int = Config.MAX_TOKENS
    timeout: int = Config.REQUEST_TIMEOUT

    GEMINI_MODEL = "gemini-1.5-flash"

    @classmethod
    def from_settings(cls, settings: SettingsManager) -> "AIConfig":
        """Build provider configuration from user settings."""
        provider = AIProvider(settings.get("provider", "gemini"))
        if provider == AIProvider.GEMINI:
            model = cls.GEMINI_MODEL
            base_url = None
        else:
            model = settings.get("modelName") or SettingsManager.DEFAULTS["modelName"]
            base_url = settings.get("baseUrl") or None
        return cls(
            provider=provider,
            model=model,
            api_key=settings.get("apiKey") or None,
            base_url=base_url,
        )


class BaseAIProvider(ABC):
    """Abstract base class for AI providers."""

    def __init__(self, config: AIConfig, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this provider created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _post_json(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Any:
        """POST a JSON payload and return the decoded JSON response."""
        session = await self._get_session()
        try:
            async with session.post(url, headers=headers, json=payload) as response:
                if response.status == 200:
                    return await response.json()
                error = await response.text()
                raise ProviderError(f"{self.name} API error {response.status}: {error[:200]}")
        except asyncio.TimeoutError:
            raise ProviderError(f"{self.name} API timeout")
        except aiohttp.ClientError as e:
            raise ProviderError(f"{self.name} connection error: {e}") from e

    @property
    def name(self) -> str:
        return self.config.provider.value

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Generate a JSON-mode completion for the given prompt."""
        pass


class OpenAIProvider(BaseAIProvider):
    """OpenAI API provider (also works with compatible APIs)."""

    DEFAULT_BASE_URL = "http://localhost:8000/v1"

    async def complete(self, prompt: str) -> str:
        """Generate completion using the chat-completions endpoint."""
        base_url = (self.config.base_url or self.DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/chat/completions"

        # Local servers often don't check the key, but the header must be present
        headers = {
            "Authorization": f"Bearer {self.config.api_key or 'dummy-key'}",
            "Content-Type": "application/json",
        }

        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "response_format": {"type": "json_object"},
        }

        data = await self._post_json(url, payload, headers)
        content = data["choices"][0]["message"]["content"]
        if not content:
            raise ProviderError("No content received from LLM")
        return content


class GeminiProvider(BaseAIProvider):
    """Google Gemini REST API provider."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    async def complete(self, prompt: str) -> str:
        """Generate completion using the generateContent endpoint."""
        if not self.config.api_key:
            raise ProviderError("Gemini API key is not configured")

        url = f"{self.BASE_URL}/models/{self.config.model}:generateContent"
        headers = {
            "x-goog-api-key": self.config.api_key,
            "Content-Type": "application/json",
        }

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_tokens,
                "responseMimeType": "application/json",
            },
        }

        data = await self._post_json(url, payload, headers)
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts)


class WordEnricher(ABC):
    """
    Capability used by the core to enrich words and check answers.

    Every method may fail; implementations raise EnrichmentError and
    keep provider-specific detail out of the message.
    """

    @abstractmethod
    async def generate_word_data(self, word: str) -> WordData:
        pass

    @abstractmethod
    async def generate_question(self, word: str) -> QuestionData:
        pass

    @abstractmethod
    async def evaluate_answer(self, target_word: str, user_input: str, context_sentence: str) -> EvaluationResult:
        pass

    async def close(self) -> None:
        """Release any open resources."""
        pass

    async def __aenter__(self) -> "WordEnricher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# Everything a provider call or response parsing may raise
_FAILURES = (ProviderError, aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, IndexError, TypeError)


class AIService(WordEnricher):
    """
    High-level AI service for vocabulary enrichment.

    Renders the prompt templates from settings, calls the configured provider
    in JSON mode and turns the response into model objects.
    """

    def __init__(
        self,
        settings: Optional[SettingsManager] = None,
        config: Optional[AIConfig] = None,
        provider: Optional[BaseAIProvider] = None,
    ):
        """
        Initialize AI service.

        Args:
            settings: User settings (prompt templates, provider selection)
            config: Provider configuration. If None, derived from settings.
            provider: Ready-made provider, mainly for tests
        """
        self.settings = settings or SettingsManager()
        self.config = config or AIConfig.from_settings(self.settings)
        self._provider = provider

    def _get_provider(self) -> BaseAIProvider:
        """Get or create the appropriate provider."""
        if self._provider is None:
            provider_classes = {
                AIProvider.GEMINI: GeminiProvider,
                AIProvider.OPENAI: OpenAIProvider,
            }
            provider_class = provider_classes.get(self.config.provider, GeminiProvider)
            self._provider = provider_class(self.config)
        return self._provider

    async def close(self) -> None:
        """Close the AI service and release resources."""
        if self._provider:
            await self._provider.close()
            self._provider = None

    async def _complete_json(self, task: str, prompt: str) -> Dict[str, Any]:
        response = await self._get_provider().complete(prompt)
        data = TextParser.extract_json(response)
        if not isinstance(data, dict):
            raise ValueError(f"{task}: expected a JSON object, got {type(data).__name__}")
        return data

    @staticmethod
    def _parse_question(item: Dict[str, Any], word: str) -> QuestionData:
        sentence = TextParser.normalize_unicode(str(item.get("sentence") or "")).strip()
        if not sentence:
            raise ValueError("Question without sentence")
        cloze = TextParser.normalize_unicode(str(item.get("cloze") or "")).strip()
        return QuestionData(
            sentence=sentence,
            translation=TextParser.normalize_unicode(str(item.get("translation") or "")).strip(),
            cloze=TextParser.ensure_cloze(cloze, sentence, word),
        )

    async def generate_word_data(self, word: str) -> WordData:
        """
        Generate translation and example questions for a new word.

        Accepts both the flat single-question answer
        ``{original, wordTranslation, sentence, translation, cloze}`` and a
        ``questions`` list.

        Raises:
            EnrichmentError: If generation fails or the answer is unusable
        """
        prompt = render_prompt(self.settings.prompt("generateData"), word=word)
        try:
            data = await self._complete_json("generateData", prompt)
            original = TextParser.normalize_unicode(str(data.get("original") or word)).strip()

            raw_questions: List[Dict[str, Any]] = data.get("questions") or [data]
            questions = []
            for item in raw_questions:
                try:
                    questions.append(self._parse_question(item, original))
                except (ValueError, AttributeError) as e:
                    logger.debug("Skipping unusable question for %r: %s", word, e)
            if not questions:
                raise ValueError("No usable question in response")

            return WordData(
                original=original,
                word_translation=TextParser.normalize_unicode(str(data.get("wordTranslation") or "")).strip(),
                questions=questions,
            )
        except _FAILURES as e:
            logger.warning("Word data generation failed for %r: %s", word, e)
            raise EnrichmentError("Failed to generate word data.") from e

    async def generate_question(self, word: str) -> QuestionData:
        """
        Generate one new question for an existing word.

        Raises:
            EnrichmentError: If generation fails or the answer is unusable
        """
        prompt = render_prompt(self.settings.prompt("generateQuestion"), word=word)
        try:
            data = await self._complete_json("generateQuestion", prompt)
            return self._parse_question(data, word)
        except _FAILURES as e:
            logger.warning("Question generation failed for %r: %s", word, e)
            raise EnrichmentError("Failed to generate question.") from e

    async def evaluate_answer(self, target_word: str, user_input: str, context_sentence: str) -> EvaluationResult:
        """
        Judge a learner's answer for a cloze.

        Args:
            target_word: The word that was blanked out
            user_input: What the learner typed
            context_sentence: The full sentence

        Raises:
            EnrichmentError: If evaluation fails or the answer is unusable
        """
        prompt = render_prompt(
            self.settings.prompt("evaluateAnswer"),
            targetWord=target_word,
            userInput=user_input,
            sentence=context_sentence,
        )
        try:
            data = await self._complete_json("evaluateAnswer", prompt)
            is_correct = data["isCorrect"]
            if not isinstance(is_correct, bool):
                raise ValueError(f"isCorrect must be a boolean, got {is_correct!r}")
            return EvaluationResult(
                is_correct=is_correct,
                type=EvaluationType(data["type"]),
                feedback=str(data.get("feedback") or ""),
            )
        except _FAILURES as e:
            logger.warning("Answer evaluation failed for %r: %s", target_word, e)
            raise EnrichmentError("Failed to evaluate answer.") from e

    @property
    def is_configured(self) -> bool:
        """Check if AI service is properly configured."""
        if self.config.provider == AIProvider.OPENAI:
            return True  # Local servers don't need an API key
        return bool(self.config.api_key)


# Convenience factory function
def create_ai_service(settings: Optional[SettingsManager] = None) -> AIService:
    """
    Create an AI service for the provider selected in settings.

    Args:
        settings: User settings (environment and defaults if None)

    Returns:
        Configured AIService instance
    """
    settings = settings or SettingsManager()
    return AIService(settings, AIConfig.from_settings(settings))
