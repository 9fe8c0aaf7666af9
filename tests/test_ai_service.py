"""
Tests for the AI service and HTTP providers.

Providers are exercised against a fake aiohttp session; the service is
exercised against a scripted provider. No network access.
"""

import asyncio
import json

import aiohttp
import pytest

from lexiflow.config import SettingsManager
from lexiflow.models import EvaluationType
from lexiflow.services import AIConfig, AIProvider, AIService, EnrichmentError, ProviderError, create_ai_service
from lexiflow.services.ai_service import BaseAIProvider, GeminiProvider, OpenAIProvider
from lexiflow.utils import TextParser

BLANK = TextParser.BLANK


class ScriptedProvider(BaseAIProvider):
    """Returns canned completions in order; exceptions are raised."""

    def __init__(self, *responses):
        super().__init__(AIConfig())
        self.responses = list(responses)
        self.prompts = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeResponse:
    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def json(self):
        return self._body

    async def text(self):
        return json.dumps(self._body)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    closed = False

    def __init__(self, status=200, body=None, error=None):
        self.status = status
        self.body = body
        self.error = error
        self.requests = []

    def post(self, url, headers=None, json=None):
        self.requests.append({"url": url, "headers": headers, "json": json})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.body)


def service_with(*responses, settings=None):
    provider = ScriptedProvider(*responses)
    return AIService(settings or SettingsManager(use_env=False), provider=provider), provider


def run(coro):
    return asyncio.run(coro)


class TestGenerateWordData:

    def test_flat_shape(self):
        service, provider = service_with(json.dumps({
            "original": "lucid",
            "wordTranslation": "clear",
            "sentence": "Her explanation was lucid.",
            "translation": "translated",
            "cloze": f"Her explanation was {BLANK}.",
        }))

        data = run(service.generate_word_data("lucid"))

        assert data.original == "lucid"
        assert data.word_translation == "clear"
        assert len(data.questions) == 1
        assert data.questions[0].cloze == f"Her explanation was {BLANK}."
        assert '"lucid"' in provider.prompts[0]

    def test_questions_list_with_fence(self):
        body = {
            "original": "lucid",
            "wordTranslation": "clear",
            "questions": [
                {"sentence": "A lucid dream.", "translation": "t1", "cloze": f"A {BLANK} dream."},
                {"sentence": "", "translation": "skipped", "cloze": ""},
                {"sentence": "Lucid thoughts.", "translation": "t2", "cloze": "Lucid thoughts."},
            ],
        }
        service, _ = service_with("```json\n" + json.dumps(body) + "\n```")

        data = run(service.generate_word_data("lucid"))

        assert [q.cloze for q in data.questions] == [f"A {BLANK} dream.", f"{BLANK} thoughts."]

    def test_inflected_short_blank_kept(self):
        service, _ = service_with(json.dumps({
            "original": "run",
            "wordTranslation": "t",
            "sentence": "She ran home.",
            "translation": "t",
            "cloze": "She _____ home.",
        }))

        data = run(service.generate_word_data("run"))

        assert [q.cloze for q in data.questions] == [f"She {BLANK} home."]

    def test_long_blank_kept(self):
        service, _ = service_with(json.dumps({
            "original": "lucid",
            "sentence": "A lucid dream.",
            "translation": "t",
            "cloze": "A " + "_" * 20 + " dream.",
        }))

        data = run(service.generate_word_data("lucid"))

        assert [q.cloze for q in data.questions] == [f"A {BLANK} dream."]

    def test_original_defaults_to_input(self):
        service, _ = service_with(json.dumps({
            "sentence": "So lucid.", "translation": "t", "cloze": f"So {BLANK}.",
        }))
        assert run(service.generate_word_data("lucid")).original == "lucid"

    @pytest.mark.parametrize("response", [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"original": "lucid", "questions": []}),
        json.dumps({"original": "lucid", "sentence": "Nothing here.", "cloze": "Nothing here."}),
        ProviderError("gemini API error 500: boom"),
        aiohttp.ClientConnectionError("refused"),
        asyncio.TimeoutError(),
    ])
    def test_failures_become_enrichment_error(self, response):
        service, _ = service_with(response)
        with pytest.raises(EnrichmentError) as excinfo:
            run(service.generate_word_data("lucid"))
        assert str(excinfo.value) == "Failed to generate word data."

    def test_custom_prompt(self):
        settings = SettingsManager(
            {"useCustomPrompts": True, "prompts": {"generateData": "Word: ${word}"}}, use_env=False
        )
        service, provider = service_with(
            json.dumps({"sentence": "So lucid.", "translation": "t", "cloze": f"So {BLANK}."}),
            settings=settings,
        )
        run(service.generate_word_data("lucid"))
        assert provider.prompts == ["Word: lucid"]


class TestGenerateQuestion:

    def test_parses_question(self):
        service, _ = service_with(json.dumps({
            "sentence": "The water was lucid.", "translation": "t", "cloze": f"The water was {BLANK}.",
        }))
        question = run(service.generate_question("lucid"))
        assert question.sentence == "The water was lucid."

    def test_missing_sentence(self):
        service, _ = service_with(json.dumps({"translation": "t"}))
        with pytest.raises(EnrichmentError):
            run(service.generate_question("lucid"))


class TestEvaluateAnswer:

    def test_parses_result(self):
        service, provider = service_with(json.dumps({
            "isCorrect": False, "type": "TYPO", "feedback": "Check the spelling",
        }))

        result = run(service.evaluate_answer("lucid", "lucd", "A lucid idea."))

        assert result.is_correct is False
        assert result.type is EvaluationType.TYPO
        assert result.feedback == "Check the spelling"
        assert '"lucd"' in provider.prompts[0]

    @pytest.mark.parametrize("body", [
        {"isCorrect": "yes", "type": "CORRECT"},
        {"isCorrect": True, "type": "MAYBE"},
        {"type": "CORRECT"},
    ])
    def test_malformed(self, body):
        service, _ = service_with(json.dumps(body))
        with pytest.raises(EnrichmentError):
            run(service.evaluate_answer("lucid", "lucid", "A lucid idea."))


class TestProviders:

    def test_openai_request(self):
        session = FakeSession(body={"choices": [{"message": {"content": '{"ok": true}'}}]})
        config = AIConfig(provider=AIProvider.OPENAI, model="m", base_url="http://llm:8000/v1/")
        provider = OpenAIProvider(config, session=session)

        assert run(provider.complete("hi")) == '{"ok": true}'

        request = session.requests[0]
        assert request["url"] == "http://llm:8000/v1/chat/completions"
        assert request["headers"]["Authorization"] == "Bearer dummy-key"
        assert request["json"]["response_format"] == {"type": "json_object"}
        assert request["json"]["messages"] == [{"role": "user", "content": "hi"}]

    def test_gemini_request(self):
        session = FakeSession(body={"candidates": [{"content": {"parts": [{"text": '{"a"'}, {"text": ": 1}"}]}}]})
        config = AIConfig(provider=AIProvider.GEMINI, model="gemini-1.5-flash", api_key="key")
        provider = GeminiProvider(config, session=session)

        assert run(provider.complete("hi")) == '{"a": 1}'

        request = session.requests[0]
        assert request["url"].endswith("/models/gemini-1.5-flash:generateContent")
        assert request["headers"]["x-goog-api-key"] == "key"
        assert request["json"]["generationConfig"]["responseMimeType"] == "application/json"

    def test_gemini_requires_key(self):
        provider = GeminiProvider(AIConfig(api_key=None), session=FakeSession())
        with pytest.raises(ProviderError):
            run(provider.complete("hi"))

    def test_http_error(self):
        session = FakeSession(status=429, body={"error": "rate limited"})
        provider = OpenAIProvider(AIConfig(provider=AIProvider.OPENAI), session=session)
        with pytest.raises(ProviderError, match="429"):
            run(provider.complete("hi"))

    def test_connection_error(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        provider = OpenAIProvider(AIConfig(provider=AIProvider.OPENAI), session=session)
        with pytest.raises(ProviderError):
            run(provider.complete("hi"))

    def test_service_wraps_http_error(self):
        session = FakeSession(status=500, body={"error": "boom"})
        provider = OpenAIProvider(AIConfig(provider=AIProvider.OPENAI), session=session)
        service = AIService(SettingsManager(use_env=False), provider=provider)
        with pytest.raises(EnrichmentError):
            run(service.generate_question("lucid"))

    def test_borrowed_session_not_closed(self):
        session = FakeSession()
        provider = OpenAIProvider(AIConfig(provider=AIProvider.OPENAI), session=session)
        run(provider.close())
        assert session.closed is False


class TestFactory:

    def test_gemini_config(self):
        settings = SettingsManager({"apiKey": "k"}, use_env=False)
        service = create_ai_service(settings)
        assert service.config.provider is AIProvider.GEMINI
        assert service.config.model == AIConfig.GEMINI_MODEL
        assert service.is_configured

    def test_openai_config(self):
        settings = SettingsManager(
            {"provider": "openai", "baseUrl": "http://ollama:11434/v1", "modelName": "llama3"}, use_env=False
        )
        service = create_ai_service(settings)
        assert service.config.provider is AIProvider.OPENAI
        assert service.config.base_url == "http://ollama:11434/v1"
        assert service.config.model == "llama3"
        assert service.is_configured

    def test_unconfigured_gemini(self):
        assert not create_ai_service(SettingsManager(use_env=False)).is_configured
