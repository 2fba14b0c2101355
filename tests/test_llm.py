"""
Tests for the LLM layer: JSON extraction, the LLM-backed judge and the
provider factory.
"""

import asyncio
from typing import Any

import pytest

from medsight.core.exceptions import ConfigurationError, JudgmentError, MissingAPIKeyError
from medsight.llm.base import BaseLLMProvider, LLMResponse, Message
from medsight.llm.factory import create_provider, create_provider_with_fallback
from medsight.llm.judge import (
    JSON_ONLY_INSTRUCTION,
    JudgmentRequest,
    LLMJudge,
    StructuredJudge,
    extract_json_object,
    request_judgment,
)
from medsight.observability import get_metrics

REQUEST = JudgmentRequest(stage="statistics", system_prompt="You judge.", user_prompt="Judge this.")


class FakeProvider(BaseLLMProvider):
    """Provider returning canned content, optionally after a delay."""

    def __init__(self, content: str = "{}", delay: float = 0.0) -> None:
        super().__init__(model="fake-model")
        self.content = content
        self.delay = delay
        self.messages: list[Message] = []

    @property
    def name(self) -> str:
        return "fake"

    async def acomplete(self, messages, temperature=0.0, max_tokens=None, **kwargs: Any) -> LLMResponse:
        self.messages = messages
        if self.delay:
            await asyncio.sleep(self.delay)
        return LLMResponse(content=self.content, model=self.model, provider=self.name)


# =============================================================================
# JSON EXTRACTION
# =============================================================================


class TestExtractJsonObject:
    def test_plain(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_fenced(self):
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_embedded_in_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} Hope it helps.') == {"a": {"b": 2}}

    @pytest.mark.parametrize("content", ["no json here", "{broken: }", "[1, 2, 3]"])
    def test_rejects(self, content):
        with pytest.raises(JudgmentError):
            extract_json_object(content)


# =============================================================================
# JUDGE
# =============================================================================


class TestLLMJudge:
    def test_parses_reply(self):
        provider = FakeProvider('```json\n{"statisticalStrength": 0.7}\n```')

        payload = asyncio.run(LLMJudge(provider).judge(REQUEST))

        assert payload == {"statisticalStrength": 0.7}
        assert provider.messages[0].role == "system"
        assert JSON_ONLY_INSTRUCTION in provider.messages[0].content
        assert provider.messages[1].content == "Judge this."

    def test_empty_reply_is_none(self):
        assert asyncio.run(LLMJudge(FakeProvider("   ")).judge(REQUEST)) is None

    def test_timeout(self):
        judge = LLMJudge(FakeProvider(delay=1.0), timeout=0.01)

        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(judge.judge(REQUEST))

    def test_satisfies_protocol(self):
        assert isinstance(LLMJudge(FakeProvider()), StructuredJudge)


class TestRequestJudgment:
    def test_no_judge(self):
        with pytest.raises(JudgmentError):
            asyncio.run(request_judgment(None, REQUEST))

    def test_counts_requests(self):
        judge = LLMJudge(FakeProvider('{"ok": true}'))

        asyncio.run(request_judgment(judge, REQUEST))

        assert get_metrics().judgment_requests.get({"stage": "statistics"}) == 1

    def test_none_payload(self):
        judge = LLMJudge(FakeProvider(""))

        with pytest.raises(JudgmentError):
            asyncio.run(request_judgment(judge, REQUEST))


# =============================================================================
# FACTORY
# =============================================================================


class TestFactory:
    def test_missing_key(self):
        with pytest.raises(MissingAPIKeyError):
            create_provider("openai")

    def test_missing_key_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            create_provider("gemini")

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            create_provider("mistral")

    def test_openai_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        provider = create_provider("openai")

        assert provider.name == "openai"
        assert provider.model == "gpt-4o-mini"

    def test_fallback_skips_unconfigured(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        provider = create_provider_with_fallback()

        assert provider.name == "openai"

    def test_gemini_preferred(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g-test")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        provider = create_provider_with_fallback()

        assert provider.name == "gemini"
        assert provider.model == "gemini-2.5-flash-lite"

    def test_nothing_configured(self):
        with pytest.raises(ConfigurationError):
            create_provider_with_fallback()
