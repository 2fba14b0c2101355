"""
Google Gemini LLM Provider

Integration with Google AI Studio (Gemini) via its OpenAI-compatible endpoint.

Base URL: https://generativelanguage.googleapis.com/v1beta/openai/
Uses the standard OpenAI SDK with a modified base_url.
"""

from typing import Any

from medsight.llm.base import LLMResponse, Message
from medsight.llm.openai_provider import OpenAIProvider

GEMINI_MODELS = {
    "default": "gemini-2.5-flash-lite",
    "fast": "gemini-2.0-flash",
    "reasoning": "gemini-2.5-flash",
    "pro": "gemini-2.5-pro",
}


class GeminiProvider(OpenAIProvider):
    """Google Gemini provider via OpenAI-compatible API.

    API Key: Get from https://aistudio.google.com/apikey
    """

    GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"

    provider_name = "gemini"

    def __init__(
        self,
        model: str = GEMINI_MODELS["default"],
        api_key: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(model=model, api_key=api_key, base_url=self.GEMINI_BASE_URL, timeout=timeout)

    async def acomplete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        # Unsupported by the compatibility endpoint
        kwargs.pop("response_format", None)
        kwargs.pop("tools", None)
        kwargs.pop("tool_choice", None)
        return await super().acomplete(messages, temperature, max_tokens or 8192, **kwargs)
