"""
OpenAI Provider

LLM provider implementation for the OpenAI chat completions API. Also the
base for providers that expose an OpenAI-compatible endpoint.
"""

from typing import Any

import openai
from openai import AsyncOpenAI

from medsight.core.exceptions import LLMError, LLMProviderError, LLMRateLimitError
from medsight.llm.base import BaseLLMProvider, LLMResponse, Message


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI API provider.

    The client is created with max_retries=0: a failed call is reported
    once and never retried transparently.
    """

    provider_name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(model, api_key, base_url, timeout)

        client_kwargs: dict[str, Any] = {"timeout": timeout, "max_retries": 0}
        if api_key:
            client_kwargs["api_key"] = api_key
        if base_url:
            client_kwargs["base_url"] = base_url

        self._async_client = AsyncOpenAI(**client_kwargs)

    @property
    def name(self) -> str:
        return self.provider_name

    async def acomplete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Async completion (single attempt)."""
        try:
            response = await self._async_client.chat.completions.create(
                model=self._model,
                messages=[m.to_dict() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
                **kwargs,
            )
        except openai.RateLimitError as e:
            retry_after = None
            if getattr(e, "response", None) is not None:
                header = e.response.headers.get("Retry-After")
                retry_after = float(header) if header else None
            raise LLMRateLimitError(provider=self.name, retry_after=retry_after) from e
        except openai.APIStatusError as e:
            raise LLMProviderError(str(e), provider=self.name, status_code=e.status_code) from e
        except openai.APIError as e:
            raise LLMProviderError(str(e), provider=self.name) from e

        if not response.choices:
            raise LLMError(f"{self.name} returned no choices")

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model,
            provider=self.name,
            usage={
                "input_tokens": response.usage.prompt_tokens if response.usage else 0,
                "output_tokens": response.usage.completion_tokens if response.usage else 0,
            },
            finish_reason=response.choices[0].finish_reason,
        )
