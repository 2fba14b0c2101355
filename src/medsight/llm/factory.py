"""
LLM Factory

Factory for creating LLM provider instances based on configuration.

PROVIDER ORDER:
1. Gemini (Google AI Studio) - default, free tier
2. OpenAI - paid fallback

The preferred provider comes from LLM_DEFAULT_PROVIDER; the other one is
tried only if the preferred provider has no API key configured.
"""

import logging
from typing import Literal

from medsight.config import get_settings
from medsight.core.exceptions import ConfigurationError, MissingAPIKeyError
from medsight.llm.base import BaseLLMProvider

logger = logging.getLogger(__name__)

ProviderType = Literal["gemini", "openai"]

PROVIDER_ORDER: list[ProviderType] = ["gemini", "openai"]


def create_provider(
    provider: ProviderType | None = None, model: str | None = None, **kwargs
) -> BaseLLMProvider:
    """
    Create an LLM provider instance.

    Args:
        provider: 'gemini' or 'openai'. Defaults to LLM_DEFAULT_PROVIDER.
        model: Model name. Defaults to the configured model for the provider.
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured LLM provider instance.

    Raises:
        MissingAPIKeyError: If the provider has no API key.
        ConfigurationError: If the provider name is unknown.
    """
    settings = get_settings()
    provider = provider or settings.llm.default_provider
    kwargs.setdefault("timeout", settings.llm.judgment_timeout)

    if provider == "gemini":
        from medsight.llm.gemini_provider import GeminiProvider

        api_key = (
            kwargs.pop("api_key", None)
            or settings.llm.google_api_key
            or settings.llm.gemini_api_key
        )
        if not api_key:
            raise MissingAPIKeyError("GOOGLE_API_KEY or GEMINI_API_KEY")
        return GeminiProvider(model=model or settings.llm.gemini_model, api_key=api_key, **kwargs)

    elif provider == "openai":
        from medsight.llm.openai_provider import OpenAIProvider

        api_key = kwargs.pop("api_key", None) or settings.llm.openai_api_key
        if not api_key:
            raise MissingAPIKeyError("OPENAI_API_KEY")
        return OpenAIProvider(model=model or settings.llm.openai_model, api_key=api_key, **kwargs)

    raise ConfigurationError(f"Unknown LLM provider: {provider}")


def create_provider_with_fallback(model: str | None = None, **kwargs) -> BaseLLMProvider:
    """
    Create the preferred provider, falling back to the next configured one.

    Raises:
        ConfigurationError: If no provider is configured.
    """
    preferred = get_settings().llm.default_provider
    providers_to_try = [preferred] + [p for p in PROVIDER_ORDER if p != preferred]

    errors = []
    for provider_name in providers_to_try:
        try:
            provider = create_provider(provider_name, model, **kwargs)
            logger.info("Using LLM provider: %s (%s)", provider_name, provider.model)
            return provider
        except ConfigurationError as e:
            errors.append(f"{provider_name}: {e}")

    raise ConfigurationError(
        "No LLM provider configured. Set GOOGLE_API_KEY, GEMINI_API_KEY or OPENAI_API_KEY.",
        {"tried": providers_to_try, "errors": errors},
    )
