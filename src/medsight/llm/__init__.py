"""
MedSight LLM Abstraction Layer

Providers (Gemini, OpenAI) and the structured-judgment interface the
pipeline stages depend on.
"""

from medsight.llm.base import (
    BaseLLMProvider,
    LLMResponse,
    Message,
    build_messages,
)
from medsight.llm.factory import (
    create_provider,
    create_provider_with_fallback,
)
from medsight.llm.judge import (
    JudgmentRequest,
    LLMJudge,
    StructuredJudge,
    extract_json_object,
    get_default_judge,
    record_fallback,
    request_judgment,
)

__all__ = [
    # Base
    "BaseLLMProvider",
    "LLMResponse",
    "Message",
    "build_messages",
    # Factory
    "create_provider",
    "create_provider_with_fallback",
    # Judgment
    "JudgmentRequest",
    "LLMJudge",
    "StructuredJudge",
    "extract_json_object",
    "get_default_judge",
    "record_fallback",
    "request_judgment",
]
