"""
Structured Judgment

Narrow interface between the pipeline stages and whatever produces their
structured judgments (an LLM in production, a deterministic stub in tests).

Stages own prompt construction and payload validation; a judge only turns a
JudgmentRequest into a JSON object, or None when it has nothing to say.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from medsight.config import get_settings
from medsight.core.exceptions import JudgmentError
from medsight.llm.base import BaseLLMProvider, build_messages
from medsight.observability.metrics import get_metrics
from medsight.observability.tracer import SpanKind, get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("medsight.llm")

JSON_ONLY_INSTRUCTION = "Respond with only valid JSON, no markdown or extra text."

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```\s*$")
_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class JudgmentRequest:
    """
    One structured judgment to be made.

    Attributes:
        stage: Pipeline stage asking (quality, statistics, safety, synthesis).
        system_prompt: Role and output constraints.
        user_prompt: Evidence and the JSON shape expected back.
        context: Raw inputs behind the prompt, for judges that do not read text.
    """

    stage: str
    system_prompt: str
    user_prompt: str
    context: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class StructuredJudge(Protocol):
    """Anything that can answer a JudgmentRequest with a JSON object."""

    async def judge(self, request: JudgmentRequest) -> dict[str, Any] | None:
        ...


def extract_json_object(content: str) -> dict[str, Any]:
    """
    Extract the JSON object from an LLM reply.

    Strips markdown fences, then falls back to the outermost {...} span.

    Raises:
        JudgmentError: If no JSON object can be parsed.
    """
    text = _FENCE_END.sub("", _FENCE_START.sub("", content.strip())).strip()
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT.search(text)
        if not match:
            raise JudgmentError("No JSON object found in response") from None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise JudgmentError(f"Invalid JSON in response: {e}") from e

    if not isinstance(parsed, dict):
        raise JudgmentError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


class LLMJudge:
    """
    StructuredJudge backed by an LLM provider.

    Every call is bounded by a timeout and made once.
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        timeout: float | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        settings = get_settings()
        self._provider = provider
        self._timeout = timeout or settings.llm.judgment_timeout
        self._temperature = settings.llm.temperature if temperature is None else temperature
        self._max_tokens = max_tokens or settings.llm.max_tokens

    @property
    def provider(self) -> BaseLLMProvider:
        return self._provider

    async def judge(self, request: JudgmentRequest) -> dict[str, Any] | None:
        messages = build_messages(
            system=f"{request.system_prompt}\n\n{JSON_ONLY_INSTRUCTION}",
            user=request.user_prompt,
        )
        response = await asyncio.wait_for(
            self._provider.acomplete(
                messages, temperature=self._temperature, max_tokens=self._max_tokens
            ),
            timeout=self._timeout,
        )
        logger.debug(
            "%s judgment via %s: %d input / %d output tokens",
            request.stage,
            response.model,
            response.usage.get("input_tokens", 0),
            response.usage.get("output_tokens", 0),
        )
        if not response.content.strip():
            return None
        return extract_json_object(response.content)


async def request_judgment(judge: StructuredJudge | None, request: JudgmentRequest) -> dict[str, Any]:
    """
    Ask a judge for a structured judgment.

    Returns the payload dict. Stages catch any exception raised here and
    apply their fallback.

    Raises:
        JudgmentError: No judge configured, or the judge returned nothing usable.
    """
    if judge is None:
        raise JudgmentError("No judgment collaborator configured", stage=request.stage)

    get_metrics().judgment_requests.inc(labels={"stage": request.stage})
    with tracer.span("judge", kind=SpanKind.CLIENT, attributes={"stage": request.stage}):
        payload = await judge.judge(request)

    if payload is None:
        raise JudgmentError("Judgment collaborator returned no payload", stage=request.stage)
    if not isinstance(payload, dict):
        raise JudgmentError(
            f"Expected a JSON object, got {type(payload).__name__}", stage=request.stage
        )
    return payload


def record_fallback(stage: str, error: BaseException, subject: str | None = None) -> None:
    """Log and count a stage falling back after a judgment failure."""
    if subject:
        logger.warning("%s stage falling back for %s: %s", stage, subject, error)
    else:
        logger.warning("%s stage falling back: %s", stage, error)
    get_metrics().judgment_fallbacks.inc(labels={"stage": stage})


def get_default_judge() -> LLMJudge:
    """LLMJudge over the preferred configured provider."""
    from medsight.llm.factory import create_provider_with_fallback

    return LLMJudge(create_provider_with_fallback())
