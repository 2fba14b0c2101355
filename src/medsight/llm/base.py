"""
LLM Provider Base

Chat message types and the provider base class behind LLMJudge.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Message:
    """Chat message (role is system, user or assistant)."""

    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """One completion, with token usage keyed input_tokens / output_tokens."""

    content: str
    model: str
    provider: str
    usage: dict[str, int] = field(default_factory=dict)
    finish_reason: str | None = None


class BaseLLMProvider(ABC):
    """
    Base class for chat-completion providers.

    Providers make exactly one attempt per call. Failures surface as
    LLMError subclasses and the calling stage applies its own fallback.
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name ('gemini' or 'openai')."""

    @property
    def model(self) -> str:
        return self._model

    @abstractmethod
    async def acomplete(
        self,
        messages: list[Message],
        temperature: float = 0.0,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Send messages and return the completion. Raises LLMError on failure."""


def build_messages(system: str | None = None, user: str | None = None) -> list[Message]:
    """System + user message list, skipping empty parts."""
    messages: list[Message] = []
    if system:
        messages.append(Message(role="system", content=system))
    if user:
        messages.append(Message(role="user", content=user))
    return messages
