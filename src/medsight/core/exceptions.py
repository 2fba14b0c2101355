"""
MedSight Custom Exceptions

This module defines all custom exceptions used throughout the pipeline.
Exceptions are organized by layer/responsibility.
"""

from typing import Any


class MedSightError(Exception):
    """Base exception for all MedSight errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(MedSightError):
    """Error in system configuration."""

    pass


class MissingAPIKeyError(ConfigurationError):
    """Required API key is missing."""

    def __init__(self, key_name: str):
        super().__init__(f"Missing required API key: {key_name}", {"key_name": key_name})


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(MedSightError):
    """Error in data validation."""

    pass


class RequestValidationError(ValidationError):
    """Analysis request rejected before any stage ran."""

    def __init__(self, reason: str, field: str | None = None):
        super().__init__(reason, {"field": field} if field else None)
        self.reason = reason
        self.field = field


# =============================================================================
# RETRIEVAL ERRORS
# =============================================================================


class RetrievalError(MedSightError):
    """Paper source collaborator failed."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message, {"source": source} if source else None)


# =============================================================================
# LLM ERRORS
# =============================================================================


class LLMError(MedSightError):
    """Base error for LLM operations."""

    pass


class LLMProviderError(LLMError):
    """Error from LLM provider."""

    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message, {"provider": provider, "status_code": status_code})


class LLMRateLimitError(LLMProviderError):
    """Rate limit exceeded."""

    def __init__(self, provider: str, retry_after: float | None = None):
        super().__init__(f"Rate limit exceeded for {provider}", provider=provider)
        self.retry_after = retry_after


class JudgmentError(LLMError):
    """Judgment collaborator returned nothing usable."""

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message, {"stage": stage} if stage else None)


# =============================================================================
# SYNTHESIS ERRORS
# =============================================================================


class SynthesisError(MedSightError):
    """Synthesis failed with no veto in effect; no safe default exists."""

    pass
