"""Typed errors raised by the retrieval and answering core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.core.schemas_retrieval import RateLimitStatus


class RetrievalEngineError(Exception):
    """Base class for errors raised by the core."""


class ProviderError(RetrievalEngineError):
    """Raised when the embedding or generation provider call fails."""

    def __init__(self, message: str, provider: str = "openai", cause: Exception | None = None):
        super().__init__(message)
        self.provider = provider
        self.cause = cause


class MalformedProviderResponse(ProviderError):
    """Raised when generated text does not parse as the expected structure."""

    def __init__(self, message: str, raw_output: str):
        super().__init__(message, provider="openai")
        self.raw_output = raw_output


class RateLimitedError(RetrievalEngineError):
    """Raised when an embedding refresh would exceed a 24h limit.

    Carries which limit tripped and the remaining budget of both limits.
    """

    def __init__(self, limit: str, used: int, maximum: int, status: RateLimitStatus):
        if limit == "user":
            message = f"Refresh limit reached: {used}/{maximum} refreshes in the last 24 hours"
        else:
            message = f"Document limit reached: {used}/{maximum} documents processed in the last 24 hours"
        super().__init__(message)
        self.limit = limit
        self.used = used
        self.maximum = maximum
        self.status = status


class OrganizationNotFoundError(RetrievalEngineError):
    """Raised when the organization scope of a call cannot be resolved."""


class AnswerFailedError(RetrievalEngineError):
    """Raised when a grounded answer could not be produced."""
