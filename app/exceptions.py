"""
Exception hierarchy shared by services and routers.

``app.main`` maps these onto HTTP responses:

* RateLimitedError → 429 (+ Retry-After)
* ConfigurationError → 500
* UpstreamError (and subclasses) → 502
"""
from __future__ import annotations


class CounselError(Exception):
    """Base class for all application errors."""


class ConfigurationError(CounselError):
    """Required server configuration (credentials, URLs) is missing."""


class UpstreamError(CounselError):
    """An outbound call to the LLM / embedding API failed or timed out."""


class EmbeddingError(UpstreamError):
    """The embedding API call failed."""


class CircuitOpenError(UpstreamError):
    """The circuit breaker is open; the call was not attempted."""

    def __init__(self, retry_in: float) -> None:
        super().__init__(f"circuit_open (retry in {retry_in:.1f}s)")
        self.retry_in = retry_in


class RateLimitedError(CounselError):
    """The client exceeded its request budget for the current window."""

    def __init__(self, retry_after: int) -> None:
        super().__init__("Too many requests")
        self.retry_after = retry_after


class InvalidTransitionError(CounselError):
    """A counseling session tried to move backwards through its steps."""
