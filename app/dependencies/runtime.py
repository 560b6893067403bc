"""
Runtime-state dependencies for FastAPI routes.

The rate limiter, circuit breaker and in-memory counseling store live on
``app.state`` (created by ``init_runtime_state`` when the app is built) and
are handed to routes through the providers below, so tests can swap any of
them with ``app.dependency_overrides``.
"""
from __future__ import annotations

import logging
from typing import Union

from fastapi import Depends, FastAPI, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.exceptions import RateLimitedError
from app.services.counseling import CounselingService
from app.services.counseling_store import DatabaseCounselingStore, InMemoryCounselingStore
from app.services.embedding import OpenAIEmbeddingService, VerseSearchService
from app.services.llm import ResilientChatService
from app.services.rate_limiter import SlidingWindowRateLimiter
from app.services.resilience import CircuitBreaker

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def init_runtime_state(app: FastAPI, settings: Settings) -> None:
    """Construct the per-application mutable state."""
    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    app.state.circuit_breaker = CircuitBreaker(cooldown=settings.CIRCUIT_BREAKER_COOLDOWN)
    app.state.counseling_memory_store = InMemoryCounselingStore()


def reset_runtime_state(app: FastAPI) -> None:
    """Drop all in-process state (rate-limit buckets, breaker, memory sessions)."""
    app.state.rate_limiter.reset()
    app.state.circuit_breaker.reset()
    app.state.counseling_memory_store.clear()


# ---------------------------------------------------------------------------
# State providers
# ---------------------------------------------------------------------------

def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def get_circuit_breaker(request: Request) -> CircuitBreaker:
    return request.app.state.circuit_breaker


def client_key(request: Request) -> str:
    """
    Identify the caller for rate limiting: first X-Forwarded-For hop, then
    X-Real-IP, then the socket peer.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def enforce_chat_rate_limit(
    request: Request,
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings),
) -> None:
    """Raise RateLimitedError (→ 429) once the caller's window is full."""
    key = f"chat:{client_key(request)}"
    if not limiter.allow(key):
        raise RateLimitedError(settings.RATE_LIMIT_RETRY_AFTER)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------

def get_chat_client(
    settings: Settings = Depends(get_settings),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
) -> ResilientChatService:
    return ResilientChatService.from_settings(settings, breaker)


def get_embedding_client(
    settings: Settings = Depends(get_settings),
) -> OpenAIEmbeddingService:
    return OpenAIEmbeddingService(settings)


def get_counseling_store(
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Union[InMemoryCounselingStore, DatabaseCounselingStore]:
    if settings.COUNSELING_STORE == "memory":
        return request.app.state.counseling_memory_store
    return DatabaseCounselingStore(db)


def get_counseling_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    store=Depends(get_counseling_store),
    llm=Depends(get_chat_client),
    embedder=Depends(get_embedding_client),
) -> CounselingService:
    verse_search = VerseSearchService(
        db,
        embedder,
        scan_limit=settings.VERSE_SCAN_LIMIT,
        top_k=settings.VERSE_TOP_K,
    )
    return CounselingService(store, llm, verse_search, settings)
