"""
Chat-completion client for an OpenAI-compatible API.

OpenAIChatService      — one raw POST to /chat/completions via httpx
ResilientChatService   — breaker( retry( timeout( OpenAIChatService ) ) )

Every failure mode (HTTP error, timeout, malformed body, empty answer) is
raised as UpstreamError so the retry/breaker layer treats them alike.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from app.config import Settings
from app.exceptions import ConfigurationError, UpstreamError
from app.services.resilience import CircuitBreaker, retry_with_backoff, with_timeout

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class OpenAIChatService:
    """Single-shot chat completions over httpx."""

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self.api_key = settings.OPENAI_API_KEY
        self.model = settings.OPENAI_MODEL
        self.temperature = settings.OPENAI_TEMPERATURE
        self.timeout = httpx.Timeout(settings.LLM_TIMEOUT, connect=10.0)

    async def complete(self, messages: List[Message], max_tokens: int = 800) -> str:
        if not self.api_key:
            raise ConfigurationError("Server misconfigured: OPENAI_API_KEY missing")

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }
        t0 = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise UpstreamError(f"LLM request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise UpstreamError(f"LLM request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.error("chat/completions returned %d: %s", resp.status_code, resp.text[:200])
            raise UpstreamError(f"LLM returned HTTP {resp.status_code}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError("LLM response was malformed") from exc

        if not content or not content.strip():
            raise UpstreamError("LLM returned an empty answer")

        logger.debug(
            "chat/completions: %d chars in %.1f ms",
            len(content),
            (time.perf_counter() - t0) * 1000,
        )
        return content.strip()


class ResilientChatService:
    """
    Wraps a chat client with a per-call timeout, exponential-backoff retries
    and the application's shared circuit breaker.

    Order matters: the breaker sees one failure only after all retries are
    exhausted, and short-circuits before any attempt while open.
    """

    def __init__(
        self,
        inner: Any,
        breaker: CircuitBreaker,
        *,
        timeout: float = 15.0,
        retries: int = 2,
        base_delay: float = 0.5,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        self._inner = inner
        self._breaker = breaker
        self.timeout = timeout
        self.retries = retries
        self.base_delay = base_delay
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings: Settings, breaker: CircuitBreaker) -> "ResilientChatService":
        return cls(
            OpenAIChatService(settings),
            breaker,
            timeout=settings.LLM_TIMEOUT,
            retries=settings.RETRY_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY,
        )

    async def complete(self, messages: List[Message], max_tokens: int = 800) -> str:
        async def attempt() -> str:
            return await with_timeout(
                self._inner.complete(messages, max_tokens=max_tokens),
                self.timeout,
                what="LLM call",
            )

        async def retried() -> str:
            return await retry_with_backoff(
                attempt,
                retries=self.retries,
                base_delay=self.base_delay,
                retry_on=(UpstreamError,),
                sleep=self._sleep,
            )

        return await self._breaker.call(retried)
