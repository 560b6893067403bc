"""
Retry, timeout and circuit-breaker helpers for outbound API calls.

Public API
----------
with_timeout(awaitable, seconds)                         -> result
retry_with_backoff(fn, retries=2, base_delay=0.5)        -> result
CircuitBreaker(cooldown=15.0).call(fn)                   -> result

The breaker is a single open/closed flag shared by every caller that holds
the same instance; the application keeps one instance for all LLM traffic.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

from app.exceptions import CircuitOpenError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

AsyncFn = Callable[[], Awaitable[T]]
SleepFn = Callable[[float], Awaitable[Any]]


async def with_timeout(awaitable: Awaitable[T], seconds: float, what: str = "upstream call") -> T:
    """Await *awaitable*, cancelling it after *seconds*; a timeout becomes UpstreamError."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %.1fs", what, seconds)
        raise UpstreamError(f"{what} timed out after {seconds:.0f}s") from exc


async def retry_with_backoff(
    fn: AsyncFn[T],
    *,
    retries: int = 2,
    base_delay: float = 0.5,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Run *fn*; on failure retry up to *retries* more times.

    Delay before retry ``i`` (0-based) is ``base_delay * 2**i``.  The last
    exception is re-raised when every attempt fails.  Exceptions not listed
    in *retry_on* propagate immediately.
    """
    if retries < 0:
        raise ValueError(f"retries must be >= 0, got {retries}")

    attempt = 0
    while True:
        try:
            return await fn()
        except retry_on as exc:
            if attempt == retries:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt + 1,
                retries + 1,
                exc,
                delay,
            )
            await sleep(delay)
            attempt += 1


class CircuitBreaker:
    """
    Open-on-failure breaker.

    * closed: calls pass through.
    * any failure opens the breaker until ``now + cooldown``.
    * while open, calls fail fast with CircuitOpenError without invoking *fn*.
    * the first successful call after the cooldown closes it again.
    """

    def __init__(
        self,
        cooldown: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown = cooldown
        self._clock = clock
        self._open = False
        self._next_try_at = 0.0

    @property
    def is_open(self) -> bool:
        return self._open and self._clock() < self._next_try_at

    @property
    def retry_in(self) -> float:
        return max(self._next_try_at - self._clock(), 0.0) if self._open else 0.0

    async def call(self, fn: AsyncFn[T]) -> T:
        if self.is_open:
            raise CircuitOpenError(self.retry_in)

        try:
            result = await fn()
        except Exception:
            if not self._open:
                logger.warning("Circuit breaker opened for %.0fs", self.cooldown)
            self._open = True
            self._next_try_at = self._clock() + self.cooldown
            raise

        if self._open:
            logger.info("Circuit breaker closed")
        self._open = False
        return result

    def reset(self) -> None:
        self._open = False
        self._next_try_at = 0.0

    def snapshot(self) -> dict:
        return {"open": self.is_open, "retryIn": round(self.retry_in, 2)}
