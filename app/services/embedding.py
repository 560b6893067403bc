"""
Embedding generation and verse similarity search.

Provides:
- OpenAIEmbeddingService: single-call, caching embedder (raises EmbeddingError)
- VerseSearchService.search: brute-force cosine ranking over stored verses
- VerseSearchService.embed_missing_verses: lazily fill verse embeddings
- VerseSearchService.lookup: resolve verse references to their text
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy import or_, and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import EmbeddingError, UpstreamError
from app.models.database_models import BibleVerse
from app.models.schemas import VerseReference
from app.services.resilience import with_timeout
from app.utils.helpers import cosine_similarity, generate_hash

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level embedding cache: sha256(model + text) → vector, LRU-bounded
# ---------------------------------------------------------------------------
EMBEDDING_CACHE_MAX_ENTRIES = 2048

_embedding_cache: "OrderedDict[str, List[float]]" = OrderedDict()


def clear_embedding_cache() -> None:
    _embedding_cache.clear()


def _cache_get(key: str) -> Optional[List[float]]:
    embedding = _embedding_cache.get(key)
    if embedding is not None:
        _embedding_cache.move_to_end(key)
    return embedding


def _cache_put(key: str, embedding: List[float]) -> None:
    _embedding_cache[key] = embedding
    _embedding_cache.move_to_end(key)
    while len(_embedding_cache) > EMBEDDING_CACHE_MAX_ENTRIES:
        _embedding_cache.popitem(last=False)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class VerseMatch:
    """A stored verse together with its similarity to the query."""

    book: str
    chapter: int
    verse: int
    text: str
    translation: str
    similarity: float

    @property
    def reference(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"

    def to_reference(self) -> VerseReference:
        return VerseReference(
            book=self.book, chapter=self.chapter, verse=self.verse, text=self.text
        )


# ---------------------------------------------------------------------------
# Embedding client
# ---------------------------------------------------------------------------

class OpenAIEmbeddingService:
    """
    Embeddings via the OpenAI-compatible ``/embeddings`` endpoint.

    * One outbound call per uncached text; **no internal retry**.
    * Bounded by ``LLM_TIMEOUT`` through cancellation.
    * Not behind the chat circuit breaker: a failed search must not block
      the completion that follows it.
    * In-process content-hash cache (LRU, ``EMBEDDING_CACHE_MAX_ENTRIES``).
    """

    def __init__(self, settings: Settings) -> None:
        self.base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self.api_key = settings.OPENAI_API_KEY
        self.model = settings.OPENAI_EMBED_MODEL
        self.call_timeout = settings.LLM_TIMEOUT
        self.timeout = httpx.Timeout(settings.LLM_TIMEOUT, connect=10.0)

    async def embed_text(self, text: str) -> List[float]:
        """
        Embed a single text string.

        Raises EmbeddingError on blank input or any API failure.
        """
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text")

        text = text.strip()
        key = generate_hash(f"{self.model}\n{text}")
        cached = _cache_get(key)
        if cached is not None:
            return cached

        try:
            embedding = await self._request(text)
        except EmbeddingError:
            raise
        except UpstreamError as exc:
            raise EmbeddingError(str(exc)) from exc

        _cache_put(key, embedding)
        return embedding

    async def _request(self, text: str) -> List[float]:
        if not self.api_key:
            raise EmbeddingError("OPENAI_API_KEY is not configured")

        t0 = time.perf_counter()
        try:
            resp = await with_timeout(self._post(text), self.call_timeout, what="Embedding call")
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if resp.status_code != 200:
            logger.error("/embeddings returned %d: %s", resp.status_code, resp.text[:200])
            raise EmbeddingError(f"Embedding API returned HTTP {resp.status_code}")

        try:
            raw = resp.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingError("Embedding response was malformed") from exc

        if not raw:
            raise EmbeddingError("Embedding response was empty")

        logger.debug(
            "Embedded %d chars → %d-dim in %.1f ms",
            len(text),
            len(raw),
            (time.perf_counter() - t0) * 1000,
        )
        return [float(x) for x in raw]

    async def _post(self, text: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": text},
            )


# ---------------------------------------------------------------------------
# Pure ranking
# ---------------------------------------------------------------------------

def rank_verses(
    query_embedding: Sequence[float],
    verses: Iterable[BibleVerse],
    top_k: int,
) -> List[VerseMatch]:
    """
    Score every verse against *query_embedding* and return the best *top_k*.

    Verses without an embedding, or whose dimension differs from the query,
    are skipped.  Ties keep their load order (stable sort).
    """
    scored: List[VerseMatch] = []
    query = list(query_embedding)
    for verse in verses:
        if not verse.embedding:
            continue
        try:
            score = cosine_similarity(query, verse.embedding)
        except ValueError:
            logger.warning("rank_verses: dimension mismatch for %s — skipped", verse.reference)
            continue
        scored.append(
            VerseMatch(
                book=verse.book,
                chapter=verse.chapter,
                verse=verse.verse,
                text=verse.text,
                translation=verse.translation,
                similarity=score,
            )
        )

    scored.sort(key=lambda m: m.similarity, reverse=True)
    return scored[:top_k]


# ---------------------------------------------------------------------------
# Search service
# ---------------------------------------------------------------------------

class VerseSearchService:
    """Verse store queries backed by the ``bible_verses`` table."""

    def __init__(
        self,
        db: AsyncSession,
        embedder: OpenAIEmbeddingService,
        *,
        scan_limit: int = 1000,
        top_k: int = 5,
    ) -> None:
        self.db = db
        self.embedder = embedder
        self.scan_limit = scan_limit
        self.top_k = top_k

    async def search(self, query: str, top_k: Optional[int] = None) -> List[VerseMatch]:
        """
        Embed *query* and rank at most ``scan_limit`` stored verses by cosine
        similarity.  EmbeddingError propagates to the caller.
        """
        k = top_k or self.top_k
        query_embedding = await self.embedder.embed_text(query)

        result = await self.db.execute(
            select(BibleVerse)
            .where(BibleVerse.embedding.isnot(None))
            .order_by(BibleVerse.id)
            .limit(self.scan_limit)
        )
        candidates = result.scalars().all()
        if not candidates:
            logger.info("search: verse store has no embedded verses")
            return []

        matches = rank_verses(query_embedding, candidates, k)
        logger.info(
            "search: %d candidates → top %d (best=%s)",
            len(candidates),
            len(matches),
            f"{matches[0].reference} {matches[0].similarity:.3f}" if matches else "none",
        )
        return matches

    async def lookup(self, refs: Sequence[VerseReference]) -> List[VerseReference]:
        """Return *refs* with ``text`` filled in from the store where known."""
        if not refs:
            return []

        result = await self.db.execute(
            select(BibleVerse).where(
                or_(
                    *[
                        and_(
                            BibleVerse.book == r.book,
                            BibleVerse.chapter == r.chapter,
                            BibleVerse.verse == r.verse,
                        )
                        for r in refs
                    ]
                )
            )
        )
        known: Dict[Tuple[str, int, int], str] = {
            (v.book, v.chapter, v.verse): v.text for v in result.scalars().all()
        }
        return [
            VerseReference(
                book=r.book,
                chapter=r.chapter,
                verse=r.verse,
                text=r.text or known.get(r.key),
            )
            for r in refs
        ]

    async def embed_missing_verses(self, delay: float = 0.1) -> Tuple[int, int]:
        """
        Compute embeddings for every verse that lacks one and persist them.

        Per-verse failures are logged and skipped.  Returns
        ``(embedded_count, pending_count)``.
        """
        result = await self.db.execute(
            select(BibleVerse).where(BibleVerse.embedding.is_(None)).order_by(BibleVerse.id)
        )
        pending = result.scalars().all()
        logger.info("embed_missing_verses: %d verses pending", len(pending))

        embedded = 0
        for i, verse in enumerate(pending, 1):
            try:
                verse.embedding = await self.embedder.embed_text(verse.text)
                embedded += 1
            except EmbeddingError as exc:
                logger.error("Failed to embed %s: %s", verse.reference, exc)
                continue

            if i % 10 == 0:
                logger.info("embed_missing_verses: %d/%d done", i, len(pending))
                await self.db.commit()
            if delay:
                await asyncio.sleep(delay)

        await self.db.commit()
        logger.info("embed_missing_verses: %d/%d embedded", embedded, len(pending))
        return embedded, len(pending)
