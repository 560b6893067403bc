"""
Shared fixtures for Scripture Counsel backend tests.

Each test gets a fresh SQLite database (aiosqlite) in its tmp dir; set
TEST_DATABASE_URL to run against PostgreSQL instead.  Settings, the chat
client and the embedding client are overridden per test, and the app's
runtime state (rate limiter, breaker, memory store) is reset around every
test, so no test touches the network.
"""
from __future__ import annotations

import os
from typing import AsyncGenerator, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Override DATABASE_URL *before* any app module is imported, so that
# settings.DATABASE_URL and the global engine never point at a real server.
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL or "sqlite+aiosqlite:///./test_import.db"

from app.config import Settings, get_settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.dependencies.runtime import (  # noqa: E402
    get_chat_client,
    get_embedding_client,
    reset_runtime_state,
)
from app.exceptions import EmbeddingError  # noqa: E402
from app.main import app  # noqa: E402
from app.models.database_models import BibleVerse  # noqa: E402
from app.services.embedding import clear_embedding_cache  # noqa: E402


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeChatClient:
    """Scripted stand-in for ResilientChatService."""

    def __init__(self, replies: Optional[Sequence[str]] = None, default: str = "괜찮습니다.") -> None:
        self.replies: List[str] = list(replies or [])
        self.default = default
        self.error: Optional[Exception] = None
        self.calls: List[List[Dict[str, str]]] = []

    async def complete(self, messages, max_tokens: int = 800) -> str:
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return self.default


class FakeEmbeddingClient:
    """Returns one fixed vector for every text, or raises if told to."""

    def __init__(self, vector: Optional[List[float]] = None) -> None:
        self.vector = vector or [1.0, 0.0, 0.0]
        self.fail = False
        self.calls: List[str] = []

    async def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding service unavailable")
        return list(self.vector)


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL=os.environ["DATABASE_URL"],
        OPENAI_API_KEY="test-key",
        MOCK_AI_RESPONSES=False,
        MOCK_FALLBACK_ON_ERROR=False,
        COUNSELING_STORE="database",
        EXPLORATION_QUESTION_COUNT=4,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


QUESTIONS_JSON = (
    '["언제부터 그런 마음이 드셨나요?", "가장 힘든 순간은 언제인가요?", '
    '"도움을 청할 사람이 있나요?", "어떤 변화를 바라시나요?"]'
)

ANALYSIS_TEXT = (
    "많이 지치셨던 것 같습니다. 마태복음 11:28 말씀처럼 주님께 짐을 내려놓으세요.\n\n"
    "오늘의 기도: 주님, 지친 마음에 쉼을 주옵소서. 아멘."
)


# ---------------------------------------------------------------------------
# Per-test fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a DB session on a freshly created schema.  The database is
    dropped with the tmp dir (SQLite) or via drop_all (TEST_DATABASE_URL).
    """
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    if TEST_DATABASE_URL:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_llm() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def fake_embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    test_settings: Settings,
    fake_llm: FakeChatClient,
    fake_embedder: FakeEmbeddingClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    httpx AsyncClient wired to the FastAPI app with the DB session, settings
    and outbound clients overridden.
    """

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_chat_client] = lambda: fake_llm
    app.dependency_overrides[get_embedding_client] = lambda: fake_embedder
    reset_runtime_state(app)
    clear_embedding_cache()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_runtime_state(app)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def add_verse(
    db: AsyncSession,
    book: str,
    chapter: int,
    verse: int,
    text: str,
    embedding: Optional[List[float]] = None,
) -> BibleVerse:
    row = BibleVerse(
        book=book,
        chapter=chapter,
        verse=verse,
        text=text,
        translation="개역개정",
        embedding=embedding,
    )
    db.add(row)
    await db.commit()
    return row


def chat_body(session_id: str = "session-1", message: str = "요즘 너무 지쳐요") -> dict:
    return {"sessionId": session_id, "message": message}
