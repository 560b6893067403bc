"""Tests for the counseling state machine, its stores and the counseling service."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.exceptions import InvalidTransitionError, UpstreamError
from app.models.database_models import BibleVerse, CounselingStep, utcnow
from app.services.counseling import CounselingService
from app.services.counseling_store import (
    CounselingSnapshot,
    DatabaseCounselingStore,
    InMemoryCounselingStore,
)
from app.services.embedding import VerseSearchService
from app.services.mock_responses import MOCK_QUESTIONS
from app.services.verse_seed import SEED_VERSES, clear_verses, seed_verses
from tests.conftest import (
    ANALYSIS_TEXT,
    QUESTIONS_JSON,
    FakeChatClient,
    FakeEmbeddingClient,
    make_settings,
)


def _service(db_session, llm=None, store=None, **settings_overrides):
    settings = make_settings(**settings_overrides)
    search = VerseSearchService(db_session, FakeEmbeddingClient(), top_k=settings.VERSE_TOP_K)
    return CounselingService(
        store if store is not None else InMemoryCounselingStore(),
        llm if llm is not None else FakeChatClient(),
        search,
        settings,
    )


# ---------------------------------------------------------------------------
# CounselingSnapshot
# ---------------------------------------------------------------------------

def test_steps_only_move_forward():
    state = CounselingSnapshot(session_id="s")
    state.advance_to(CounselingStep.EXPLORATION)
    state.advance_to(CounselingStep.EXPLORATION)
    state.advance_to(CounselingStep.FOLLOWUP)

    with pytest.raises(InvalidTransitionError):
        state.advance_to(CounselingStep.ANALYSIS)
    with pytest.raises(InvalidTransitionError):
        state.advance_to(CounselingStep.INITIAL)


def test_followup_marks_complete():
    state = CounselingSnapshot(session_id="s")
    assert state.is_complete is False
    state.advance_to(CounselingStep.FOLLOWUP)
    assert state.is_complete is True


def test_record_answer_advances_index_and_stops_at_end():
    state = CounselingSnapshot(session_id="s")
    state.set_questions(["q1", "q2"])
    assert state.next_question == "q1"

    state.record_answer("a1")
    assert state.current_question_index == 1
    assert state.next_question == "q2"
    assert not state.all_answered

    state.record_answer("a2")
    assert state.all_answered
    assert state.next_question is None
    with pytest.raises(InvalidTransitionError):
        state.record_answer("a3")


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_memory_store_round_trip_and_isolation():
    store = InMemoryCounselingStore()
    state = await store.get_or_create("s")
    state.set_questions(["q1"])

    # unsaved mutation is not visible
    assert (await store.get_or_create("s")).questions == []

    await store.save(state)
    assert (await store.get_or_create("s")).questions == ["q1"]

    await store.delete("s")
    assert (await store.get_or_create("s")).questions == []


@pytest.mark.asyncio
async def test_memory_store_purges_expired():
    store = InMemoryCounselingStore()
    old = await store.get_or_create("old")
    old.created_at = utcnow() - timedelta(hours=25)
    await store.save(old)
    await store.get_or_create("fresh")

    assert await store.purge_expired(timedelta(hours=24)) == 1
    assert store.session_count() == 1


@pytest.mark.asyncio
async def test_database_store_round_trip(db_session):
    store = DatabaseCounselingStore(db_session)
    state = await store.get_or_create("db-s")
    assert state.step == CounselingStep.INITIAL

    state.initial_concern = "불안"
    state.set_questions(["q1", "q2"])
    state.advance_to(CounselingStep.EXPLORATION)
    state.record_answer("a1")
    await store.save(state)
    await db_session.commit()

    loaded = await DatabaseCounselingStore(db_session).get_or_create("db-s")
    assert loaded.step == CounselingStep.EXPLORATION
    assert loaded.initial_concern == "불안"
    assert loaded.questions == ["q1", "q2"]
    assert loaded.answers == ["a1"]
    assert loaded.current_question_index == 1


@pytest.mark.asyncio
async def test_database_store_purges_expired(db_session):
    store = DatabaseCounselingStore(db_session)
    await store.get_or_create("recent")
    await db_session.commit()

    assert await store.purge_expired(timedelta(hours=24)) == 0
    assert await store.purge_expired(timedelta(seconds=-60)) == 1


# ---------------------------------------------------------------------------
# CounselingService
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_initial_message_generates_questions(db_session):
    llm = FakeChatClient(replies=[QUESTIONS_JSON])
    service = _service(db_session, llm=llm)

    reply = await service.handle_message("s", "잠을 못 자요")

    assert reply.step == CounselingStep.EXPLORATION
    assert reply.is_question_phase
    assert reply.progress == (0, 4)
    assert reply.next_question == "언제부터 그런 마음이 드셨나요?"
    assert reply.mocked is False
    assert "잠을 못 자요" in llm.calls[0][-1]["content"]


@pytest.mark.asyncio
async def test_short_question_list_is_padded(db_session):
    llm = FakeChatClient(replies=['["하나뿐인 질문?"]'])
    service = _service(db_session, llm=llm)

    reply = await service.handle_message("s", "고민")
    assert reply.questions[0] == "하나뿐인 질문?"
    assert reply.questions[1:] == MOCK_QUESTIONS[1:4]


@pytest.mark.asyncio
async def test_question_count_is_configurable(db_session):
    service = _service(db_session, MOCK_AI_RESPONSES=True, EXPLORATION_QUESTION_COUNT=2)
    reply = await service.handle_message("s", "고민")
    assert reply.progress == (0, 2)

    await service.handle_message("s", "a1")
    final = await service.handle_message("s", "a2")
    assert final.step == CounselingStep.ANALYSIS
    assert final.progress == (2, 2)


@pytest.mark.asyncio
async def test_fourth_answer_triggers_analysis(db_session):
    store = InMemoryCounselingStore()
    llm = FakeChatClient(replies=[QUESTIONS_JSON, ANALYSIS_TEXT])
    service = _service(db_session, llm=llm, store=store)

    await service.handle_message("s", "고민")
    for answer in ["a1", "a2", "a3"]:
        reply = await service.handle_message("s", answer)
        assert reply.step == CounselingStep.EXPLORATION

    reply = await service.handle_message("s", "a4")
    assert reply.step == CounselingStep.ANALYSIS
    assert reply.prayer == "주님, 지친 마음에 쉼을 주옵소서. 아멘."
    assert [(v.book, v.chapter, v.verse) for v in reply.verses] == [("마태복음", 11, 28)]

    state = await store.get_or_create("s")
    assert state.step == CounselingStep.FOLLOWUP
    assert state.is_complete


@pytest.mark.asyncio
async def test_upstream_failure_leaves_state_unchanged(db_session):
    store = InMemoryCounselingStore()
    llm = FakeChatClient()
    llm.error = UpstreamError("down")
    service = _service(db_session, llm=llm, store=store)

    with pytest.raises(UpstreamError):
        await service.handle_message("s", "고민")

    assert store.session_count() == 1
    state = await store.get_or_create("s")
    assert state.step == CounselingStep.INITIAL
    assert state.questions == []


@pytest.mark.asyncio
async def test_fallback_substitutes_canned_answer(db_session):
    llm = FakeChatClient()
    llm.error = UpstreamError("down")
    service = _service(db_session, llm=llm, MOCK_FALLBACK_ON_ERROR=True)

    reply = await service.handle_message("s", "고민")
    assert reply.mocked is True
    assert reply.questions == MOCK_QUESTIONS[:4]


@pytest.mark.asyncio
async def test_mock_mode_full_flow_makes_no_calls(db_session):
    llm = FakeChatClient()
    service = _service(db_session, llm=llm, MOCK_AI_RESPONSES=True, OPENAI_API_KEY="")

    for message in ["고민", "a1", "a2", "a3"]:
        await service.handle_message("s", message)
    analysis = await service.handle_message("s", "a4")
    followup = await service.handle_message("s", "또 다른 고민")

    assert analysis.step == CounselingStep.ANALYSIS
    assert analysis.mocked and analysis.prayer
    assert followup.step == CounselingStep.FOLLOWUP
    assert [(v.book, v.chapter, v.verse) for v in followup.verses] == [("이사야", 41, 10)]
    assert llm.calls == []


# ---------------------------------------------------------------------------
# Verse seeding
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_seed_replaces_translation_and_clear_removes_all(db_session):
    assert await seed_verses(db_session) == len(SEED_VERSES) == 35
    # reseeding replaces rather than duplicates
    assert await seed_verses(db_session) == 35
    await clear_verses(db_session)
    remaining = await db_session.execute(select(func.count(BibleVerse.id)))
    assert remaining.scalar_one() == 0
