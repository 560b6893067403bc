"""
Chat endpoint.

Routes
------
POST /chat  — one counseling turn → ChatResponse

Per request: rate limit (429) → body validation (400) → credential check
(500) → session upsert → persist user turn → counseling step → persist
assistant turn.  Upstream LLM failures surface as 502.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.dependencies.runtime import enforce_chat_rate_limit, get_counseling_service
from app.exceptions import ConfigurationError
from app.models.database_models import ChatRecord, ChatRole, ChatSession, utcnow
from app.models.schemas import ChatRequest, ChatResponse
from app.services.counseling import CounselingService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(enforce_chat_rate_limit)],
)
async def chat(
    payload: ChatRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    counseling: CounselingService = Depends(get_counseling_service),
):
    """
    Accept one user message, advance the session's counseling flow and
    return the assistant's reply with attached verses and prayer.
    """
    if not settings.MOCK_AI_RESPONSES and not settings.has_openai_key:
        raise ConfigurationError("Server misconfigured: OPENAI_API_KEY missing")

    await _upsert_session(db, payload)
    db.add(
        ChatRecord(
            session_id=payload.session_id,
            role=ChatRole.USER,
            content=payload.message,
            verses=[],
        )
    )
    # The user's turn is kept even if the LLM call below fails.
    await db.commit()

    reply = await counseling.handle_message(payload.session_id, payload.message)

    db.add(
        ChatRecord(
            session_id=payload.session_id,
            role=ChatRole.ASSISTANT,
            content=reply.content,
            verses=[v.model_dump(exclude_none=True) for v in reply.verses],
            prayer=reply.prayer,
        )
    )
    await db.commit()

    logger.info(
        "chat: session=%s step=%s verses=%d mocked=%s",
        payload.session_id,
        reply.step.value,
        len(reply.verses),
        reply.mocked,
    )
    return reply.to_response()


async def _upsert_session(db: AsyncSession, payload: ChatRequest) -> ChatSession:
    result = await db.execute(
        select(ChatSession).where(ChatSession.session_id == payload.session_id)
    )
    session = result.scalar_one_or_none()

    if session is None:
        session = ChatSession(
            session_id=payload.session_id,
            locale=payload.locale,
            user_agent=payload.user_agent,
        )
        db.add(session)
        logger.info("Created new chat session: %s", payload.session_id)
    else:
        if payload.locale is not None:
            session.locale = payload.locale
        if payload.user_agent is not None:
            session.user_agent = payload.user_agent
        session.updated_at = utcnow()

    await db.flush()
    return session
