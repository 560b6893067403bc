"""
Chat history endpoint.

GET /history  — cursor-paginated chat turns for one session, oldest first,
                with optional substring filter and date range.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.database import get_db
from app.models.database_models import ChatRecord
from app.models.schemas import HistoryItem, HistoryResponse, VerseReference
from app.utils.helpers import as_utc, escape_like, parse_iso_datetime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/history", response_model=HistoryResponse, response_model_exclude_none=True)
async def get_history(
    session_id: str = Query("", alias="sessionId"),
    cursor: Optional[str] = Query(None, description="ISO createdAt of the last item seen"),
    limit: Optional[str] = Query(None, description="Page size (1–100, default 20)"),
    q: Optional[str] = Query(None, description="Case-insensitive substring filter"),
    date_from: Optional[str] = Query(None, alias="from", description="ISO lower bound (inclusive)"),
    date_to: Optional[str] = Query(None, alias="to", description="ISO upper bound (inclusive)"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> HistoryResponse:
    """
    Return chat turns for *sessionId* ordered by creation time.

    ### Parameters
    | name      | default | notes                                         |
    |-----------|---------|-----------------------------------------------|
    | sessionId | —       | required                                      |
    | cursor    | null    | only turns created strictly after this time   |
    | limit     | 20      | invalid or out-of-range values fall back to 20 |
    | q         | null    | substring match on content                    |
    | from / to | null    | inclusive createdAt bounds                    |
    """
    session_id = session_id.strip()
    if not session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="sessionId is required",
        )

    page_size = _parse_limit(limit, settings.HISTORY_DEFAULT_LIMIT, settings.HISTORY_MAX_LIMIT)
    after = _parse_date("cursor", cursor)
    lower = _parse_date("from", date_from)
    upper = _parse_date("to", date_to)

    stmt = select(ChatRecord).where(ChatRecord.session_id == session_id)
    if after is not None:
        stmt = stmt.where(ChatRecord.created_at > after)
    if lower is not None:
        stmt = stmt.where(ChatRecord.created_at >= lower)
    if upper is not None:
        stmt = stmt.where(ChatRecord.created_at <= upper)
    if q and q.strip():
        pattern = f"%{escape_like(q.strip())}%"
        stmt = stmt.where(ChatRecord.content.ilike(pattern, escape="\\"))

    stmt = stmt.order_by(ChatRecord.created_at, ChatRecord.id).limit(page_size + 1)
    result = await db.execute(stmt)
    records = result.scalars().all()

    has_more = len(records) > page_size
    page = records[:page_size]
    items: List[HistoryItem] = [_to_item(r) for r in page]
    next_cursor = items[-1].created_at if has_more and items else None

    logger.info(
        "history: session=%s → %d items (has_more=%s)", session_id, len(items), has_more
    )
    return HistoryResponse(items=items, next_cursor=next_cursor)


def _parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if 0 < value <= maximum else default


def _parse_date(name: str, raw: Optional[str]) -> Optional[datetime]:
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {name}: expected an ISO-8601 timestamp",
        )


def _to_item(record: ChatRecord) -> HistoryItem:
    return HistoryItem(
        role=record.role.value,
        content=record.content,
        verses=[VerseReference(**v) for v in (record.verses or [])],
        prayer=record.prayer,
        created_at=as_utc(record.created_at),
    )
