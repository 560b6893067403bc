"""Database and schema models for Scripture Counsel."""
from app.models.database_models import (
    BibleVerse,
    ChatRecord,
    ChatSession,
    CounselingState,
    ChatRole,
    CounselingStep,
)
from app.models.schemas import (
    ChatRequest,
    ChatResponse,
    VerseReference,
    Progress,
    HistoryItem,
    HistoryResponse,
    HealthCheckResponse,
    MetricsResponse,
)

__all__ = [
    # Database models
    "BibleVerse",
    "ChatRecord",
    "ChatSession",
    "CounselingState",
    "ChatRole",
    "CounselingStep",
    # Pydantic schemas
    "ChatRequest",
    "ChatResponse",
    "VerseReference",
    "Progress",
    "HistoryItem",
    "HistoryResponse",
    "HealthCheckResponse",
    "MetricsResponse",
]
