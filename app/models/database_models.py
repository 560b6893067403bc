"""
SQLAlchemy ORM models for the counseling database.
Embeddings are stored as JSON float arrays and scanned in Python.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    Enum as SQLEnum,
    JSON,
    Index,
    UniqueConstraint,
)
from datetime import datetime, timezone
import enum

from app.database import Base


def utcnow() -> datetime:
    """Timezone-aware UTC now, microsecond precision."""
    return datetime.now(timezone.utc)


# Enums
class ChatRole(str, enum.Enum):
    """Author of a chat turn."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class CounselingStep(str, enum.Enum):
    """Steps of the counseling flow, in the only order they may be visited."""

    INITIAL = "initial"
    EXPLORATION = "exploration"
    ANALYSIS = "analysis"
    FOLLOWUP = "followup"

    @property
    def order(self) -> int:
        return _STEP_ORDER[self]


_STEP_ORDER = {
    CounselingStep.INITIAL: 0,
    CounselingStep.EXPLORATION: 1,
    CounselingStep.ANALYSIS: 2,
    CounselingStep.FOLLOWUP: 3,
}


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Models
class BibleVerse(Base):
    """Reference verse with an optional cached embedding."""

    __tablename__ = "bible_verses"
    __table_args__ = (
        UniqueConstraint("translation", "book", "chapter", "verse", name="uq_verse_ref"),
        Index("ix_verse_book_chapter_verse", "book", "chapter", "verse"),
    )

    id = Column(Integer, primary_key=True, index=True)
    book = Column(String(64), nullable=False, index=True)
    chapter = Column(Integer, nullable=False)
    verse = Column(Integer, nullable=False)
    text = Column(Text, nullable=False)
    translation = Column(String(64), nullable=False, default="개역개정")
    embedding = Column(JSON(none_as_null=True), nullable=True)  # List[float]
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def reference(self) -> str:
        return f"{self.book} {self.chapter}:{self.verse}"


class ChatRecord(Base):
    """One persisted conversational turn. Append-only."""

    __tablename__ = "chat_records"
    __table_args__ = (
        Index("ix_chat_records_session_created", "session_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), nullable=False, index=True)
    role = Column(SQLEnum(ChatRole, name="chatrole", values_callable=_enum_values), nullable=False)
    content = Column(Text, nullable=False)
    verses = Column(JSON, nullable=False, default=list)  # [{book, chapter, verse, text?}]
    prayer = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ChatSession(Base):
    """Session metadata, upserted on every message."""

    __tablename__ = "chat_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), nullable=False, unique=True, index=True)
    user_agent = Column(String(512), nullable=True)
    locale = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class CounselingState(Base):
    """Per-session position in the counseling flow."""

    __tablename__ = "counseling_states"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(255), nullable=False, unique=True, index=True)
    step = Column(
        SQLEnum(CounselingStep, name="counselingstep", values_callable=_enum_values),
        nullable=False,
        default=CounselingStep.INITIAL,
    )
    initial_concern = Column(Text, nullable=True)
    questions = Column(JSON, nullable=False, default=list)
    answers = Column(JSON, nullable=False, default=list)
    current_question_index = Column(Integer, nullable=False, default=0)
    is_complete = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
