"""
Pydantic schemas for request/response validation.

Wire format is camelCase (the web and mobile clients send ``sessionId``,
``userAgent``…); Python attributes stay snake_case via field aliases.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# Enums (matching database enums)
class CounselingStepSchema(str, Enum):
    """Counseling steps for API responses."""

    INITIAL = "initial"
    EXPLORATION = "exploration"
    ANALYSIS = "analysis"
    FOLLOWUP = "followup"


class ChatRoleSchema(str, Enum):
    """Chat roles for API responses."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# Chat Schemas
class ChatRequest(_CamelModel):
    """Schema for an inbound chat message."""

    session_id: str = Field(..., min_length=1, max_length=255, alias="sessionId")
    message: str = Field(..., min_length=1, max_length=2000)
    locale: Optional[str] = Field(None, max_length=32)
    user_agent: Optional[str] = Field(None, max_length=512, alias="userAgent")


class VerseReference(_CamelModel):
    """A verse attached to a chat turn."""

    book: str
    chapter: int
    verse: int
    text: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.book, self.chapter, self.verse)


class Progress(_CamelModel):
    """How many exploration questions have been answered."""

    current: int
    total: int


class ChatResponse(_CamelModel):
    """Schema for the chat endpoint response."""

    content: str = Field(..., min_length=1)
    verses: List[VerseReference] = Field(default_factory=list)
    prayer: Optional[str] = None
    mocked: Optional[bool] = None
    counseling_step: Optional[CounselingStepSchema] = Field(None, alias="counselingStep")
    next_question: Optional[str] = Field(None, alias="nextQuestion")
    is_question_phase: bool = Field(False, alias="isQuestionPhase")
    progress: Optional[Progress] = None
    questions: Optional[List[str]] = None


# History Schemas
class HistoryItem(_CamelModel):
    """One chat turn as returned by the history endpoint."""

    role: ChatRoleSchema
    content: str
    verses: List[VerseReference] = Field(default_factory=list)
    prayer: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class HistoryResponse(_CamelModel):
    """Paginated chat history."""

    items: List[HistoryItem]
    next_cursor: Optional[datetime] = Field(None, alias="nextCursor")


# Health / metrics Schemas
class HealthCheckResponse(_CamelModel):
    """Schema for health check endpoint."""

    status: str
    timestamp: datetime
    response_time: str = Field(..., alias="responseTime")
    services: Dict[str, str]
    environment: Dict[str, Any]
    error: Optional[str] = None
    version: str = "0.1.0"


class MetricsResponse(_CamelModel):
    """Process snapshot for the metrics endpoint."""

    timestamp: datetime
    uptime: str
    memory: Dict[str, str]
    database: Dict[str, str]
    environment: Dict[str, str]
    circuit_breaker: Dict[str, Any] = Field(..., alias="circuitBreaker")
