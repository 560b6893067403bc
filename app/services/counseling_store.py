"""
Counseling state persistence.

CounselingSnapshot         — plain dataclass the state machine mutates
InMemoryCounselingStore    — dict keyed by session id, owned by the app
DatabaseCounselingStore    — ``counseling_states`` rows via the ORM

Both stores are last-write-wins: concurrent requests for the same session
are not serialised, so a double-send can lose one of the answers.
"""
from __future__ import annotations

import copy
import dataclasses
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidTransitionError
from app.models.database_models import CounselingState, CounselingStep, utcnow

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class CounselingSnapshot:
    """In-flight view of one session's counseling state."""

    session_id: str
    step: CounselingStep = CounselingStep.INITIAL
    initial_concern: Optional[str] = None
    questions: List[str] = dataclasses.field(default_factory=list)
    answers: List[str] = dataclasses.field(default_factory=list)
    current_question_index: int = 0
    is_complete: bool = False
    created_at: datetime = dataclasses.field(default_factory=utcnow)
    updated_at: datetime = dataclasses.field(default_factory=utcnow)

    def advance_to(self, step: CounselingStep) -> None:
        """Move to *step*; staying put is allowed, moving backwards is not."""
        if step.order < self.step.order:
            raise InvalidTransitionError(
                f"session {self.session_id}: cannot move from {self.step.value} to {step.value}"
            )
        if step != self.step:
            logger.info(
                "session %s: %s → %s", self.session_id, self.step.value, step.value
            )
        self.step = step
        if step == CounselingStep.FOLLOWUP:
            self.is_complete = True
        self.updated_at = utcnow()

    def set_questions(self, questions: List[str]) -> None:
        self.questions = list(questions)
        self.answers = []
        self.current_question_index = 0
        self.updated_at = utcnow()

    def record_answer(self, answer: str) -> None:
        """Append *answer* and advance the question index (capped at len(questions))."""
        if self.current_question_index >= len(self.questions):
            raise InvalidTransitionError(
                f"session {self.session_id}: all {len(self.questions)} questions already answered"
            )
        self.answers.append(answer)
        self.current_question_index += 1
        self.updated_at = utcnow()

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def all_answered(self) -> bool:
        return self.current_question_index >= len(self.questions)

    @property
    def next_question(self) -> Optional[str]:
        if self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None


class InMemoryCounselingStore:
    """Process-local store; holds copies so callers can't mutate it by accident."""

    def __init__(self) -> None:
        self._states: Dict[str, CounselingSnapshot] = {}

    async def get_or_create(self, session_id: str) -> CounselingSnapshot:
        state = self._states.get(session_id)
        if state is None:
            state = CounselingSnapshot(session_id=session_id)
            self._states[session_id] = state
            logger.info("Created counseling state for session %s (memory)", session_id)
        return copy.deepcopy(state)

    async def save(self, snapshot: CounselingSnapshot) -> None:
        self._states[snapshot.session_id] = copy.deepcopy(snapshot)

    async def delete(self, session_id: str) -> None:
        self._states.pop(session_id, None)

    async def purge_expired(self, max_age: timedelta) -> int:
        cutoff = utcnow() - max_age
        expired = [sid for sid, s in self._states.items() if s.created_at < cutoff]
        for sid in expired:
            del self._states[sid]
        return len(expired)

    def clear(self) -> None:
        self._states.clear()

    def session_count(self) -> int:
        return len(self._states)


class DatabaseCounselingStore:
    """Store backed by the ``counseling_states`` table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _load(self, session_id: str) -> Optional[CounselingState]:
        result = await self.db.execute(
            select(CounselingState).where(CounselingState.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, session_id: str) -> CounselingSnapshot:
        row = await self._load(session_id)
        if row is None:
            row = CounselingState(
                session_id=session_id,
                step=CounselingStep.INITIAL,
                questions=[],
                answers=[],
                current_question_index=0,
                is_complete=False,
            )
            self.db.add(row)
            await self.db.flush()
            logger.info("Created counseling state for session %s", session_id)
        return self._to_snapshot(row)

    async def save(self, snapshot: CounselingSnapshot) -> None:
        row = await self._load(snapshot.session_id)
        if row is None:
            row = CounselingState(session_id=snapshot.session_id)
            self.db.add(row)
        row.step = snapshot.step
        row.initial_concern = snapshot.initial_concern
        # New list objects so SQLAlchemy detects the JSON mutation
        row.questions = list(snapshot.questions)
        row.answers = list(snapshot.answers)
        row.current_question_index = snapshot.current_question_index
        row.is_complete = snapshot.is_complete
        row.updated_at = snapshot.updated_at
        await self.db.flush()

    async def delete(self, session_id: str) -> None:
        await self.db.execute(
            delete(CounselingState).where(CounselingState.session_id == session_id)
        )

    async def purge_expired(self, max_age: timedelta) -> int:
        cutoff = utcnow() - max_age
        result = await self.db.execute(
            delete(CounselingState).where(CounselingState.created_at < cutoff)
        )
        await self.db.commit()
        return result.rowcount or 0

    @staticmethod
    def _to_snapshot(row: CounselingState) -> CounselingSnapshot:
        return CounselingSnapshot(
            session_id=row.session_id,
            step=CounselingStep(row.step),
            initial_concern=row.initial_concern,
            questions=list(row.questions or []),
            answers=list(row.answers or []),
            current_question_index=row.current_question_index or 0,
            is_complete=bool(row.is_complete),
            created_at=row.created_at or utcnow(),
            updated_at=row.updated_at or utcnow(),
        )
