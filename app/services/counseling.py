"""
Counseling service: the multi-step conversation flow.

Public API
----------
CounselingService.handle_message(session_id, message) -> CounselingReply

Flow
----
initial      → generate N clarifying questions, move to exploration
exploration  → store each answer; after the N-th answer run the analysis
               (composite prompt + verse search + one LLM call), pass through
               analysis and settle in followup
followup     → every message is answered on its own: fresh verse search and
               one LLM call, prior answers are not consulted
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, List, Optional, Tuple

from app.config import Settings
from app.exceptions import EmbeddingError, UpstreamError
from app.models.database_models import CounselingStep
from app.models.schemas import ChatResponse, CounselingStepSchema, Progress, VerseReference
from app.services.embedding import VerseMatch, VerseSearchService
from app.services.mock_responses import QUESTION_INTRO, mock_questions, mock_text
from app.services.response_parser import (
    extract_verse_citations,
    parse_question_list,
    split_prayer,
)
from app.utils.helpers import truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class CounselingReply:
    """Returned by CounselingService.handle_message."""

    content: str
    step: CounselingStep
    verses: List[VerseReference] = dataclasses.field(default_factory=list)
    prayer: Optional[str] = None
    next_question: Optional[str] = None
    questions: Optional[List[str]] = None
    is_question_phase: bool = False
    progress: Optional[Tuple[int, int]] = None
    mocked: bool = False

    def to_response(self) -> ChatResponse:
        return ChatResponse(
            content=self.content,
            verses=self.verses,
            prayer=self.prayer,
            mocked=True if self.mocked else None,
            counseling_step=CounselingStepSchema(self.step.value),
            next_question=self.next_question,
            is_question_phase=self.is_question_phase,
            progress=Progress(current=self.progress[0], total=self.progress[1])
            if self.progress
            else None,
            questions=self.questions,
        )


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """\
당신은 공감 능력이 뛰어난 기독교 상담 챗봇입니다. 성경 구절을 근거로 조언하고, \
비판 대신 위로와 실제적 지침을 제공합니다.
성경 구절은 반드시 "책이름 장:절" 형식(예: 마태복음 11:28)으로 인용하세요.
답변의 마지막에는 "오늘의 기도:"로 시작하는 짧은 기도문을 덧붙이세요."""

_QUESTION_PROMPT = """\
다음은 상담을 요청한 사람의 고민입니다.

---
{concern}
---

이 사람의 상황을 더 깊이 이해하기 위한 따뜻하고 구체적인 질문 {count}개를 만들어 주세요.
각 질문은 한 문장으로, 한 번에 하나씩 대답할 수 있어야 합니다.

설명 없이 JSON 배열로만 답하세요:
["질문1", "질문2", ...]"""

_ANALYSIS_PROMPT = """\
## 처음 나눈 고민
{concern}

## 탐색 질문과 답변
{qa_pairs}

## 참고할 수 있는 성경 구절
{verses}

위 내용을 종합하여 이 사람의 상황을 공감하며 정리하고, 관련된 성경 말씀을 근거로
실제적인 조언을 2~4문단으로 전해 주세요."""

_FOLLOWUP_PROMPT = """\
## 상담 요청
{message}

## 참고할 수 있는 성경 구절
{verses}

성경 말씀을 근거로 위로와 실제적인 조언을 전해 주세요."""


# ---------------------------------------------------------------------------
# CounselingService
# ---------------------------------------------------------------------------

class CounselingService:
    """Drives one message through the counseling state machine."""

    def __init__(
        self,
        store: Any,
        llm: Any,
        verse_search: VerseSearchService,
        settings: Settings,
    ) -> None:
        self.store = store
        self.llm = llm
        self.verse_search = verse_search
        self.question_count = max(settings.EXPLORATION_QUESTION_COUNT, 1)
        self.top_k = settings.VERSE_TOP_K
        self.mock = settings.MOCK_AI_RESPONSES
        self.fallback_on_error = settings.MOCK_FALLBACK_ON_ERROR

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def handle_message(self, session_id: str, message: str) -> CounselingReply:
        """
        Dispatch *message* on the session's current step and persist the new
        state.  State is saved only after the step succeeded, so an upstream
        failure leaves the session where it was.
        """
        state = await self.store.get_or_create(session_id)
        logger.info("session %s: handling message at step %s", session_id, state.step.value)

        if state.step == CounselingStep.INITIAL:
            reply = await self._start_exploration(state, message)
        elif state.step == CounselingStep.EXPLORATION:
            reply = await self._continue_exploration(state, message)
        else:
            reply = await self._follow_up(message)

        await self.store.save(state)
        return reply

    # ------------------------------------------------------------------
    # Step handlers
    # ------------------------------------------------------------------

    async def _start_exploration(self, state, concern: str) -> CounselingReply:
        state.initial_concern = concern
        questions, mocked = await self._generate_questions(concern)
        state.set_questions(questions)
        state.advance_to(CounselingStep.EXPLORATION)

        first = questions[0]
        return CounselingReply(
            content=f"{QUESTION_INTRO}\n\n{first}",
            step=CounselingStep.EXPLORATION,
            next_question=first,
            questions=list(questions),
            is_question_phase=True,
            progress=(0, len(questions)),
            mocked=mocked,
        )

    async def _continue_exploration(self, state, answer: str) -> CounselingReply:
        state.record_answer(answer)
        total = state.total_questions

        if not state.all_answered:
            question = state.next_question
            return CounselingReply(
                content=f"답변해 주셔서 감사합니다.\n\n{question}",
                step=CounselingStep.EXPLORATION,
                next_question=question,
                is_question_phase=True,
                progress=(state.current_question_index, total),
            )

        state.advance_to(CounselingStep.ANALYSIS)
        reply = await self._analyse(state)
        state.advance_to(CounselingStep.FOLLOWUP)
        return reply

    async def _analyse(self, state) -> CounselingReply:
        composite = self._composite_text(state)
        matches = await self._search(composite)
        prompt = _ANALYSIS_PROMPT.format(
            concern=state.initial_concern or "(없음)",
            qa_pairs=self._format_qa(state.questions, state.answers),
            verses=self._format_verses(matches),
        )
        answer, mocked = await self._complete(prompt, CounselingStep.ANALYSIS, max_tokens=1200)
        reply = await self._build_answer_reply(answer, matches, CounselingStep.ANALYSIS, mocked)
        reply.progress = (state.current_question_index, state.total_questions)
        return reply

    async def _follow_up(self, message: str) -> CounselingReply:
        matches = await self._search(message)
        prompt = _FOLLOWUP_PROMPT.format(
            message=message,
            verses=self._format_verses(matches),
        )
        answer, mocked = await self._complete(prompt, CounselingStep.FOLLOWUP, max_tokens=800)
        return await self._build_answer_reply(answer, matches, CounselingStep.FOLLOWUP, mocked)

    # ------------------------------------------------------------------
    # LLM / search helpers
    # ------------------------------------------------------------------

    async def _generate_questions(self, concern: str) -> Tuple[List[str], bool]:
        canned = mock_questions(self.question_count)
        if self.mock:
            return canned, True

        prompt = _QUESTION_PROMPT.format(concern=concern, count=self.question_count)
        try:
            raw = await self.llm.complete(self._messages(prompt), max_tokens=600)
        except UpstreamError as exc:
            if not self.fallback_on_error:
                raise
            logger.warning("Question generation failed (%s); using canned questions", exc)
            return canned, True

        questions = parse_question_list(raw, self.question_count)
        if len(questions) < self.question_count:
            logger.warning(
                "LLM produced %d/%d usable questions; padding with canned ones",
                len(questions),
                self.question_count,
            )
            questions.extend(canned[len(questions):])
        return questions, False

    async def _complete(
        self, prompt: str, step: CounselingStep, max_tokens: int
    ) -> Tuple[str, bool]:
        if self.mock:
            return mock_text(step), True
        try:
            return await self.llm.complete(self._messages(prompt), max_tokens=max_tokens), False
        except UpstreamError as exc:
            if not self.fallback_on_error:
                raise
            logger.warning("LLM call failed at %s (%s); using canned answer", step.value, exc)
            return mock_text(step), True

    async def _search(self, query: str) -> List[VerseMatch]:
        """Verse search that degrades to no context verses when embedding fails."""
        if self.mock:
            return []
        try:
            return await self.verse_search.search(query, top_k=self.top_k)
        except EmbeddingError as exc:
            logger.warning("Verse search unavailable (%s); continuing without verses", exc)
            return []

    async def _build_answer_reply(
        self,
        answer: str,
        matches: List[VerseMatch],
        step: CounselingStep,
        mocked: bool,
    ) -> CounselingReply:
        content, prayer = split_prayer(answer)
        citations = extract_verse_citations(answer)
        if citations:
            verses = await self.verse_search.lookup(citations)
        else:
            verses = [m.to_reference() for m in matches]

        logger.info(
            "%s reply: %d chars, %d verses, prayer=%s",
            step.value,
            len(content),
            len(verses),
            "yes" if prayer else "no",
        )
        return CounselingReply(
            content=content,
            step=step,
            verses=verses,
            prayer=prayer,
            mocked=mocked,
        )

    # ------------------------------------------------------------------
    # Prompt context formatters
    # ------------------------------------------------------------------

    @staticmethod
    def _messages(prompt: str) -> List[dict]:
        return [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    @staticmethod
    def _composite_text(state) -> str:
        parts = [state.initial_concern or ""]
        parts.extend(state.answers)
        return "\n".join(p for p in parts if p)

    @staticmethod
    def _format_qa(questions: List[str], answers: List[str]) -> str:
        lines = []
        for i, (q, a) in enumerate(zip(questions, answers), 1):
            lines.append(f"{i}. Q: {q}\n   A: {a}")
        return "\n".join(lines) or "(없음)"

    @staticmethod
    def _format_verses(matches: List[VerseMatch]) -> str:
        if not matches:
            return "(없음)"
        return "\n".join(
            f"- {m.reference} — {truncate_text(m.text, 200)}" for m in matches
        )
