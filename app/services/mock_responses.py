"""
Canned counseling content used when MOCK_AI_RESPONSES is on, or as a
substitute for a failed LLM call when MOCK_FALLBACK_ON_ERROR is on.
"""
from typing import Dict, List

from app.models.database_models import CounselingStep

MOCK_QUESTIONS: List[str] = [
    "이 고민은 언제부터 시작되었나요?",
    "이 일로 인해 요즘 가장 힘든 순간은 언제인가요?",
    "주변에 이 이야기를 나눌 수 있는 사람이 있나요?",
    "이 상황이 어떻게 바뀌기를 가장 바라시나요?",
    "요즘 기도하거나 말씀을 묵상할 시간을 가지고 계신가요?",
]

MOCK_ANALYSIS = """\
나눠주신 이야기를 차분히 들어보니, 오랫동안 혼자서 무거운 짐을 지고 계셨던 것 같습니다.

예수님은 마태복음 11:28에서 "수고하고 무거운 짐 진 자들아 다 내게로 오라 내가 너희를 쉬게 하리라"고 말씀하십니다.
또한 빌립보서 4:6은 아무 것도 염려하지 말고 모든 일에 기도와 간구로 하나님께 아뢰라고 권면합니다.

오늘 하루는 해결해야 할 일의 목록보다, 지금 느끼는 마음을 있는 그대로 하나님께 말씀드리는 시간을 가져 보세요.
믿을 만한 한 사람에게 이 고민을 나누는 것도 큰 힘이 됩니다.

오늘의 기도: 하나님, 제 마음의 무거운 짐을 주님께 내려놓습니다. 염려 대신 평안을 주시고, 오늘 하루를 주님과 함께 걸어가게 하옵소서. 예수님의 이름으로 기도합니다. 아멘."""

MOCK_FOLLOWUP = """\
다시 이야기해 주셔서 감사합니다. 지금의 마음도 하나님께서 다 알고 계십니다.

이사야 41:10은 "두려워하지 말라 내가 너와 함께 함이라"고 약속합니다.
작은 한 걸음이라도 괜찮으니, 오늘 할 수 있는 일 한 가지를 정해 보세요.

오늘의 기도: 주님, 두려움 가운데 함께하심을 믿습니다. 오늘 내딛는 작은 걸음을 붙들어 주옵소서. 아멘."""

QUESTION_INTRO = "마음을 나눠주셔서 감사합니다. 더 잘 이해하고 도와드리기 위해 몇 가지 질문을 드릴게요."

MOCK_TEXT_BY_STEP: Dict[CounselingStep, str] = {
    CounselingStep.INITIAL: QUESTION_INTRO,
    CounselingStep.EXPLORATION: QUESTION_INTRO,
    CounselingStep.ANALYSIS: MOCK_ANALYSIS,
    CounselingStep.FOLLOWUP: MOCK_FOLLOWUP,
}


def mock_questions(count: int) -> List[str]:
    """The first *count* canned questions (cycled if more are requested)."""
    return [MOCK_QUESTIONS[i % len(MOCK_QUESTIONS)] for i in range(count)]


def mock_text(step: CounselingStep) -> str:
    return MOCK_TEXT_BY_STEP[step]
