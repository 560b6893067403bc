"""Tests for citation, prayer and question extraction from LLM answers."""
from app.services.response_parser import (
    extract_prayer,
    extract_verse_citations,
    parse_question_list,
    split_prayer,
)


def _refs(text):
    return [(r.book, r.chapter, r.verse) for r in extract_verse_citations(text)]


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------

def test_citation_colon_form():
    assert _refs("마태복음 11:28 말씀을 기억하세요.") == [("마태복음", 11, 28)]


def test_citation_korean_chapter_verse_form():
    assert _refs("시편 23편 1절과 요한복음 3장 16절") == [("시편", 23, 1), ("요한복음", 3, 16)]


def test_citation_prefers_longest_book_name():
    assert _refs("예레미야애가 3:22") == [("예레미야애가", 3, 22)]


def test_citation_deduplicates_in_order():
    text = "빌립보서 4:6, 마태복음 11:28, 그리고 다시 빌립보서 4:6"
    assert _refs(text) == [("빌립보서", 4, 6), ("마태복음", 11, 28)]


def test_citation_ignores_unknown_books_and_plain_text():
    assert _refs("오늘은 3:16에 만나요. 모르는책 1:1") == []
    assert _refs("") == []


# ---------------------------------------------------------------------------
# Prayer
# ---------------------------------------------------------------------------

def test_split_prayer_with_colon():
    content, prayer = split_prayer("위로의 말.\n\n오늘의 기도: 주님 함께하소서. 아멘.")
    assert content == "위로의 말."
    assert prayer == "주님 함께하소서. 아멘."


def test_split_prayer_markdown_heading():
    content, prayer = split_prayer("본문입니다.\n\n**오늘의 기도**\n하나님 감사합니다.")
    assert content == "본문입니다."
    assert prayer == "하나님 감사합니다."


def test_split_prayer_absent():
    assert split_prayer("기도 없는 답변") == ("기도 없는 답변", None)
    assert extract_prayer("기도 없는 답변") is None


def test_split_prayer_marker_only_at_start_keeps_text_as_content():
    content, prayer = split_prayer("오늘의 기도: 주님 도와주세요.")
    assert prayer == "주님 도와주세요."
    assert content == "오늘의 기도: 주님 도와주세요."


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

def test_parse_questions_json_array():
    assert parse_question_list('["첫째?", "둘째?", "셋째?"]', 2) == ["첫째?", "둘째?"]


def test_parse_questions_fenced_json_objects():
    text = '```json\n[{"question": "언제부터요?"}, {"question": "누구와요?"}]\n```'
    assert parse_question_list(text, 4) == ["언제부터요?", "누구와요?"]


def test_parse_questions_numbered_lines():
    text = "다음 질문에 답해 주세요.\n1. 언제부터요?\n2) 누구와요?\n- 어디서요?"
    assert parse_question_list(text, 4) == ["언제부터요?", "누구와요?", "어디서요?"]


def test_parse_questions_empty():
    assert parse_question_list("", 4) == []
