"""
Best-effort extraction of structure from free-form LLM answers.

The model is asked to cite verses as ``<book> <chapter>:<verse>`` and to end
with a "오늘의 기도" (today's prayer) section; these helpers scrape both back
out.  Phrasing drift in the model's output degrades results silently: no
citation found → empty list, no marker → no prayer.
"""
from __future__ import annotations

import json
import re
from typing import Any, List, Optional, Tuple

from app.models.schemas import VerseReference

# 개역개정 book names, canonical order
KOREAN_BOOKS: Tuple[str, ...] = (
    "창세기", "출애굽기", "레위기", "민수기", "신명기", "여호수아", "사사기", "룻기",
    "사무엘상", "사무엘하", "열왕기상", "열왕기하", "역대상", "역대하", "에스라",
    "느헤미야", "에스더", "욥기", "시편", "잠언", "전도서", "아가", "이사야",
    "예레미야", "예레미야애가", "에스겔", "다니엘", "호세아", "요엘", "아모스",
    "오바댜", "요나", "미가", "나훔", "하박국", "스바냐", "학개", "스가랴", "말라기",
    "마태복음", "마가복음", "누가복음", "요한복음", "사도행전", "로마서",
    "고린도전서", "고린도후서", "갈라디아서", "에베소서", "빌립보서", "골로새서",
    "데살로니가전서", "데살로니가후서", "디모데전서", "디모데후서", "디도서",
    "빌레몬서", "히브리서", "야고보서", "베드로전서", "베드로후서", "요한일서",
    "요한이서", "요한삼서", "유다서", "요한계시록",
)

PRAYER_MARKER = "오늘의 기도"

# Longest names first so 예레미야애가 wins over 예레미야.
_BOOK_ALTERNATION = "|".join(
    re.escape(b) for b in sorted(KOREAN_BOOKS, key=len, reverse=True)
)

# 마태복음 11:28 · 마태복음 11장 28절 · 시편 23편 1절 · 요한복음 3:16-18
_CITATION_RE = re.compile(
    rf"({_BOOK_ALTERNATION})\s*(\d{{1,3}})\s*(?::|장|편)\s*(\d{{1,3}})(?:\s*절)?"
)

_PRAYER_RE = re.compile(r"[#*\[(>\s-]*오늘의\s*기도[\])*:：\s-]*")

_LIST_MARKER_RE = re.compile(r"^\s*(?:\d+\s*[.)]|[-*•]|Q\d+\s*[.:)]?)\s*")


def extract_verse_citations(text: str) -> List[VerseReference]:
    """Return every distinct verse citation in *text*, in order of appearance."""
    if not text:
        return []
    seen = set()
    refs: List[VerseReference] = []
    for match in _CITATION_RE.finditer(text):
        book, chapter, verse = match.group(1), int(match.group(2)), int(match.group(3))
        if chapter == 0 or verse == 0:
            continue
        key = (book, chapter, verse)
        if key in seen:
            continue
        seen.add(key)
        refs.append(VerseReference(book=book, chapter=chapter, verse=verse))
    return refs


def split_prayer(text: str) -> Tuple[str, Optional[str]]:
    """
    Split *text* at the "오늘의 기도" marker.

    Returns ``(content, prayer)``; prayer is None when the marker is absent or
    nothing follows it.  If nothing precedes the marker the whole text is kept
    as content.
    """
    if not text:
        return text, None
    match = _PRAYER_RE.search(text)
    if match is None:
        return text.strip(), None

    prayer = text[match.end():].strip() or None
    content = text[:match.start()].rstrip()
    if not content:
        content = text.strip()
    return content, prayer


def extract_prayer(text: str) -> Optional[str]:
    """Return the prayer section of *text*, or None."""
    return split_prayer(text)[1]


def parse_question_list(text: str, limit: int) -> List[str]:
    """
    Parse up to *limit* questions from an LLM answer.

    Accepts a JSON array (optionally wrapped in a markdown fence, items either
    strings or ``{"question": ...}`` objects) or a numbered / bulleted list.
    """
    if not text:
        return []

    stripped = _strip_code_fences(text.strip())
    parsed = _try_json_array(stripped)
    if parsed is not None:
        questions = [_question_text(item) for item in parsed]
    else:
        lines = [line for line in stripped.splitlines() if line.strip()]
        marked = [line for line in lines if _LIST_MARKER_RE.match(line)]
        source = marked or lines
        questions = [_LIST_MARKER_RE.sub("", line, count=1).strip() for line in source]

    return [q for q in questions if q][:limit]


def _question_text(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        return str(item.get("question") or item.get("text") or "").strip()
    return ""


def _try_json_array(text: str) -> Optional[list]:
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        value = json.loads(text[start:end + 1])
    except ValueError:
        return None
    return value if isinstance(value, list) else None


def _strip_code_fences(text: str) -> str:
    """Remove ```json / ``` delimiters that LLMs often wrap output in."""
    text = re.sub(r"^```(?:json|text)?\s*\n?", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\n?```\s*$", "", text)
    return text.strip()
