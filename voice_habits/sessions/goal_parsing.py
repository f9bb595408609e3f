# FILE: voice_habits/sessions/goal_parsing.py
"""
Transcript to goals segmentation.

1. Numbered lists ("1. ... 2) ...") split before each marker.
2. Otherwise the first delimiter yielding more than one fragment wins:
   " and ", comma, " also ", period, " next ", " finally ", " lastly ".
3. Fragments are trimmed, empties dropped, the list capped at max_goals.
4. Non-empty input never yields an empty list.
"""
import re
from typing import List

MAX_GOALS = 5

NUMERIC_MARKER = re.compile(r"\d+[.)]")
NUMERIC_SPLIT = re.compile(r"(?<!\d)(?=\d+[.)])")
LEADING_MARKER = re.compile(r"^\s*\d+[.)]\s*")

DELIMITERS = [
    re.compile(r"\s+and\s+", re.IGNORECASE),
    re.compile(r"\s*,\s*"),
    re.compile(r"\s+also\s+", re.IGNORECASE),
    re.compile(r"\s*\.\s*"),
    re.compile(r"\s+next\s+", re.IGNORECASE),
    re.compile(r"\s+finally\s+", re.IGNORECASE),
    re.compile(r"\s+lastly\s+", re.IGNORECASE),
]


def _clean(fragments: List[str]) -> List[str]:
    return [f.strip() for f in fragments if f and f.strip()]


def extract_goals(transcript: str, max_goals: int = MAX_GOALS) -> List[str]:
    """Split a spoken transcript into at most max_goals goals"""
    text = (transcript or "").strip()
    if not text:
        return []

    goals: List[str] = []
    if NUMERIC_MARKER.search(text):
        goals = _clean([LEADING_MARKER.sub("", part) for part in NUMERIC_SPLIT.split(text)])
    else:
        for delimiter in DELIMITERS:
            fragments = _clean(delimiter.split(text))
            if len(fragments) > 1:
                goals = fragments
                break

    if not goals:
        goals = [text]

    return goals[:max(1, min(max_goals, MAX_GOALS))]
