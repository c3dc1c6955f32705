"""
Duplicate detection.

Two courses are duplicates if their normalized titles are equal and non-empty.
Normalization strips a leading course code, so "CS101 Data Structures" and
"Data Structures" are the same course.
"""

from __future__ import annotations

import re
from typing import Any, Sequence

from gwacalc.model import Course, CourseData, DuplicateMatch

# e.g. "cs101", "math-203", "eng 101:", "phys 2010a - "
_COURSE_CODE_RE = re.compile(r"^[a-z]{2,4}[-\s]?\d{2,4}[a-z]?\s*[-:]?\s*", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_SPECIAL_CHARS_RE = re.compile(r"[^\w\s]|_")


def _normalize_once(text: str) -> str:
    text = text.lower().strip()
    text = _COURSE_CODE_RE.sub("", text, count=1)
    text = _WHITESPACE_RE.sub(" ", text)
    text = _SPECIAL_CHARS_RE.sub("", text)
    return text.strip()


def normalize_title(title: Any) -> str:
    """
    Canonical comparison key for a course title.

    Steps: lowercase + trim, strip a leading course code, collapse whitespace,
    drop everything that is not a letter/digit/space, trim.

    Removing punctuation can expose another code or a double space
    ("(CS101) Intro" -> "cs101 intro"), so the steps are repeated until the
    key stops changing. That keeps normalize_title(normalize_title(x)) == normalize_title(x).
    """
    if not isinstance(title, str) or not title:
        return ""

    key = _normalize_once(title)
    while True:
        nxt = _normalize_once(key)
        if nxt == key:
            return key
        key = nxt


def find_duplicates(existing: Sequence[Course], incoming: Sequence[CourseData]) -> list[DuplicateMatch]:
    """
    Pair each incoming course with the FIRST existing course that has the same key.

    - at most one match per incoming course
    - an existing course may be matched by several incoming courses
    - empty keys never match (untitled courses are not duplicates of each other)
    """
    # key per existing course, computed once (list order = tie-break order)
    existing_keys = [(normalize_title(c.title), c) for c in existing]

    matches: list[DuplicateMatch] = []
    for new in incoming:
        key = normalize_title(new.title)
        if not key:
            continue
        for existing_key, course in existing_keys:
            if existing_key == key:
                matches.append(DuplicateMatch(existing=course, incoming=new))
                break

    return matches
