"""
Persistent storage for the user's course list.

This module manages the file:

    data/courses.json

The file is the only state the application keeps between runs. Everything
else (duplicate matching, merging, GPA) is recomputed from it.
"""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any, Iterable, Optional

from gwacalc.model import Course, finite_number


def _default_courses_path() -> Path:
    """
    Return the default path of courses.json inside the package.

    Every storage function also accepts an explicit path.
    """
    base_dir = Path(__file__).resolve().parent
    return base_dir / "data" / "courses.json"


def new_course_id() -> str:
    return uuid.uuid4().hex


def course_from_dict(raw: Any) -> Optional[Course]:
    """
    Build a Course from one stored JSON object, or None if it is unusable.

    A missing id is left empty here; load_courses() assigns one.
    """
    if not isinstance(raw, dict):
        return None

    title = raw.get("title")
    title = "" if title is None else str(title)

    units = finite_number(raw.get("units"))
    grade = finite_number(raw.get("grade"))

    cid = raw.get("id")
    cid = str(cid).strip() if cid is not None else ""

    return Course(id=cid, title=title, units=units if units is not None else 0, grade=grade)


def load_courses(path: str | Path | None = None) -> list[Course]:
    """
    Load the course list from courses.json.

    Returns an empty list if the file does not exist or is invalid.
    Entries without an id, or with an id already used, get a fresh one
    so ids stay unique within the list.
    """
    courses_path = Path(path) if path is not None else _default_courses_path()

    # First run: nothing stored yet
    if not courses_path.exists():
        return []

    try:
        data = json.loads(courses_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return []

    raw_courses = data.get("courses", []) if isinstance(data, dict) else []
    if not isinstance(raw_courses, list):
        return []

    out: list[Course] = []
    seen: set[str] = set()
    for raw in raw_courses:
        course = course_from_dict(raw)
        if course is None:
            continue
        if not course.id or course.id in seen:
            course = Course(id=new_course_id(), title=course.title, units=course.units, grade=course.grade)
        seen.add(course.id)
        out.append(course)

    return out


def save_courses(courses: Iterable[Course], path: str | Path | None = None) -> None:
    """
    Save the course list to courses.json.

    Creates parent directories if needed. Order is preserved (display order).
    """
    courses_path = Path(path) if path is not None else _default_courses_path()
    courses_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {"courses": [c.to_dict() for c in courses]}

    courses_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
