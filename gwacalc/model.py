"""
Central data model definitions used across the project.

This module defines the canonical structure of courses and merge/extraction
results so that:
- all modules share the same field names
- the duplicate matcher, merge resolver and extraction interpreter can stay
  pure functions over these types
- the JSON store and the Gemini adapter convert at one place only
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional, Union


@dataclass(frozen=True)
class CourseData:
    """
    One course row as produced by image extraction (no id yet).
    """

    title: str
    units: float
    grade: Optional[float]


@dataclass(frozen=True)
class Course:
    """
    Represents one course as stored in courses.json.

    grade=None means "no grade yet" and is excluded from the GPA;
    it is not the same as a grade of 0.0.
    """

    id: str
    title: str
    units: float
    grade: Optional[float]

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "units": self.units, "grade": self.grade}

    @classmethod
    def from_data(cls, course_id: str, data: CourseData) -> "Course":
        return cls(id=course_id, title=data.title, units=data.units, grade=data.grade)


# Either a brand new row (CourseData, id assigned by the caller)
# or an updated copy of an existing Course (keeps its id).
CourseLike = Union[Course, CourseData]


class MergeStrategy(str, Enum):
    SKIP_DUPLICATES = "skip_duplicates"
    UPDATE_DUPLICATES = "update_duplicates"
    ADD_ANYWAY = "add_anyway"


class DuplicateAction(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    ADD_ANYWAY = "add_anyway"


@dataclass(frozen=True)
class DuplicateMatch:
    existing: Course
    incoming: CourseData


@dataclass(frozen=True)
class ResolvedDuplicate:
    existing: Course
    incoming: CourseData
    action: DuplicateAction


@dataclass(frozen=True)
class UnitsChange:
    value: float


@dataclass(frozen=True)
class GradeChange:
    value: float


FieldChange = Union[UnitsChange, GradeChange]


def apply_changes(course: Course, changes: tuple[FieldChange, ...]) -> Course:
    """
    Return a copy of `course` with the given field changes applied.

    The title is never part of a change set.
    """
    out = course
    for change in changes:
        if isinstance(change, UnitsChange):
            out = replace(out, units=change.value)
        elif isinstance(change, GradeChange):
            out = replace(out, grade=change.value)
        else:
            raise TypeError(f"Unknown field change: {change!r}")
    return out


@dataclass(frozen=True)
class MergeResult:
    courses_to_add: tuple[CourseLike, ...]
    duplicates_found: tuple[ResolvedDuplicate, ...]
    message: str


class ErrorKind(str, Enum):
    NONE = "none"
    NO_ACADEMIC_CONTENT = "no_academic_content"
    UNCERTAIN_DATA = "uncertain_data"
    OTHER = "other"


@dataclass(frozen=True)
class ExtractionResult:
    """
    Structured answer of one image extraction call.
    """

    success: bool
    error_kind: ErrorKind = ErrorKind.NONE
    message: str = ""
    courses: tuple[CourseData, ...] = field(default_factory=tuple)
    uncertain: bool = False


def finite_number(x: Any) -> Optional[float]:
    """
    Return x if it is a finite int/float, else None.

    bool is an int subclass, but true/false is not a number here.
    """
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return None
    try:
        value = float(x)
    except OverflowError:
        return None
    if not math.isfinite(value):
        return None
    return x
