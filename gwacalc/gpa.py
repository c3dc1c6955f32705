"""
Units-weighted grade average (GPA / GWA).

    GPA = sum(grade * units) / sum(units)

Courses without a grade (grade=None) or without units are left out of BOTH
sums, so "not graded yet" never pulls the average down like a 0.0 would.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from gwacalc.model import Course

MIN_GRADE = 0.0
MAX_GRADE = 4.0


def compute_gpa(courses: Sequence[Course]) -> Optional[float]:
    total_points = 0.0
    total_units = 0.0

    for c in courses:
        if c.units > 0 and c.grade is not None:
            total_points += c.grade * c.units
            total_units += c.units

    # zero units: the average is undefined, not 0
    if total_units == 0:
        return None
    return total_points / total_units


def format_gpa(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:.2f}"


def validate_units(units: float) -> float:
    """
    Units for a manually entered course must be > 0.
    """
    if not math.isfinite(units) or units <= 0:
        raise ValueError(f"Units must be greater than 0 (got {units}).")
    return units


def validate_grade(grade: Optional[float]) -> Optional[float]:
    if grade is None:
        return None
    if not math.isfinite(grade) or not (MIN_GRADE <= grade <= MAX_GRADE):
        raise ValueError(f"Grade must be between {MIN_GRADE} and {MAX_GRADE} (got {grade}).")
    return grade
