"""
Merge resolution.

Given the existing course list and freshly extracted courses, decide what to add
under one of three strategies:

    skip_duplicates    keep existing courses, drop matching incoming rows
    update_duplicates  fill gaps in existing courses from matching incoming rows
    add_anyway         add matching incoming rows as new courses

merge_courses() never mutates anything. apply_merge() turns its result into the
new course list the caller persists.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from gwacalc.duplicates import find_duplicates
from gwacalc.model import (
    Course,
    CourseData,
    CourseLike,
    DuplicateAction,
    FieldChange,
    GradeChange,
    MergeResult,
    MergeStrategy,
    ResolvedDuplicate,
    UnitsChange,
    apply_changes,
)
from gwacalc.storage import new_course_id


def plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def should_update(existing: Course, incoming: CourseData) -> bool:
    """
    True if the incoming row carries better information than the existing course.

    Never true just because values differ: a populated field is not
    overwritten by a worse one.
    """
    if incoming.grade is not None and existing.grade is None:
        return True

    new_title = incoming.title.strip()
    if new_title and len(new_title) > len(existing.title):
        return True

    if incoming.units > 0 and existing.units <= 0:
        return True

    return False


def _update_changes(existing: Course, incoming: CourseData) -> tuple[FieldChange, ...]:
    changes: list[FieldChange] = []
    # units of 0 means "unknown" for extracted rows -> keep existing units
    units = incoming.units or existing.units
    if units != existing.units:
        changes.append(UnitsChange(units))
    if incoming.grade is not None:
        changes.append(GradeChange(incoming.grade))
    return tuple(changes)


def _summary(n_new: int, n_skipped: int, n_updated: int, n_added_anyway: int) -> str:
    parts: list[str] = []
    if n_new > 0:
        parts.append(f"{plural(n_new, 'new course')} added")
    if n_skipped > 0:
        parts.append(f"{plural(n_skipped, 'duplicate')} skipped")
    if n_updated > 0:
        parts.append(f"{plural(n_updated, 'existing course')} updated")
    if n_added_anyway > 0:
        parts.append(f"{plural(n_added_anyway, 'duplicate')} added anyway")
    return ", ".join(parts) + "."


def merge_courses(
    existing: Sequence[Course],
    incoming: Sequence[CourseData],
    strategy: MergeStrategy = MergeStrategy.SKIP_DUPLICATES,
    allow_empty_titles: bool = False,
) -> MergeResult:
    """
    Compute what to add for `incoming` against `existing` under `strategy`.
    """
    strategy = MergeStrategy(strategy)

    if allow_empty_titles:
        candidates = list(incoming)
    else:
        candidates = [c for c in incoming if c.title and c.title.strip()]

    duplicates = find_duplicates(existing, candidates)

    if not duplicates:
        return MergeResult(
            courses_to_add=tuple(candidates),
            duplicates_found=(),
            message=f"Adding {plural(len(candidates), 'new course')}.",
        )

    # partition by object identity: two equal extracted rows are still two rows
    duplicated_ids = {id(m.incoming) for m in duplicates}
    non_duplicates = [c for c in candidates if id(c) not in duplicated_ids]

    to_add: list[CourseLike] = list(non_duplicates)
    resolved: list[ResolvedDuplicate] = []

    for match in duplicates:
        if strategy is MergeStrategy.UPDATE_DUPLICATES:
            action = DuplicateAction.UPDATE
            if should_update(match.existing, match.incoming):
                to_add.append(apply_changes(match.existing, _update_changes(match.existing, match.incoming)))
        elif strategy is MergeStrategy.ADD_ANYWAY:
            action = DuplicateAction.ADD_ANYWAY
            to_add.append(match.incoming)
        else:
            action = DuplicateAction.SKIP

        resolved.append(ResolvedDuplicate(existing=match.existing, incoming=match.incoming, action=action))

    counts = {a: 0 for a in DuplicateAction}
    for r in resolved:
        counts[r.action] += 1

    message = _summary(
        len(non_duplicates),
        counts[DuplicateAction.SKIP],
        counts[DuplicateAction.UPDATE],
        counts[DuplicateAction.ADD_ANYWAY],
    )

    return MergeResult(courses_to_add=tuple(to_add), duplicates_found=tuple(resolved), message=message)


def apply_merge(
    existing: Sequence[Course],
    result: MergeResult,
    id_factory: Optional[Callable[[], str]] = None,
) -> list[Course]:
    """
    Build the new course list from a merge result.

    - updated courses (same id as an existing course) replace it in place
    - everything else is appended with a fresh id
    The input list is not modified.
    """
    make_id = id_factory or new_course_id

    out = list(existing)
    position = {c.id: i for i, c in enumerate(out)}
    used_ids = set(position)

    for item in result.courses_to_add:
        if isinstance(item, Course) and item.id in position:
            out[position[item.id]] = item
            continue

        cid = make_id()
        while cid in used_ids:
            cid = make_id()
        used_ids.add(cid)

        data = item if isinstance(item, CourseData) else CourseData(item.title, item.units, item.grade)
        out.append(Course.from_data(cid, data))

    return out
