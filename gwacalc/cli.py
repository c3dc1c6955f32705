"""
CLI (Command Line Interface).

This module provides quick terminal commands, e.g.:

    gwacalc list
    gwacalc add "Data Structures" --units 3 --grade 3.5
    gwacalc remove <number>
    gwacalc gpa
    gwacalc extract <transcript.png> [--strategy update_duplicates]
    gwacalc analyze
    gwacalc ask <prompt>
    gwacalc interactive

Note:
- The interactive UI lives in gwacalc/interactive.py
- This CLI is intentionally simple and prints plain text (no rich formatting)
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from gwacalc.analysis import AnalysisSession
from gwacalc.config import Settings, load_settings
from gwacalc.errors import ConfigError, ProviderError
from gwacalc.extraction import ExtractionSession, ExtractionState, NextAction
from gwacalc.gemini import GeminiClient, guess_mime_type
from gwacalc.gpa import compute_gpa, format_gpa, validate_grade, validate_units
from gwacalc.merge import apply_merge
from gwacalc.model import Course, MergeResult, MergeStrategy
from gwacalc.storage import load_courses, new_course_id, save_courses

ACTION_HINTS = {
    NextAction.RETRY: "retry with the same image",
    NextAction.UPLOAD_DIFFERENT: "use a different (clearer) image",
    NextAction.CONFIRM: "confirm to add the courses",
    NextAction.CLOSE: "or add the courses manually with 'gwacalc add'",
}


def make_client(settings: Settings) -> GeminiClient:
    """
    Build the Gemini client from settings. Raises ConfigError without API key.
    """
    return GeminiClient(settings.require_api_key(), model=settings.model, timeout=settings.timeout)


def format_course(course: Course) -> str:
    title = course.title.strip() or "(no title)"
    grade = "-" if course.grade is None else f"{course.grade:g}"
    return f"{title} | {course.units:g} units | grade {grade}"


def action_hint(actions: Sequence[NextAction]) -> str:
    hints = [ACTION_HINTS[a] for a in actions if a is not NextAction.CONFIRM]
    return "Next: " + ", ".join(hints) + "." if hints else ""


def print_merge_result(result: MergeResult) -> None:
    for dup in result.duplicates_found:
        print(f"  duplicate: {format_course(dup.existing)}  <-  {dup.incoming.title} ({dup.action.value})")
    print(result.message)


def _cmd_list(args: argparse.Namespace, courses: list[Course]) -> int:
    if not courses:
        print("No courses yet.")
        return 0

    for i, c in enumerate(courses, start=1):
        print(f"{i}) {format_course(c)}")
    print(f"GPA: {format_gpa(compute_gpa(courses))}")
    return 0


def _cmd_add(args: argparse.Namespace, courses: list[Course], path: Path | None) -> int:
    """
    Add one course manually.
    """
    try:
        units = validate_units(args.units)
        grade = validate_grade(args.grade)
    except ValueError as e:
        print(str(e))
        return 1

    course = Course(id=new_course_id(), title=(args.title or "").strip(), units=units, grade=grade)
    courses.append(course)
    save_courses(courses, path)
    print(f"Added: {format_course(course)} (courses: {len(courses)})")
    return 0


def _cmd_remove(args: argparse.Namespace, courses: list[Course], path: Path | None) -> int:
    n = args.number
    if not (1 <= n <= len(courses)):
        print(f"Out of range (1-{len(courses)}).")
        return 1

    removed = courses.pop(n - 1)
    save_courses(courses, path)
    print(f"Removed: {format_course(removed)} (courses: {len(courses)})")
    return 0


def _cmd_clear(args: argparse.Namespace, path: Path | None) -> int:
    save_courses([], path)
    print("All courses removed.")
    return 0


def _cmd_gpa(args: argparse.Namespace, courses: list[Course]) -> int:
    print(format_gpa(compute_gpa(courses)))
    return 0


def _cmd_extract(args: argparse.Namespace, settings: Settings, courses: list[Course], path: Path | None) -> int:
    """
    Extract courses from a transcript image and merge them into the list.
    """
    image_path = Path(args.image)
    try:
        image = image_path.read_bytes()
    except OSError as e:
        print(f"Could not read image: {e}")
        return 1

    session = ExtractionSession(make_client(settings))
    print(f"Extracting grades from {image_path.name} ...")
    outcome = session.submit(image, guess_mime_type(image_path))

    print(outcome.message)
    if outcome.state is not ExtractionState.SUCCESS:
        hint = action_hint(outcome.actions)
        if hint:
            print(hint)
        return 1 if outcome.state is ExtractionState.ERROR else 0

    for c in outcome.courses:
        grade = "-" if c.grade is None else f"{c.grade:g}"
        print(f"  {c.title or '(no title)'} | {c.units:g} units | grade {grade}")

    strategy = MergeStrategy(args.strategy) if args.strategy else settings.strategy
    result = session.resolve(courses, strategy, allow_empty_titles=args.allow_empty_titles)
    print_merge_result(result)

    if args.dry_run:
        print("Dry run: nothing saved.")
        return 0

    merged = apply_merge(courses, result)
    save_courses(merged, path)
    print(f"Courses: {len(merged)} | GPA: {format_gpa(compute_gpa(merged))}")
    return 0


def _cmd_analyze(args: argparse.Namespace, settings: Settings, courses: list[Course]) -> int:
    session = AnalysisSession(make_client(settings))
    text = session.analyze(courses)
    if text is None:
        print(f"Analysis error: {session.error}")
        return 1
    print(text)
    return 0


def _cmd_ask(args: argparse.Namespace, settings: Settings) -> int:
    prompt = (args.prompt or "").strip()
    if not prompt:
        print("Please provide a prompt.")
        return 1

    try:
        print(make_client(settings).generate_content(prompt))
    except ProviderError as e:
        print(f"Error: {e}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="gwacalc", description="GWA/GPA calculator with transcript image import")
    parser.add_argument("--data", type=str, default=None, help="Path of courses.json (default: GWACALC_DATA or package data)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show courses and GPA")

    p_add = sub.add_parser("add", help="Add a course manually")
    p_add.add_argument("title", type=str, help="Course title (may be empty)")
    p_add.add_argument("--units", "-u", type=float, required=True, help="Units / credits (> 0)")
    p_add.add_argument("--grade", "-g", type=float, default=None, help="Grade 0-4 (omit if not graded yet)")

    p_remove = sub.add_parser("remove", help="Remove a course by its list number")
    p_remove.add_argument("number", type=int, help="Number shown by 'list'")

    sub.add_parser("gpa", help="Print the weighted average")
    sub.add_parser("clear", help="Remove all courses")

    p_extract = sub.add_parser("extract", help="Extract courses from a transcript image")
    p_extract.add_argument("image", type=str, help="Image file (png, jpg, ...)")
    p_extract.add_argument(
        "--strategy",
        "-s",
        choices=[s.value for s in MergeStrategy],
        default=None,
        help="How to handle duplicates (default: GWACALC_STRATEGY or skip_duplicates)",
    )
    p_extract.add_argument("--allow-empty-titles", action="store_true", help="Keep extracted rows without a title")
    p_extract.add_argument("--dry-run", action="store_true", help="Show the merge result without saving")

    sub.add_parser("analyze", help="AI analysis of your courses")

    p_ask = sub.add_parser("ask", help="Send a free-form prompt to the AI")
    p_ask.add_argument("prompt", type=str, help="Prompt text")

    sub.add_parser("interactive", help="Interactive menu mode")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"Config error: {e}")
        raise SystemExit(2)

    path: Path | None = Path(args.data).expanduser() if args.data else settings.data_path
    courses = load_courses(path)

    try:
        if args.command == "list":
            raise SystemExit(_cmd_list(args, courses))
        if args.command == "add":
            raise SystemExit(_cmd_add(args, courses, path))
        if args.command == "remove":
            raise SystemExit(_cmd_remove(args, courses, path))
        if args.command == "gpa":
            raise SystemExit(_cmd_gpa(args, courses))
        if args.command == "clear":
            raise SystemExit(_cmd_clear(args, path))
        if args.command == "extract":
            raise SystemExit(_cmd_extract(args, settings, courses, path))
        if args.command == "analyze":
            raise SystemExit(_cmd_analyze(args, settings, courses))
        if args.command == "ask":
            raise SystemExit(_cmd_ask(args, settings))

        if args.command == "interactive":
            from gwacalc.interactive import run_interactive

            run_interactive(settings, path)
            raise SystemExit(0)
    except ConfigError as e:
        print(f"Config error: {e}")
        raise SystemExit(2)

    raise SystemExit(2)
