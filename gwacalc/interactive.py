from __future__ import annotations

from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from gwacalc.analysis import AnalysisSession
from gwacalc.cli import make_client
from gwacalc.config import Settings
from gwacalc.duplicates import normalize_title
from gwacalc.errors import AnalysisInProgressError, ConfigError, ExtractionInProgressError
from gwacalc.extraction import ExtractionSession, ExtractionState, NextAction
from gwacalc.gemini import GeminiClient, guess_mime_type
from gwacalc.gpa import compute_gpa, format_gpa, validate_grade, validate_units
from gwacalc.merge import apply_merge, merge_courses, plural
from gwacalc.model import Course, CourseData, MergeResult, MergeStrategy
from gwacalc.storage import load_courses, new_course_id, save_courses

console = Console()

STRATEGY_LABELS = {
    MergeStrategy.SKIP_DUPLICATES: "Skip duplicates (keep existing courses)",
    MergeStrategy.UPDATE_DUPLICATES: "Update existing courses with better info from the image",
    MergeStrategy.ADD_ANYWAY: "Add anyway (keep both)",
}


def _println(msg: str = "") -> None:
    console.print(msg)


def _prompt(msg: str) -> str:
    return console.input(msg)


def _grade_text(grade: Optional[float]) -> str:
    return "None" if grade is None else f"{grade:g}"


def _course_table(title: str, courses: list[Course], numbered: bool = True) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    if numbered:
        table.add_column("#", justify="right")
    table.add_column("Course")
    table.add_column("Units", justify="right")
    table.add_column("Grade", justify="right")
    for i, c in enumerate(courses, start=1):
        row = [escape(c.title.strip()) or "(no title)", f"[green]{c.units:g}[/]", f"[yellow]{_grade_text(c.grade)}[/]"]
        if numbered:
            row.insert(0, str(i))
        table.add_row(*row)
    return table


class App:
    """
    Interactive session state: the course file, the preferred strategy
    and lazily created LLM sessions (one in-flight request per type).
    """

    def __init__(self, settings: Settings, path: Optional[Path]) -> None:
        self.settings = settings
        self.path = path
        self.strategy = settings.strategy
        self._client: Optional[GeminiClient] = None
        self._extraction: Optional[ExtractionSession] = None
        self._analysis: Optional[AnalysisSession] = None

    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = make_client(self.settings)
        return self._client

    def extraction(self) -> ExtractionSession:
        if self._extraction is None:
            self._extraction = ExtractionSession(self.client())
        return self._extraction

    def analysis(self) -> AnalysisSession:
        if self._analysis is None:
            self._analysis = AnalysisSession(self.client())
        return self._analysis

    def courses(self) -> list[Course]:
        return load_courses(self.path)

    def save(self, courses: list[Course]) -> None:
        save_courses(courses, self.path)


def run_interactive(settings: Settings, path: Optional[Path] = None) -> None:
    """
    Interactive menu loop.
    """
    app = App(settings, path)

    while True:
        courses = app.courses()
        _print_header(app, courses)

        choice = _prompt(
            "\n[1] Add course\n"
            "[2] View courses\n"
            "[3] Remove a course\n"
            "[4] Extract courses from image\n"
            "[5] AI analysis\n"
            "[6] Duplicate handling preference\n"
            "[0] Exit\n"
            "Select: "
        ).strip()

        if choice == "0":
            _println("Bye.")
            return

        try:
            if choice == "1":
                _flow_add(app)
            elif choice == "2":
                _flow_view(courses)
            elif choice == "3":
                _flow_remove(app)
            elif choice == "4":
                _flow_extract(app)
            elif choice == "5":
                _flow_analysis(app, courses)
            elif choice == "6":
                _flow_strategy(app)
            else:
                _println("Invalid choice.")
        except ConfigError as e:
            _println(f"[red]{escape(str(e))}[/]")


def _print_header(app: App, courses: list[Course]) -> None:
    _println("\n=== GWA Calculator (interactive) ===")
    _println(
        f"Courses: {len(courses)} | GPA: [bold cyan]{format_gpa(compute_gpa(courses))}[/]"
        f" | Duplicates: {app.strategy.value}"
    )


def _ask_float(msg: str, allow_blank: bool = False) -> Optional[float]:
    while True:
        raw = _prompt(msg).strip()
        if not raw and allow_blank:
            return None
        try:
            return float(raw)
        except ValueError:
            _println("Not a number.")


def _flow_add(app: App) -> None:
    """
    Add courses manually. After each course, ask whether to add another.
    """
    while True:
        courses = app.courses()
        title = _prompt(f"Title [Course {len(courses) + 1}]: ").strip()

        try:
            units = validate_units(_ask_float("Units: "))
            grade = validate_grade(_ask_float("Grade 0-4 (blank = not graded yet): ", allow_blank=True))
        except ValueError as e:
            _println(f"Please enter valid details. {e}")
            continue

        course = Course(id=new_course_id(), title=title, units=units, grade=grade)
        courses.append(course)
        app.save(courses)
        _println(f"Added: {escape(title) or '(no title)'}")

        more = _prompt("Add another course? [Y/n]: ").strip().lower()
        if more == "n":
            return


def _flow_view(courses: list[Course]) -> None:
    if not courses:
        _println("No courses yet.")
        return

    console.print(_course_table("Courses", courses))
    _println(f"GPA: [bold cyan]{format_gpa(compute_gpa(courses))}[/]")
    _println("GPA is calculated by dividing total grade points by total units.")


def _flow_remove(app: App) -> None:
    while True:
        courses = app.courses()
        if not courses:
            _println("No courses yet.")
            return

        console.print(_course_table("Remove course", courses))
        pick = _prompt("Enter number to remove (blank = cancel): ").strip()
        if not pick:
            return
        if not pick.isdigit():
            _println("Not a number.")
            continue

        idx = int(pick)
        if not (1 <= idx <= len(courses)):
            _println("Out of range.")
            continue

        removed = courses.pop(idx - 1)
        app.save(courses)
        _println(f"Removed: {escape(removed.title) or '(no title)'}")

        more = _prompt("Remove another course? [Y/n]: ").strip().lower()
        if more == "n":
            return


def _flow_extract(app: App) -> None:
    """
    Upload an image, show the outcome and offer the next actions.
    """
    session = app.extraction()
    image_path: Optional[Path] = None

    while True:
        if image_path is None:
            raw = _prompt("Image file (blank = back): ").strip().strip('"')
            if not raw:
                session.reset()
                return
            image_path = Path(raw).expanduser()

        try:
            image = image_path.read_bytes()
        except OSError as e:
            _println(f"[red]Could not read image: {escape(str(e))}[/]")
            image_path = None
            continue

        try:
            with console.status("Extracting grades from your image... this may take a few moments"):
                outcome = session.submit(image, guess_mime_type(image_path))
        except ExtractionInProgressError as e:
            _println(str(e))
            return

        if outcome.state is ExtractionState.SUCCESS:
            _println(f"[green]{escape(outcome.message)}[/]")
            _confirm_merge(app, list(outcome.courses))
            session.reset()
            return

        color = "red" if outcome.state is ExtractionState.ERROR else "yellow"
        _println(f"[{color}]{escape(outcome.message)}[/]")

        options: list[str] = []
        if NextAction.RETRY in outcome.actions:
            options.append("(r) Try again")
        if NextAction.UPLOAD_DIFFERENT in outcome.actions:
            options.append("(d) Different image")
        options.append("(blank) Close")

        pick = _prompt(" | ".join(options) + ": ").strip().lower()
        if pick == "r" and NextAction.RETRY in outcome.actions:
            continue
        if pick == "d" and NextAction.UPLOAD_DIFFERENT in outcome.actions:
            image_path = None
            continue

        session.reset()
        return


def _confirm_merge(app: App, extracted: list[CourseData]) -> None:
    """
    Merge extracted courses with the preferred strategy.
    Under "skip", found duplicates open the duplicate dialog.
    """
    courses = app.courses()
    console.print(
        _course_table(
            "From image",
            [Course(id="", title=c.title, units=c.units, grade=c.grade) for c in extracted],
            numbered=False,
        )
    )

    result = merge_courses(courses, extracted, app.strategy)

    if result.duplicates_found and app.strategy is MergeStrategy.SKIP_DUPLICATES:
        chosen = _duplicate_dialog(result)
        if chosen is None:
            _println("Cancelled. No courses added.")
            return
        result = merge_courses(courses, extracted, chosen)

    merged = apply_merge(courses, result)
    app.save(merged)
    _println(f"[green]{result.message}[/]")


def _duplicate_dialog(result: MergeResult) -> Optional[MergeStrategy]:
    n_dups = len(result.duplicates_found)
    n_new = len(result.courses_to_add)

    _println(f"\n[bold yellow]Duplicate courses found[/]: {plural(n_dups, 'course')} may already exist.")
    if n_new:
        _println(f"{plural(n_new, 'new course')} will be added either way.")

    table = Table(box=box.SIMPLE)
    table.add_column("Current")
    table.add_column("From image")
    table.add_column("Normalized match")
    for d in result.duplicates_found:
        table.add_row(
            f"{escape(d.existing.title) or 'Untitled Course'}\nUnits: {d.existing.units:g} | Grade: {_grade_text(d.existing.grade)}",
            f"{escape(d.incoming.title) or 'Untitled Course'}\nUnits: {d.incoming.units:g} | Grade: {_grade_text(d.incoming.grade)}",
            f'"{escape(normalize_title(d.existing.title))}"',
        )
    console.print(table)

    strategies = list(MergeStrategy)
    for i, s in enumerate(strategies, start=1):
        _println(f"[{i}] {STRATEGY_LABELS[s]}")
    pick = _prompt("Select (blank = cancel): ").strip()
    if pick.isdigit() and 1 <= int(pick) <= len(strategies):
        return strategies[int(pick) - 1]
    return None


def _flow_analysis(app: App, courses: list[Course]) -> None:
    session = app.analysis()
    try:
        with console.status("Analyzing your academic performance..."):
            text = session.analyze(courses)
    except AnalysisInProgressError as e:
        _println(str(e))
        return

    if text is None:
        _println(f"[red]Analysis error:[/] {escape(session.error or '')}")
    else:
        console.print(Markdown(text))
    session.reset()


def _flow_strategy(app: App) -> None:
    strategies = list(MergeStrategy)
    for i, s in enumerate(strategies, start=1):
        marker = "*" if s is app.strategy else " "
        _println(f"{marker}[{i}] {STRATEGY_LABELS[s]}")

    pick = _prompt("Select (blank = keep): ").strip()
    if pick.isdigit() and 1 <= int(pick) <= len(strategies):
        app.strategy = strategies[int(pick) - 1]
        _println(f"Duplicate handling: {app.strategy.value}")
