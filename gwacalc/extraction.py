"""
Image extraction: result interpretation and the per-upload state machine.

One submission moves through

    IDLE -> EXTRACTING -> NO_CONTENT | UNCERTAIN | EMPTY_SUCCESS | SUCCESS | ERROR

Only SUCCESS lets courses reach the merge resolver. Uncertain results are
never added automatically, even when the model returned rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from gwacalc.errors import ExtractionInProgressError, InvalidStateError, MalformedResponseError, ProviderError
from gwacalc.merge import merge_courses, plural
from gwacalc.model import Course, CourseData, ErrorKind, ExtractionResult, MergeResult, MergeStrategy, finite_number

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payload -> ExtractionResult
# ---------------------------------------------------------------------------


def course_from_payload(raw: Any) -> Optional[CourseData]:
    """
    Convert one extracted row. Returns None if the row is not an object.

    - units that are not a finite number become 0
    - grade that is not a finite number becomes None (absent, NOT 0.0)
    """
    if not isinstance(raw, dict):
        return None

    title = raw.get("title")
    title = "" if title is None else str(title)

    units = finite_number(raw.get("units"))
    grade = finite_number(raw.get("grade"))

    return CourseData(title=title, units=units if units is not None else 0, grade=grade)


def _error_kind(raw: Any) -> ErrorKind:
    if raw is None or raw == "":
        return ErrorKind.NONE
    if isinstance(raw, str):
        try:
            return ErrorKind(raw.strip().lower())
        except ValueError:
            return ErrorKind.OTHER
    return ErrorKind.OTHER


def result_from_payload(data: dict[str, Any]) -> ExtractionResult:
    raw_courses = data.get("courses")
    if not isinstance(raw_courses, list):
        raw_courses = []

    courses = tuple(c for c in (course_from_payload(r) for r in raw_courses) if c is not None)

    message = data.get("message")
    return ExtractionResult(
        success=data.get("success") is True,
        error_kind=_error_kind(data.get("error")),
        message="" if message is None else str(message),
        courses=courses,
        uncertain=data.get("uncertain") is True,
    )


# ---------------------------------------------------------------------------
# Interpretation
# ---------------------------------------------------------------------------


class ExtractionState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    NO_CONTENT = "no_content"
    UNCERTAIN = "uncertain"
    EMPTY_SUCCESS = "empty_success"
    SUCCESS = "success"
    ERROR = "error"


class NextAction(str, Enum):
    RETRY = "retry"
    UPLOAD_DIFFERENT = "upload_different"
    CONFIRM = "confirm"
    CLOSE = "close"


NO_CONTENT_MESSAGE = "This image does not appear to contain academic records or course information."
UNCERTAIN_MESSAGE = (
    "Could not clearly distinguish between the units and grades columns. "
    "No courses were added; try a clearer image or enter the courses manually."
)
EMPTY_MESSAGE = "No courses could be found in this image."


@dataclass(frozen=True)
class ExtractionOutcome:
    state: ExtractionState
    message: str
    courses: tuple[CourseData, ...] = ()
    actions: tuple[NextAction, ...] = field(default_factory=tuple)


def error_outcome(message: str) -> ExtractionOutcome:
    return ExtractionOutcome(
        state=ExtractionState.ERROR,
        message=message or "Failed to extract grades from image.",
        actions=(NextAction.RETRY, NextAction.CLOSE),
    )


def interpret(result: ExtractionResult) -> ExtractionOutcome:
    """
    Classify a structured extraction result.

    Order matters: "not academic" wins over "uncertain", and "uncertain"
    wins over everything else, including success=true with rows.
    """
    if not result.success and result.error_kind is ErrorKind.NO_ACADEMIC_CONTENT:
        return ExtractionOutcome(
            state=ExtractionState.NO_CONTENT,
            message=result.message or NO_CONTENT_MESSAGE,
            actions=(NextAction.RETRY, NextAction.UPLOAD_DIFFERENT, NextAction.CLOSE),
        )

    if result.uncertain or result.error_kind is ErrorKind.UNCERTAIN_DATA:
        return ExtractionOutcome(
            state=ExtractionState.UNCERTAIN,
            message=UNCERTAIN_MESSAGE,
            actions=(NextAction.RETRY, NextAction.UPLOAD_DIFFERENT, NextAction.CLOSE),
        )

    if not result.success:
        return error_outcome(result.message)

    if not result.courses:
        return ExtractionOutcome(
            state=ExtractionState.EMPTY_SUCCESS,
            message=EMPTY_MESSAGE,
            actions=(NextAction.UPLOAD_DIFFERENT, NextAction.CLOSE),
        )

    return ExtractionOutcome(
        state=ExtractionState.SUCCESS,
        message=f"Found {plural(len(result.courses), 'course')}.",
        courses=result.courses,
        actions=(NextAction.CONFIRM, NextAction.CLOSE),
    )


# ---------------------------------------------------------------------------
# Session (one upload at a time)
# ---------------------------------------------------------------------------


class Extractor(Protocol):
    def extract_courses(self, image: bytes, mime_type: str) -> ExtractionResult: ...


class ExtractionSession:
    """
    Drives one image submission and keeps its outcome until reset.

    The session holds no course list: resolve() takes the caller's current
    list and returns a MergeResult the caller applies and persists.
    """

    def __init__(self, client: Extractor) -> None:
        self.client = client
        self.state = ExtractionState.IDLE
        self.outcome: Optional[ExtractionOutcome] = None
        self.in_flight = False

    def submit(self, image: bytes, mime_type: str) -> ExtractionOutcome:
        if self.in_flight:
            raise ExtractionInProgressError("An extraction is already in progress")

        self.in_flight = True
        self.state = ExtractionState.EXTRACTING
        self.outcome = None
        outcome: Optional[ExtractionOutcome] = None
        try:
            result = self.client.extract_courses(image, mime_type)
            outcome = interpret(result)
        except MalformedResponseError as e:
            logger.warning("Malformed extraction response: %s", e)
            outcome = error_outcome(str(e))
        except ProviderError as e:
            logger.warning("Extraction request failed: %s", e)
            outcome = error_outcome(str(e))
        except ValueError as e:
            outcome = ExtractionOutcome(
                state=ExtractionState.ERROR,
                message=str(e),
                actions=(NextAction.UPLOAD_DIFFERENT, NextAction.CLOSE),
            )
        finally:
            self.in_flight = False
            if outcome is None:
                # unexpected error propagates; back to IDLE
                self.state = ExtractionState.IDLE

        self.state = outcome.state
        self.outcome = outcome
        return outcome

    def resolve(
        self,
        existing: Sequence[Course],
        strategy: MergeStrategy = MergeStrategy.SKIP_DUPLICATES,
        allow_empty_titles: bool = False,
    ) -> MergeResult:
        if self.state is not ExtractionState.SUCCESS or self.outcome is None:
            raise InvalidStateError(f"Nothing to merge (state: {self.state.value})")
        return merge_courses(existing, self.outcome.courses, strategy, allow_empty_titles=allow_empty_titles)

    def reset(self) -> None:
        if self.in_flight:
            raise ExtractionInProgressError("Cannot reset while an extraction is in progress")
        self.state = ExtractionState.IDLE
        self.outcome = None
