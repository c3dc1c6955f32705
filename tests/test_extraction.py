"""
Unit tests for extraction result handling.

Contract:
- not academic -> NO_CONTENT, uncertain -> UNCERTAIN (never auto-added)
- provider/parse failures -> ERROR with a retry option
- only SUCCESS hands courses to the merge resolver
"""

import math
import unittest
from types import SimpleNamespace
from unittest import mock

from gwacalc.errors import (
    ExtractionInProgressError,
    InvalidStateError,
    MalformedResponseError,
    ProviderError,
)
from gwacalc.extraction import (
    ExtractionSession,
    ExtractionState,
    NextAction,
    course_from_payload,
    interpret,
    result_from_payload,
)
from gwacalc.gemini import GeminiClient
from gwacalc.model import Course, CourseData, ErrorKind, ExtractionResult, MergeStrategy


class FakeClient:
    def __init__(self, result=None, error=None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    def extract_courses(self, image, mime_type):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class TestPayload(unittest.TestCase):
    def test_units_coercion(self) -> None:
        self.assertEqual(course_from_payload({"title": "A", "units": "3", "grade": 3.0}).units, 0)
        self.assertEqual(course_from_payload({"title": "A", "units": None, "grade": 3.0}).units, 0)
        self.assertEqual(course_from_payload({"title": "A", "units": math.nan, "grade": 3.0}).units, 0)
        self.assertEqual(course_from_payload({"title": "A", "units": 4, "grade": 3.0}).units, 4)
        self.assertEqual(course_from_payload({"title": "A", "units": 10**400, "grade": 3.0}).units, 0)
        self.assertIsNone(course_from_payload({"title": "A", "units": 3, "grade": -(10**400)}).grade)

    def test_grade_absent_is_not_zero(self) -> None:
        self.assertIsNone(course_from_payload({"title": "A", "units": 3, "grade": None}).grade)
        self.assertIsNone(course_from_payload({"title": "A", "units": 3, "grade": "B+"}).grade)
        self.assertIsNone(course_from_payload({"title": "A", "units": 3, "grade": math.inf}).grade)
        self.assertIsNone(course_from_payload({"title": "A", "units": 3, "grade": True}).grade)
        self.assertEqual(course_from_payload({"title": "A", "units": 3, "grade": 0}).grade, 0)

    def test_title_and_bad_rows(self) -> None:
        self.assertEqual(course_from_payload({"title": None, "units": 3}).title, "")
        self.assertIsNone(course_from_payload("Algebra"))

    def test_result_from_payload(self) -> None:
        r = result_from_payload(
            {
                "success": False,
                "error": "no_academic_content",
                "message": "Not a transcript",
                "courses": [],
                "uncertain": False,
            }
        )
        self.assertFalse(r.success)
        self.assertEqual(r.error_kind, ErrorKind.NO_ACADEMIC_CONTENT)
        self.assertEqual(r.message, "Not a transcript")

        self.assertEqual(result_from_payload({"success": False, "error": "quota"}).error_kind, ErrorKind.OTHER)
        self.assertEqual(result_from_payload({"success": True, "error": None}).error_kind, ErrorKind.NONE)

        r = result_from_payload({"success": True, "courses": "nope"})
        self.assertEqual(r.courses, ())
        self.assertFalse(r.uncertain)

        r = result_from_payload({"success": True, "courses": [{"title": "A", "units": 3, "grade": 3.5}, 42]})
        self.assertEqual(r.courses, (CourseData("A", 3, 3.5),))


class TestInterpret(unittest.TestCase):
    def test_no_academic_content(self) -> None:
        out = interpret(
            result_from_payload(
                {"success": False, "error": "no_academic_content", "courses": [], "uncertain": False}
            )
        )
        self.assertEqual(out.state, ExtractionState.NO_CONTENT)
        self.assertEqual(out.courses, ())
        self.assertIn(NextAction.RETRY, out.actions)

    def test_uncertain_blocks_courses_even_on_success(self) -> None:
        out = interpret(
            result_from_payload(
                {
                    "success": True,
                    "error": None,
                    "courses": [{"title": "Algebra", "units": 3, "grade": 3.5}],
                    "uncertain": True,
                }
            )
        )
        self.assertEqual(out.state, ExtractionState.UNCERTAIN)
        self.assertEqual(out.courses, ())
        self.assertNotIn(NextAction.CONFIRM, out.actions)

    def test_uncertain_data_error(self) -> None:
        out = interpret(ExtractionResult(success=False, error_kind=ErrorKind.UNCERTAIN_DATA))
        self.assertEqual(out.state, ExtractionState.UNCERTAIN)

    def test_success(self) -> None:
        out = interpret(
            result_from_payload(
                {"success": True, "courses": [{"title": "Algebra", "units": 3, "grade": 3.5}], "uncertain": False}
            )
        )
        self.assertEqual(out.state, ExtractionState.SUCCESS)
        self.assertEqual(out.courses, (CourseData("Algebra", 3, 3.5),))
        self.assertIn(NextAction.CONFIRM, out.actions)

    def test_empty_success(self) -> None:
        out = interpret(ExtractionResult(success=True, courses=()))
        self.assertEqual(out.state, ExtractionState.EMPTY_SUCCESS)
        self.assertEqual(out.courses, ())

    def test_other_failure_keeps_message(self) -> None:
        out = interpret(ExtractionResult(success=False, error_kind=ErrorKind.OTHER, message="Quota exceeded"))
        self.assertEqual(out.state, ExtractionState.ERROR)
        self.assertEqual(out.message, "Quota exceeded")

    def test_every_failure_offers_a_next_action(self) -> None:
        results = [
            ExtractionResult(success=False, error_kind=ErrorKind.NO_ACADEMIC_CONTENT),
            ExtractionResult(success=False, error_kind=ErrorKind.UNCERTAIN_DATA, uncertain=True),
            ExtractionResult(success=False, error_kind=ErrorKind.OTHER),
            ExtractionResult(success=True),
        ]
        for r in results:
            out = interpret(r)
            self.assertNotEqual(out.state, ExtractionState.SUCCESS)
            self.assertTrue(out.message)
            self.assertTrue(out.actions)
            self.assertNotIn(NextAction.CONFIRM, out.actions)


class TestExtractionSession(unittest.TestCase):
    def test_success_then_resolve(self) -> None:
        client = FakeClient(ExtractionResult(success=True, courses=(CourseData("Data Structures", 3, 3.3),)))
        session = ExtractionSession(client)
        self.assertEqual(session.state, ExtractionState.IDLE)

        out = session.submit(b"img", "image/png")
        self.assertEqual(out.state, ExtractionState.SUCCESS)
        self.assertFalse(session.in_flight)

        existing = [Course(id="1", title="CS101 Data Structures", units=3, grade=None)]
        result = session.resolve(existing, MergeStrategy.UPDATE_DUPLICATES)
        self.assertEqual(result.courses_to_add, (Course(id="1", title="CS101 Data Structures", units=3, grade=3.3),))

    def test_provider_error_becomes_error_state(self) -> None:
        session = ExtractionSession(FakeClient(error=ProviderError("Could not reach Gemini API")))
        out = session.submit(b"img", "image/png")

        self.assertEqual(out.state, ExtractionState.ERROR)
        self.assertEqual(out.message, "Could not reach Gemini API")
        self.assertIn(NextAction.RETRY, out.actions)
        self.assertFalse(session.in_flight)

    def test_malformed_response_becomes_error_state(self) -> None:
        session = ExtractionSession(FakeClient(error=MalformedResponseError("Could not find valid JSON in API response")))
        out = session.submit(b"img", "image/png")
        self.assertEqual(session.state, ExtractionState.ERROR)
        self.assertIn("valid JSON", out.message)

    def test_bad_input_asks_for_another_image(self) -> None:
        session = ExtractionSession(FakeClient(error=ValueError("Please select an image file")))
        out = session.submit(b"%PDF", "application/pdf")
        self.assertEqual(out.state, ExtractionState.ERROR)
        self.assertIn(NextAction.UPLOAD_DIFFERENT, out.actions)

    def test_resolve_requires_success(self) -> None:
        session = ExtractionSession(FakeClient(ExtractionResult(success=True, uncertain=True)))
        with self.assertRaises(InvalidStateError):
            session.resolve([])

        session.submit(b"img", "image/png")
        self.assertEqual(session.state, ExtractionState.UNCERTAIN)
        with self.assertRaises(InvalidStateError):
            session.resolve([])

    def test_rejects_second_submission_while_in_flight(self) -> None:
        session = None

        class ReentrantClient:
            def extract_courses(self, image, mime_type):
                return session.submit(image, mime_type)

        session = ExtractionSession(ReentrantClient())
        with self.assertRaises(ExtractionInProgressError):
            session.submit(b"img", "image/png")
        self.assertFalse(session.in_flight)
        self.assertEqual(session.state, ExtractionState.IDLE)

    def test_new_submission_restarts(self) -> None:
        client = FakeClient(ExtractionResult(success=False, error_kind=ErrorKind.NO_ACADEMIC_CONTENT))
        session = ExtractionSession(client)
        session.submit(b"cat", "image/jpeg")
        self.assertEqual(session.state, ExtractionState.NO_CONTENT)

        client.result = ExtractionResult(success=True, courses=(CourseData("Algebra", 3, 3.5),))
        session.submit(b"transcript", "image/jpeg")
        self.assertEqual(session.state, ExtractionState.SUCCESS)
        self.assertEqual(client.calls, 2)

        session.reset()
        self.assertEqual(session.state, ExtractionState.IDLE)
        self.assertIsNone(session.outcome)


class TestSessionWithGeminiClient(unittest.TestCase):
    """
    Raw provider answers go through the real adapter into the session.
    """

    def setUp(self) -> None:
        self.sdk = mock.Mock()
        self.session = ExtractionSession(GeminiClient("test-key", client=self.sdk))

    def submit_text(self, text):
        self.sdk.models.generate_content.return_value = SimpleNamespace(text=text, prompt_feedback=None)
        return self.session.submit(b"img", "image/png")

    def assert_error(self, out) -> None:
        self.assertEqual(out.state, ExtractionState.ERROR)
        self.assertEqual(self.session.state, ExtractionState.ERROR)
        self.assertIn(NextAction.RETRY, out.actions)
        self.assertFalse(self.session.in_flight)

    def test_oversized_numbers_are_coerced(self) -> None:
        big = "1" + "0" * 400
        out = self.submit_text(
            '{"success": true, "courses": [{"title": "Algebra", "units": ' + big + ', "grade": 3.5}], "uncertain": false}'
        )
        self.assertEqual(out.state, ExtractionState.SUCCESS)
        self.assertEqual(out.courses, (CourseData("Algebra", 0, 3.5),))
        self.assertFalse(self.session.in_flight)

    def test_non_object_json(self) -> None:
        self.assert_error(self.submit_text('[{"title": "Algebra"}, {"title": "Physics"}]'))
        self.assert_error(self.submit_text("42"))

    def test_non_text_answer(self) -> None:
        self.assert_error(self.submit_text(["oops"]))
        self.assert_error(self.submit_text(None))

    def test_blocked_answer(self) -> None:
        self.sdk.models.generate_content.return_value = SimpleNamespace(
            text=None, prompt_feedback=SimpleNamespace(block_reason="SAFETY")
        )
        out = self.session.submit(b"img", "image/png")
        self.assert_error(out)
        self.assertIn("SAFETY", out.message)


if __name__ == "__main__":
    unittest.main()
