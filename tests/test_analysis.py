import unittest
from unittest import mock

from gwacalc.analysis import AnalysisSession
from gwacalc.errors import AnalysisInProgressError, ProviderError
from gwacalc.model import Course

COURSES = [Course(id="1", title="Algebra", units=3, grade=3.5)]


class TestAnalysisSession(unittest.TestCase):
    def test_no_courses(self) -> None:
        client = mock.Mock()
        session = AnalysisSession(client)

        self.assertIsNone(session.analyze([]))
        self.assertEqual(session.error, "No courses to analyze")
        client.analyze_gpa.assert_not_called()

    def test_success(self) -> None:
        client = mock.Mock()
        client.analyze_gpa.return_value = "Great job."
        session = AnalysisSession(client)

        self.assertEqual(session.analyze(COURSES), "Great job.")
        self.assertIsNone(session.error)
        self.assertFalse(session.analyzing)

        session.reset()
        self.assertIsNone(session.analysis)

    def test_provider_error_is_stored(self) -> None:
        client = mock.Mock()
        client.analyze_gpa.side_effect = ProviderError("Empty response from Gemini API")
        session = AnalysisSession(client)

        self.assertIsNone(session.analyze(COURSES))
        self.assertEqual(session.error, "Empty response from Gemini API")
        self.assertFalse(session.analyzing)

    def test_rejects_second_request_while_analyzing(self) -> None:
        client = mock.Mock()
        session = AnalysisSession(client)
        client.analyze_gpa.side_effect = lambda courses: session.analyze(courses)

        with self.assertRaises(AnalysisInProgressError):
            session.analyze(COURSES)
        self.assertFalse(session.analyzing)


if __name__ == "__main__":
    unittest.main()
