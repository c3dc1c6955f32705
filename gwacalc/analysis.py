"""
AI commentary on the course list (free-text, no parsing).
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from gwacalc.errors import AnalysisInProgressError, ProviderError
from gwacalc.model import Course

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    def analyze_gpa(self, courses: Sequence[Course]) -> str: ...


class AnalysisSession:
    """
    Keeps the last analysis (or error) and an in-flight flag.
    """

    def __init__(self, client: Analyzer) -> None:
        self.client = client
        self.analyzing = False
        self.analysis: Optional[str] = None
        self.error: Optional[str] = None

    def analyze(self, courses: Sequence[Course]) -> Optional[str]:
        """
        Request an analysis. Returns the text, or None if it failed (see .error).
        """
        if self.analyzing:
            raise AnalysisInProgressError("An analysis is already in progress")

        if not courses:
            self.analysis = None
            self.error = "No courses to analyze"
            return None

        self.analyzing = True
        self.error = None
        try:
            self.analysis = self.client.analyze_gpa(courses)
        except ProviderError as e:
            logger.warning("Analysis request failed: %s", e)
            self.analysis = None
            self.error = str(e)
        finally:
            self.analyzing = False

        return self.analysis

    def reset(self) -> None:
        self.analysis = None
        self.error = None
