"""
Exception types.

Only the outer layers raise these. The duplicate matcher and the merge
resolver are total over their inputs and never raise.
"""

from __future__ import annotations


class GwacalcError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(GwacalcError):
    """Invalid or missing configuration (e.g. no GEMINI_API_KEY)."""


class ProviderError(GwacalcError):
    """The LLM call failed: network, auth, quota, HTTP error, empty answer."""


class MalformedResponseError(ProviderError):
    """The LLM answered, but no JSON object could be read from the text."""


class InvalidStateError(GwacalcError):
    """An operation was called in a state that does not allow it."""


class ExtractionInProgressError(InvalidStateError):
    pass


class AnalysisInProgressError(InvalidStateError):
    pass
