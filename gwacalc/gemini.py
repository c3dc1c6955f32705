"""
Gemini adapter (the only module that talks to the network).

Two request types:
- text completion (free prompt, or the templated GPA analysis prompt)
- image extraction (image part + fixed instruction -> JSON course rows)

The client is created by the caller and passed where it is needed; there is
no module-level client. All failures leave this module as ProviderError
(or its subclass MalformedResponseError).
"""

from __future__ import annotations

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from gwacalc.config import DEFAULT_MODEL, DEFAULT_TIMEOUT
from gwacalc.errors import MalformedResponseError, ProviderError
from gwacalc.extraction import result_from_payload
from gwacalc.model import Course, ExtractionResult
from gwacalc.prompts import EXTRACTION_PROMPT, analysis_prompt

logger = logging.getLogger(__name__)


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the JSON object embedded in an LLM answer.

    Models like to wrap JSON in prose or ```json fences, so only the slice
    from the first '{' to the last '}' is parsed.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise MalformedResponseError("Could not find valid JSON in API response")

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Failed to parse AI response as valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("AI response JSON is not an object")
    return data


def guess_mime_type(path: str | Path) -> str:
    mime, _ = mimetypes.guess_type(str(path))
    return mime or "application/octet-stream"


def _block_reason(response: Any) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    if reason is None:
        return None
    return str(getattr(reason, "value", reason))


def _response_text(response: Any) -> str:
    """
    Text of a generate_content response.

    ProviderError if the prompt was blocked or nothing came back,
    MalformedResponseError if the text is not a string.
    """
    text = getattr(response, "text", None)
    if text is None:
        reason = _block_reason(response)
        if reason:
            raise ProviderError(f"Request was blocked by Gemini ({reason})")
        raise ProviderError("Empty response from Gemini API")

    if not isinstance(text, str):
        raise MalformedResponseError(f"Unexpected response text type: {type(text).__name__}")
    if not text.strip():
        raise ProviderError("Empty response from Gemini API")
    return text


class GeminiClient:
    """
    Thin wrapper around google-genai's models.generate_content.

    `client` is a genai.Client; one is built from api_key/timeout if omitted.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.model = model
        self.timeout = timeout
        if client is None:
            # HttpOptions.timeout is in milliseconds
            client = genai.Client(api_key=api_key, http_options=types.HttpOptions(timeout=int(timeout * 1000)))
        self.client = client

    def _generate(self, contents: list[Any]) -> str:
        logger.debug("generate_content model=%s (%d parts)", self.model, len(contents))
        try:
            response = self.client.models.generate_content(model=self.model, contents=contents)
        except genai_errors.APIError as e:
            logger.warning("Gemini returned %s: %s", e.code, e.message)
            raise ProviderError(e.message or str(e)) from e
        except httpx.HTTPError as e:
            logger.warning("Gemini request failed: %s", e)
            raise ProviderError(f"Could not reach Gemini API: {e}") from e

        return _response_text(response)

    def generate_content(self, prompt: str) -> str:
        return self._generate([prompt])

    def analyze_gpa(self, courses: Sequence[Course]) -> str:
        return self.generate_content(analysis_prompt(courses))

    def extract_courses(self, image: bytes, mime_type: str) -> ExtractionResult:
        """
        Send an image and return the structured extraction result.

        Raises ValueError for non-image input, ProviderError for transport
        failures and MalformedResponseError if the answer holds no JSON object.
        """
        if not mime_type or not mime_type.startswith("image/"):
            raise ValueError(f"Please select an image file (got {mime_type or 'unknown type'})")

        contents = [EXTRACTION_PROMPT, types.Part.from_bytes(data=image, mime_type=mime_type)]
        text = self._generate(contents)
        return result_from_payload(extract_json_object(text))
