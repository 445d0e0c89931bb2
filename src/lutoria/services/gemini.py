"""Gemini backed collaborators: image analysis and mood-to-parameters.

Neither call affects pixels directly.  ``generate_grading_params`` returns a
raw mapping which :func:`lutoria.core.grade_resolver.parameters_for_mood`
sanitises before it reaches the pipeline.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Literal, TypeVar

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..appctx import ApiAccess
from ..config import RATE_LIMIT_INITIAL_DELAY_SEC, RATE_LIMIT_RETRIES
from ..errors import ExternalServiceFailure

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

PromptType = Literal["technical", "artistic"]

ANALYSIS_PROMPTS: dict[str, str] = {
    "technical": (
        "Analyze this film frame technically. Describe exposure, dynamic range, "
        "and color palette. 50 words max."
    ),
    "artistic": "Describe the artistic mood and color palette of this image in 1 sentence.",
}

ANALYSIS_FALLBACK_TEXT = "Analysis failed."

COLORIST_SYSTEM_PROMPT = """You are a professional colorist. Translate the user's mood description into a JSON object of Color Decision List (CDL) values.

Return valid JSON ONLY.
Schema:
{
  "lift": [r, g, b], // Shadows (-0.2 to 0.2)
  "gamma": [r, g, b], // Midtones (0.5 to 1.5)
  "gain": [r, g, b], // Highlights (0.5 to 1.5)
  "saturation": float, // 0.0 to 2.0
  "temperature": float, // -0.2 (cool) to 0.2 (warm)
  "tint": float // -0.1 (green) to 0.1 (magenta)
}
Default values: lift [0,0,0], gamma [1,1,1], gain [1,1,1], sat 1, temp 0, tint 0."""

# Indirection so tests can skip the real backoff.
_sleep: Callable[[float], None] = time.sleep


def _create_client(access: ApiAccess) -> genai.Client:
    """Return a Gemini client for *access*."""

    if not access.granted:
        raise ExternalServiceFailure("API key not found; grant access before calling the service")
    return genai.Client(api_key=access.api_key)


def is_rate_limit_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* signals quota exhaustion (HTTP 429)."""

    for attribute in ("code", "status"):
        value = getattr(exc, attribute, None)
        if value == 429 or value == "RESOURCE_EXHAUSTED":
            return True
    message = str(exc)
    return "429" in message or "RESOURCE_EXHAUSTED" in message


def with_retry(
    call: Callable[[], T],
    *,
    retries: int = RATE_LIMIT_RETRIES,
    delay: float = RATE_LIMIT_INITIAL_DELAY_SEC,
) -> T:
    """Run *call*, retrying rate-limit failures with exponential backoff.

    Any other failure, or a rate limit that outlives the retries, is raised as
    :class:`ExternalServiceFailure`.
    """

    attempt = 0
    while True:
        try:
            return call()
        except ExternalServiceFailure:
            raise
        except Exception as exc:
            if attempt < retries and is_rate_limit_error(exc):
                _LOGGER.warning("Rate limit exceeded. Retrying in %.1fs...", delay)
                _sleep(delay)
                attempt += 1
                delay *= 2
                continue
            if isinstance(exc, genai_errors.APIError):
                raise ExternalServiceFailure(f"Gemini request failed: {exc}") from exc
            raise ExternalServiceFailure(f"Gemini request failed: {exc!r}") from exc


def analyze_image(
    access: ApiAccess,
    image_bytes: bytes,
    prompt_type: PromptType = "technical",
    *,
    mime_type: str = "image/jpeg",
) -> str:
    """Return a short free-text description of *image_bytes*."""

    prompt = ANALYSIS_PROMPTS.get(prompt_type)
    if prompt is None:
        raise ValueError(f"Unknown prompt type {prompt_type!r}")
    client = _create_client(access)

    def call() -> str:
        response = client.models.generate_content(
            model=access.model,
            contents=[
                prompt,
                types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            ],
        )
        return response.text or ANALYSIS_FALLBACK_TEXT

    return with_retry(call)


def parse_parameters_text(text: str | None) -> dict[str, Any]:
    """Decode the JSON answer of the mood service; ``{}`` when unusable."""

    if not text:
        return {}
    cleaned = text.strip()
    # Some answers still arrive fenced despite the JSON response type.
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        _LOGGER.error("Failed to parse grading parameters: %s", exc)
        return {}
    if not isinstance(payload, dict):
        _LOGGER.error("Grading parameters are not a JSON object: %r", payload)
        return {}
    return payload


def generate_grading_params(access: ApiAccess, description: str) -> dict[str, Any]:
    """Translate a mood *description* into a partial parameter mapping."""

    client = _create_client(access)
    config = types.GenerateContentConfig(
        system_instruction=COLORIST_SYSTEM_PROMPT,
        response_mime_type="application/json",
    )

    def call() -> dict[str, Any]:
        response = client.models.generate_content(
            model=access.model,
            contents=description,
            config=config,
        )
        return parse_parameters_text(response.text)

    return with_retry(call)


__all__ = [
    "ANALYSIS_PROMPTS",
    "COLORIST_SYSTEM_PROMPT",
    "analyze_image",
    "generate_grading_params",
    "is_rate_limit_error",
    "parse_parameters_text",
    "with_retry",
]
