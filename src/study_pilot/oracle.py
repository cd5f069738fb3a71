"""Gemini-backed text oracle used for plans, the assistant and quizzes."""
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from study_pilot.config import Settings
from study_pilot.errors import OracleError, OracleUnavailableError

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("429", "quota", "RESOURCE_EXHAUSTED")


def is_rate_limited(error: Exception) -> bool:
    if getattr(error, "code", None) == 429:
        return True
    text = str(error)
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def get_client(settings: Settings) -> genai.Client:
    if not settings.gemini_api_key:
        raise OracleError("AI service is not configured: set GEMINI_API_KEY")
    return genai.Client(
        api_key=settings.gemini_api_key,
        http_options=types.HttpOptions(timeout=int(settings.oracle_timeout * 1000)),
    )


def generate_text(prompt: str, system_instruction: str | None, settings: Settings) -> str:
    """Send one request to the model and return its raw text.

    Raises OracleUnavailableError when the model is rate limited, OracleError
    for any other failure or a timeout.
    """
    client = get_client(settings)
    try:
        response = client.models.generate_content(
            model=settings.model,
            contents=prompt,
            config=types.GenerateContentConfig(
                system_instruction=system_instruction,
                thinking_config=types.ThinkingConfig(thinking_budget=0),
            ),
        )
    except genai_errors.APIError as e:
        if is_rate_limited(e):
            logger.warning("Oracle rate limited: %s", e)
            raise OracleUnavailableError() from e
        logger.error("Oracle failed: %s", e)
        raise OracleError("AI service error") from e
    except httpx.TimeoutException as e:
        logger.error("Oracle timed out after %ss", settings.oracle_timeout)
        raise OracleError("AI service timed out") from e
    except httpx.HTTPError as e:
        logger.error("Oracle unreachable: %s", e)
        raise OracleError("AI service unreachable") from e
    return getattr(response, "text", None) or ""
