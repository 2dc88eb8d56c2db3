# tasks/ai_engine/suggester.py
"""
Task Suggester
==============

Turns a bare task title into a description, a category, a priority and
three short next steps, using Gemini through its OpenAI-compatible endpoint.

The service has NO Django ORM dependencies. It owns prompt construction,
the upstream call and response validation; every failure is raised as one
of the ``api.exceptions`` errors so the view can render it unchanged.

Error mapping:
--------------
- blank title                  -> InvalidInput (400)
- GEMINI_API_KEY missing       -> ProviderNotConfigured (500)
- upstream non-success status  -> ProviderError (upstream status, body in "provider")
- no text in the reply         -> EmptyResponse (502)
- reply not JSON / wrong shape -> MalformedResponse (500, raw text in "details")
- transport failure            -> UpstreamFailure (500)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from django.conf import settings
from openai import APIConnectionError, APIError, APIStatusError, OpenAI

from api.exceptions import (
    EmptyResponse,
    InvalidInput,
    MalformedResponse,
    ProviderError,
    ProviderNotConfigured,
    UpstreamFailure,
)

logger = logging.getLogger(__name__)

SUGGESTION_CATEGORIES = ("work", "personal", "shopping", "other")
SUGGESTION_PRIORITIES = ("high", "medium", "low")
SUGGESTION_COUNT = 3

MISSING_KEY_MESSAGE = (
    "Gemini API key not configured. Please set GEMINI_API_KEY in your environment"
)
CALL_FAILED_MESSAGE = "Google Generative AI API call failed"

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def build_prompt(title: str) -> str:
    return (
        f'Given the following task title: "{title}", produce a JSON object with EXACTLY these keys:\n'
        "  - description: a concise task description (string)\n"
        f"  - category: one of [{', '.join(SUGGESTION_CATEGORIES)}]\n"
        f"  - priority: one of [{', '.join(SUGGESTION_PRIORITIES)}]\n"
        f"  - suggestions: an array of exactly {SUGGESTION_COUNT} short actionable suggestions (strings)\n"
        "Return ONLY the JSON."
    )


def strip_fences(text: str) -> str:
    """Drop a surrounding ```json ... ``` (or bare ```) block, after trimming."""
    text = (text or "").strip()
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


class TaskSuggester:
    """
    Gemini-backed suggestion service.

    Configuration is deferred: constructing the service never fails, a
    missing key is reported when ``suggest`` is called (after the title
    has been validated).
    """

    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 200

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.model: str = model or settings.GEMINI_MODEL
        self.base_url: str = base_url or settings.GEMINI_BASE_URL
        self.timeout: float = timeout or settings.AI_TIMEOUT
        self.api_key: str = api_key or getattr(settings, "GEMINI_API_KEY", "") or ""
        self.client: Optional[OpenAI] = None

        if self.api_key:
            # Retries stay off so an upstream status reaches the caller unchanged.
            self.client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
            logger.info(f"TaskSuggester initialized with model={self.model}")
        else:
            logger.warning("TaskSuggester: GEMINI_API_KEY is not configured")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def suggest(self, title: Any) -> Dict[str, Any]:
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            raise InvalidInput("No title provided")
        if not self.is_configured:
            raise ProviderNotConfigured(MISSING_KEY_MESSAGE)

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(title)}],
                temperature=self.DEFAULT_TEMPERATURE,
                max_tokens=self.DEFAULT_MAX_TOKENS,
            )
        except APIStatusError as e:
            logger.error(f"Gemini returned status {e.status_code}: {e}")
            raise ProviderError(
                "ProviderError",
                provider=_error_body(e),
                status_code=e.status_code,
            ) from e
        except APIConnectionError as e:
            logger.error(f"Gemini connection error: {e}")
            raise UpstreamFailure(CALL_FAILED_MESSAGE, details=str(e)) from e
        except APIError as e:
            logger.error(f"Gemini call failed: {e}")
            raise UpstreamFailure(CALL_FAILED_MESSAGE, details=str(e)) from e

        text = _first_text(response)
        if not text:
            logger.warning(f"Gemini returned no text for '{title}'")
            raise EmptyResponse("EmptyResponse", details="No text in model response")

        result = self._validate_and_parse_response(text)
        logger.info(f"TaskSuggester: suggested {result['category']}/{result['priority']} for '{title}'")
        return result

    def _validate_and_parse_response(self, text: str) -> Dict[str, Any]:
        cleaned = strip_fences(text)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error(f"Gemini reply is not JSON: {e}")
            raise MalformedResponse(details=text) from e

        if not isinstance(data, dict):
            raise MalformedResponse(details=text)

        description = data.get("description")
        category = str(data.get("category") or "").strip().lower()
        priority = str(data.get("priority") or "").strip().lower()
        suggestions = data.get("suggestions")

        if not isinstance(description, str) or not description.strip():
            raise MalformedResponse(details=text)
        if category not in SUGGESTION_CATEGORIES or priority not in SUGGESTION_PRIORITIES:
            raise MalformedResponse(details=text)
        if not _is_suggestion_list(suggestions):
            raise MalformedResponse(details=text)

        return {
            "description": description.strip(),
            "category": category,
            "priority": priority,
            "suggestions": [s.strip() for s in suggestions[:SUGGESTION_COUNT]],
        }


def _is_suggestion_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and len(value) >= SUGGESTION_COUNT
        and all(isinstance(s, str) and s.strip() for s in value[:SUGGESTION_COUNT])
    )


def _first_text(response: Any) -> str:
    choices: List[Any] = list(getattr(response, "choices", None) or [])
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    content = getattr(message, "content", None)
    return content.strip() if isinstance(content, str) else ""


def _error_body(error: APIStatusError) -> Any:
    return error.body if error.body is not None else str(error)
