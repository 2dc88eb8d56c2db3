# tasks/ai_engine/priority.py
"""
Priority suggestion through the OpenAI chat completions API.

The model is asked for a single word; anything outside high/medium/low is
read as "medium". Every failure surfaces as a 500 with a plain message.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from django.conf import settings
from openai import APIError, OpenAI

from api.exceptions import ProviderNotConfigured, UpstreamFailure

logger = logging.getLogger(__name__)

PRIORITY_CHOICES = ("high", "medium", "low")
FALLBACK_PRIORITY = "medium"

SYSTEM_PROMPT = (
    "You are a productivity AI that analyzes tasks and suggests appropriate priorities. "
    'Respond with only "high", "medium", or "low" based on urgency and importance.'
)


class PriorityInputError(UpstreamFailure):
    """Missing task text. Reported with status 500 like every other failure here."""

    default_detail = "Task text is required"


def normalize_priority(answer: Any) -> str:
    value = answer.strip().lower() if isinstance(answer, str) else ""
    return value if value in PRIORITY_CHOICES else FALLBACK_PRIORITY


class PrioritySuggester:
    """Suggest a task priority from its text."""

    DEFAULT_TEMPERATURE: float = 0.1
    DEFAULT_MAX_TOKENS: int = 10

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.model: str = model or settings.PRIORITY_MODEL
        self.timeout: float = timeout or settings.AI_TIMEOUT
        self.api_key: str = api_key or getattr(settings, "OPENAI_API_KEY", "") or ""
        self.client: Optional[OpenAI] = None
        if self.api_key:
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)

    def suggest_priority(self, task_text: Any) -> str:
        task_text = task_text.strip() if isinstance(task_text, str) else ""
        if not task_text:
            raise PriorityInputError("Task text is required")
        if self.client is None:
            raise ProviderNotConfigured("OpenAI API key not configured")

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f'Analyze this task and suggest priority level: "{task_text}"'},
                ],
                max_tokens=self.DEFAULT_MAX_TOKENS,
                temperature=self.DEFAULT_TEMPERATURE,
            )
        except APIError as e:
            logger.error(f"OpenAI priority call failed: {e}")
            raise UpstreamFailure(str(e.message or e)) from e

        try:
            answer = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError):
            answer = None
        priority = normalize_priority(answer)
        logger.info(f"PrioritySuggester: '{task_text[:50]}' -> {priority}")
        return priority
