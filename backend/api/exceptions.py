# api/exceptions.py
"""
Error taxonomy shared by every app.

All errors are DRF ``APIException`` subclasses so views can simply raise them;
``error_handler`` (installed as ``REST_FRAMEWORK['EXCEPTION_HANDLER']``)
renders them as ``{"error": ..., "details"?: ..., "provider"?: ...}``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from rest_framework import status
from rest_framework.exceptions import APIException, Throttled, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class TaskQuestError(APIException):
    """Base class: carries an error label plus optional details/provider payloads."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal error"
    default_code = "error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Any = None,
        provider: Any = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(detail=message or self.default_detail)
        self.message = str(message or self.default_detail)
        self.details = details
        self.provider = provider
        if status_code is not None:
            self.status_code = status_code

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        if self.provider is not None:
            payload["provider"] = self.provider
        return payload

    def __str__(self) -> str:
        return self.message


class InvalidInput(TaskQuestError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"
    default_code = "invalid_input"


class AuthError(TaskQuestError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication failed"
    default_code = "auth_error"


class TaskNotFound(TaskQuestError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Task not found"
    default_code = "task_not_found"


class ProviderError(TaskQuestError):
    """Upstream AI provider answered with a non-success status (mirrored)."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "ProviderError"
    default_code = "provider_error"


class ProviderNotConfigured(TaskQuestError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "AI provider not configured"
    default_code = "provider_not_configured"


class EmptyResponse(TaskQuestError):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "EmptyResponse"
    default_code = "empty_response"


class MalformedResponse(TaskQuestError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Generative AI response not JSON"
    default_code = "malformed_response"


class UpstreamFailure(TaskQuestError):
    """Transport level failure talking to a provider (connection, timeout)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "AI provider call failed"
    default_code = "upstream_failure"


class PersistenceError(TaskQuestError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Task store unavailable"
    default_code = "persistence_error"


RATE_LIMIT_MESSAGE = "Too many attempts. Please try again later."


def error_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    """DRF exception handler rendering the taxonomy with a uniform shape."""
    if isinstance(exc, TaskQuestError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, ValidationError):
        return Response(
            {"error": "InvalidInput", "details": exc.detail},
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, Throttled):
        response = Response({"error": RATE_LIMIT_MESSAGE}, status=status.HTTP_429_TOO_MANY_REQUESTS)
        if exc.wait is not None:
            response["Retry-After"] = str(int(exc.wait))
        return response

    response = exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict) and "detail" in response.data:
        response.data = {"error": str(response.data["detail"])}
    return response
