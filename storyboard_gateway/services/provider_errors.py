"""
Provider Error Classification

Turns raw Gemini failures (HTTP error bodies, transport failures) into
classified ``GatewayError`` instances enriched with the operation, model,
request id and a suggested action.
"""

import logging
from typing import Any, Optional

from storyboard_gateway.common.errors import (
    GatewayError,
    UpstreamError,
    UpstreamTimeoutError,
    is_retryable_status,
)
from storyboard_gateway.config import get_settings
from storyboard_gateway.providers.base import ProviderResponse

logger = logging.getLogger(__name__)

# Google RPC status names mapped to HTTP status codes
GOOGLE_STATUS_CODES: dict[str, int] = {
    "INVALID_ARGUMENT": 400,
    "FAILED_PRECONDITION": 400,
    "OUT_OF_RANGE": 400,
    "UNAUTHENTICATED": 401,
    "PERMISSION_DENIED": 403,
    "NOT_FOUND": 404,
    "ALREADY_EXISTS": 409,
    "ABORTED": 409,
    "RESOURCE_EXHAUSTED": 429,
    "CANCELLED": 499,
    "INTERNAL": 500,
    "UNKNOWN": 500,
    "DATA_LOSS": 500,
    "UNIMPLEMENTED": 501,
    "UNAVAILABLE": 503,
    "DEADLINE_EXCEEDED": 504,
}

TEMPORARY_SUGGESTION = "This error may be temporary. Please try again in a few moments."

# (keywords, suggestion), first match wins
SUGGESTION_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("resolution", "1080p"),
        "Try using 720p resolution or ensure 1080p is paired with 8-second duration.",
    ),
    (
        ("duration",),
        "Ensure duration is compatible with resolution (1080p requires 8s).",
    ),
    (
        ("reference", "referenceImages"),
        "Reference images require Veo 3.1 models and 16:9 aspect ratio with 8-second duration.",
    ),
    (
        ("extension", "extend"),
        "Video extension is only supported on Veo 3.1 models. "
        "Try veo-3.1-generate-preview or veo-3.1-fast-generate-preview.",
    ),
    (
        ("personGeneration",),
        "The personGeneration parameter is required when using reference images "
        "or last frame interpolation.",
    ),
    (
        ("encoding",),
        "The encoding parameter is not supported by the video extension API.",
    ),
)


def suggest_action(message: str, retryable: bool) -> Optional[str]:
    """Pick an actionable hint from keywords in the provider message"""
    for keywords, suggestion in SUGGESTION_RULES:
        if any(keyword in message for keyword in keywords):
            return suggestion
    if retryable:
        return TEMPORARY_SUGGESTION
    return None


def _extract_error(body: Any) -> tuple[Optional[str], Optional[int], Optional[str]]:
    """
    Read message, numeric code and status name from a Gemini error body

    Handles ``{"error": {"message", "code", "status"}}``, ``{"error": "text"}``,
    a list wrapping either of these, and plain text.
    """
    if isinstance(body, list) and body:
        body = body[0]
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        return (body.strip() or None), None, None
    if not isinstance(body, dict):
        return None, None, None

    error = body.get("error", body)
    if isinstance(error, str):
        return error, None, None
    if not isinstance(error, dict):
        return None, None, None

    message = error.get("message") if isinstance(error.get("message"), str) else None
    code = error.get("code") if isinstance(error.get("code"), int) else None
    status_name = error.get("status") if isinstance(error.get("status"), str) else None
    return message, code, status_name


def build_message(
    operation: str,
    message: str,
    model: Optional[str],
    request_id: Optional[str],
    suggested_action: Optional[str],
) -> str:
    """``{operation} failed: {msg} | Model: m | Request ID: id | Suggestion: s``"""
    parts = [f"{operation} failed: {message}"]
    if model:
        parts.append(f"Model: {model}")
    parts.append(f"Request ID: {request_id or 'unknown'}")
    if suggested_action:
        parts.append(f"Suggestion: {suggested_action}")
    return " | ".join(parts)


def parse_provider_error(
    response: ProviderResponse,
    operation: str,
    model: Optional[str] = None,
    request_id: Optional[str] = None,
    code: Optional[str] = None,
) -> GatewayError:
    """
    Classify a failed provider response

    Status comes from the HTTP status, falling back to the numeric ``code`` or
    RPC ``status`` name of the error body. Retryable when >= 500 or 429.

    Args:
        response: Failed provider response
        operation: Human readable operation, e.g. "Video generation"
        model: Target model
        request_id: Gateway request id
        code: Error code override; defaults to the RPC status name

    Returns:
        GatewayError: UpstreamTimeoutError for 504 transport timeouts, else UpstreamError
    """
    message, body_code, status_name = _extract_error(response.body)
    message = message or response.error or "Unknown error occurred"

    status_code = response.status_code
    if not status_code or 200 <= status_code < 400:
        status_code = body_code or GOOGLE_STATUS_CODES.get(status_name or "", 500)

    retryable = is_retryable_status(status_code)
    suggestion = suggest_action(message, retryable)
    enhanced = build_message(operation, message, model, request_id, suggestion)
    details = {"operation": operation, "upstreamStatus": status_code}
    if model:
        details["model"] = model

    if response.body is None and status_code == 504:
        return UpstreamTimeoutError(
            message=enhanced,
            details=details,
            request_id=request_id,
        )

    return UpstreamError(
        message=enhanced,
        code=code or status_name or "UPSTREAM_ERROR",
        status_code=status_code,
        retryable=retryable,
        details=details,
        suggested_action=suggestion,
        request_id=request_id,
    )


def classify_exception(
    exc: Exception,
    operation: str,
    model: Optional[str] = None,
    request_id: Optional[str] = None,
) -> GatewayError:
    """
    Classify an exception raised while talking to the provider

    Already classified errors pass through with the request id filled in.
    The text of an unexpected exception only reaches the message in debug mode.
    """
    if isinstance(exc, GatewayError):
        if exc.request_id is None:
            exc.request_id = request_id
        return exc

    logger.error("%s failed with unexpected error: %s", operation, exc, exc_info=exc)
    if get_settings().DEBUG:
        detail = str(exc) or type(exc).__name__
    else:
        detail = "Unexpected error"
    return parse_provider_error(
        ProviderResponse(status_code=500, error=detail),
        operation=operation,
        model=model,
        request_id=request_id,
        code="UNKNOWN_ERROR",
    )
