"""
Data Sanitization Module

Masks credentials and inline binary payloads so that provider requests
can be logged at debug level without leaking secrets or megabytes of base64.
"""

from typing import Any

# Inline payloads longer than this are replaced by a size marker
MAX_INLINE_DATA_LOG_LENGTH = 64


def mask_credential(value: str | None) -> str | None:
    """
    Mask an API key for logging

    Keeps the first 4 and last 2 characters for identification.

    Examples:
        >>> mask_credential("AIzaSyA1234567890abcdef")
        'AIza***...***ef'
        >>> mask_credential("short")
        '***'
    """
    if not value:
        return value
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}***...***{value[-2:]}"


def sanitize_headers(headers: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``headers`` with credential headers masked"""
    sensitive_fields = {"authorization", "x-goog-api-key", "x-api-key"}
    sanitized = {}
    for key, value in headers.items():
        if key.lower() in sensitive_fields and isinstance(value, str):
            sanitized[key] = mask_credential(value)
        else:
            sanitized[key] = value
    return sanitized


def sanitize_payload(value: Any) -> Any:
    """
    Replace large base64 fields in a Gemini request body

    ``inlineData.data``, ``bytesBase64Encoded`` and ``videoBytes`` values are
    shortened to ``<N chars>``. The original object is not modified.
    """
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if (
                key in ("data", "bytesBase64Encoded", "imageBytes", "videoBytes")
                and isinstance(item, str)
                and len(item) > MAX_INLINE_DATA_LOG_LENGTH
            ):
                result[key] = f"<{len(item)} chars>"
            else:
                result[key] = sanitize_payload(item)
        return result
    if isinstance(value, list):
        return [sanitize_payload(item) for item in value]
    return value
