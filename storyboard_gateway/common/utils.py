"""
Utility Functions Module

Request id generation, prompt fingerprinting, UTC time helpers and
best-effort field extraction from raw request bodies.
"""

import hashlib
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

UTC = timezone.utc

# Body fields naming the target model, in lookup order
MODEL_FIELDS = ("chatModel", "imageModel", "model")


def generate_request_id() -> str:
    """
    Generate request id

    Uses UUID4 so that logs, telemetry and error responses of one request can be correlated.

    Returns:
        str: UUID formatted request id

    Example:
        >>> generate_request_id()
        'a1b2c3d4-e5f6-7890-abcd-ef1234567890'
    """
    return str(uuid.uuid4())


def hash_prompt(prompt: str) -> str:
    """
    Fingerprint a prompt for telemetry

    The prompt itself is never logged, only the first 16 hex chars of its sha256.
    """
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]


def epoch_ms() -> int:
    """Current wall-clock time in milliseconds"""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes read from the database as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def extract_model(body: Any) -> Optional[str]:
    """Return the first model name found in a JSON body, if any"""
    if not isinstance(body, dict):
        return None
    for key in MODEL_FIELDS:
        candidate = body.get(key)
        if isinstance(candidate, str):
            return candidate
    return None


def extract_project_id(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    value = body.get("projectId")
    return value if isinstance(value, str) else None
