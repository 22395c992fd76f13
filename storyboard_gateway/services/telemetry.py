"""
AI Telemetry Module

Emits one structured ``ai-request`` event per handled AI request through
the ``ai_telemetry`` logger. Disabled telemetry uses a no-op logger.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from storyboard_gateway.common.errors import GatewayError
from storyboard_gateway.common.request_context import RequestContext
from storyboard_gateway.common.utils import hash_prompt
from storyboard_gateway.config import Settings, get_settings
from storyboard_gateway.logging_config import TELEMETRY_LOGGER_NAME

EVENT_TYPE = "ai-request"

_PAYLOAD_KEYS = {
    "request_id": "requestId",
    "endpoint": "endpoint",
    "status": "status",
    "latency_ms": "latencyMs",
    "model": "geminiModel",
    "project_id": "projectId",
    "retryable": "retryable",
    "error_code": "errorCode",
    "prompt_hash": "promptHash",
    "entry_point": "entryPoint",
}


@dataclass(frozen=True)
class TelemetryEvent:
    """Write-once record of one request outcome"""

    request_id: str
    endpoint: str
    status: int
    latency_ms: int
    model: Optional[str] = None
    project_id: Optional[str] = None
    retryable: Optional[bool] = None
    error_code: Optional[str] = None
    prompt_hash: Optional[str] = None
    entry_point: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """camelCase payload without unset fields"""
        return {
            _PAYLOAD_KEYS[key]: value
            for key, value in asdict(self).items()
            if value is not None
        }

    @classmethod
    def success(cls, context: RequestContext, status: int = 200) -> "TelemetryEvent":
        meta = context.meta
        return cls(
            request_id=context.request_id,
            endpoint=context.endpoint,
            status=status,
            latency_ms=context.elapsed_ms,
            model=meta.model,
            project_id=meta.project_id,
            entry_point=meta.entry_point,
        )

    @classmethod
    def failure(cls, context: RequestContext, error: GatewayError) -> "TelemetryEvent":
        meta = context.meta
        return cls(
            request_id=context.request_id,
            endpoint=context.endpoint,
            status=error.status_code,
            latency_ms=context.elapsed_ms,
            model=meta.model,
            project_id=meta.project_id,
            retryable=error.retryable,
            error_code=error.code,
            prompt_hash=hash_prompt(meta.prompt) if meta.prompt else None,
            entry_point=meta.entry_point,
        )


class AiTelemetryLogger:
    """Writes telemetry events to the ``ai_telemetry`` logger"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(TELEMETRY_LOGGER_NAME)

    def _emit(self, level: int, event: TelemetryEvent) -> None:
        self._logger.log(level, EVENT_TYPE, extra={"telemetry": event.to_payload()})

    def info(self, event: TelemetryEvent) -> None:
        self._emit(logging.INFO, event)

    def error(self, event: TelemetryEvent) -> None:
        self._emit(logging.ERROR, event)


class NoopTelemetryLogger(AiTelemetryLogger):
    """Used when ENABLE_AI_TELEMETRY is off"""

    def _emit(self, level: int, event: TelemetryEvent) -> None:
        return None


def create_telemetry_logger(settings: Settings) -> AiTelemetryLogger:
    if not settings.ENABLE_AI_TELEMETRY:
        return NoopTelemetryLogger()
    return AiTelemetryLogger()


_telemetry: Optional[AiTelemetryLogger] = None


def get_telemetry_logger() -> AiTelemetryLogger:
    """Process-wide telemetry logger built from settings on first use"""
    global _telemetry
    if _telemetry is None:
        _telemetry = create_telemetry_logger(get_settings())
    return _telemetry
