"""
Error Definitions

Defines the closed set of gateway error kinds and the exception classes
carrying them. ``GatewayError.to_dict()`` is the only error body that
leaves the gateway.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Classification of every failure the gateway can report"""

    RATE_LIMITED = "rate_limited"
    VALIDATION_FAILED = "validation_failed"
    PARAMETER_VALIDATION_FAILED = "parameter_validation_failed"
    UPSTREAM_TRANSIENT = "upstream_transient"
    UPSTREAM_PERMANENT = "upstream_permanent"
    UPSTREAM_TIMEOUT = "upstream_timeout"
    NO_OUTPUT_PRODUCED = "no_output_produced"
    DEPENDENCY_NOT_FOUND = "dependency_not_found"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


def is_retryable_status(status_code: int) -> bool:
    """Server errors and provider rate limiting may succeed on resubmission"""
    return status_code >= 500 or status_code == 429


class GatewayError(Exception):
    """
    Gateway Base Exception

    Base class for all classified errors, containing message, kind, code,
    HTTP status and the retryable flag the client uses to offer a retry.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        retryable: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
        suggested_action: Optional[str] = None,
        request_id: Optional[str] = None,
        entry_point: Optional[str] = None,
    ):
        """
        Initialize exception

        Args:
            message: Error message shown to the caller
            code: Machine readable error code, e.g. SCENE_NOT_FOUND
            status_code: HTTP status code
            retryable: Whether resubmitting may succeed, derived from status when omitted
            details: Extra error details
            suggested_action: Concrete corrective hint
            request_id: Request id, attached by the gateway when unset
            entry_point: Client entry point that issued the request
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retryable = (
            is_retryable_status(status_code) if retryable is None else retryable
        )
        self.details = details or {}
        self.suggested_action = suggested_action
        self.request_id = request_id
        self.entry_point = entry_point

    def to_dict(self, include_details: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format (for API response)

        Args:
            include_details: Whether to include the details object

        Returns:
            dict: Error response body
        """
        result: dict[str, Any] = {
            "error": self.message,
            "retryable": self.retryable,
            "requestId": self.request_id,
            "errorCode": self.code,
        }
        if include_details and self.details:
            result["details"] = self.details
        if self.suggested_action:
            result["suggestedAction"] = self.suggested_action
        if self.entry_point:
            result["entryPoint"] = self.entry_point
        return result


class RateLimitedError(GatewayError):
    """
    Rate Limit Error

    Raised when a client exceeds its admission window.
    """

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str = "AI rate limit exceeded. Try again shortly.",
        retry_after_ms: int = 0,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code="RATE_LIMITED",
            status_code=429,
            retryable=True,
            details={"retryAfterMs": retry_after_ms},
            request_id=request_id,
        )
        self.retry_after_ms = retry_after_ms


class PayloadValidationError(GatewayError):
    """
    Payload Validation Error

    Raised when the request body is malformed or a precondition on the
    referenced records does not hold (e.g. the scene has no image yet).
    """

    kind = ErrorKind.VALIDATION_FAILED

    def __init__(
        self,
        message: str = "Invalid request payload",
        code: str = "VALIDATION_FAILED",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            retryable=False,
            details=details,
        )


class VideoParameterValidationError(GatewayError):
    """
    Video Parameter Validation Error

    Raised when a video request is not accepted by the model's capability matrix.
    """

    kind = ErrorKind.PARAMETER_VALIDATION_FAILED

    def __init__(
        self,
        message: str,
        suggested_action: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code="VIDEO_PARAMETER_VALIDATION_ERROR",
            status_code=400,
            retryable=False,
            details=details,
            suggested_action=suggested_action,
        )


class UpstreamError(GatewayError):
    """
    Upstream Service Error

    Raised when the provider returns an error. Retryable for 5xx and 429.
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        code: str = "UPSTREAM_ERROR",
        status_code: int = 502,
        retryable: Optional[bool] = None,
        details: Optional[dict[str, Any]] = None,
        suggested_action: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            retryable=retryable,
            details=details,
            suggested_action=suggested_action,
            request_id=request_id,
        )

    @property
    def kind(self) -> ErrorKind:  # type: ignore[override]
        if self.retryable:
            return ErrorKind.UPSTREAM_TRANSIENT
        return ErrorKind.UPSTREAM_PERMANENT


class UpstreamTimeoutError(GatewayError):
    """
    Upstream Timeout Error

    Raised when a provider call or a long-running job exceeds its time budget.
    """

    kind = ErrorKind.UPSTREAM_TIMEOUT

    def __init__(
        self,
        message: str = "Upstream request timed out",
        code: str = "UPSTREAM_TIMEOUT",
        details: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=504,
            retryable=True,
            details=details,
            suggested_action="This error may be temporary. Please try again in a few moments.",
            request_id=request_id,
        )


class NoOutputError(GatewayError):
    """
    No Output Error

    Raised when the provider reports success without a usable payload,
    typically after a content-safety block.
    """

    kind = ErrorKind.NO_OUTPUT_PRODUCED

    def __init__(
        self,
        message: str,
        code: str,
        suggested_action: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=500,
            retryable=True,
            details=details,
            suggested_action=suggested_action,
            request_id=request_id,
        )


class DependencyNotFoundError(GatewayError):
    """
    Resource Not Found Error

    Raised when a referenced project, scene or asset does not exist.
    """

    kind = ErrorKind.DEPENDENCY_NOT_FOUND

    def __init__(
        self,
        message: str = "Resource not found",
        code: str = "NOT_FOUND",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=404,
            retryable=False,
            details=details,
        )


class CredentialMissingError(GatewayError):
    """Raised when neither the caller nor the server supplies a Gemini API key"""

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str = "GEMINI_API_KEY environment variable not set."):
        super().__init__(
            message=message,
            code="GEMINI_API_KEY_MISSING",
            status_code=503,
            retryable=False,
        )


class InternalError(GatewayError):
    """Unexpected failure inside the gateway"""

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        retryable: bool = True,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=500,
            retryable=retryable,
            details=details,
        )
