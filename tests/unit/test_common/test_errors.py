"""
Error Taxonomy Unit Tests
"""

from storyboard_gateway.common.errors import (
    CredentialMissingError,
    DependencyNotFoundError,
    ErrorKind,
    GatewayError,
    InternalError,
    NoOutputError,
    PayloadValidationError,
    RateLimitedError,
    UpstreamError,
    UpstreamTimeoutError,
    VideoParameterValidationError,
    is_retryable_status,
)


class TestRetryableStatus:
    """is_retryable_status"""

    def test_server_errors_and_429_are_retryable(self):
        """5xx and 429 may succeed on resubmission."""
        assert is_retryable_status(500)
        assert is_retryable_status(503)
        assert is_retryable_status(429)

    def test_client_errors_are_not_retryable(self):
        """Other 4xx statuses are final."""
        assert not is_retryable_status(400)
        assert not is_retryable_status(404)


class TestErrorKinds:
    """Each exception class carries a fixed kind, status and retryable flag"""

    def test_fixed_payload_shapes(self):
        """Kinds, statuses and retryable flags per class."""
        cases = [
            (RateLimitedError(), ErrorKind.RATE_LIMITED, 429, True),
            (PayloadValidationError(), ErrorKind.VALIDATION_FAILED, 400, False),
            (
                VideoParameterValidationError("bad", suggested_action="fix"),
                ErrorKind.PARAMETER_VALIDATION_FAILED,
                400,
                False,
            ),
            (UpstreamTimeoutError("slow"), ErrorKind.UPSTREAM_TIMEOUT, 504, True),
            (NoOutputError("empty", code="IMAGE_EDIT_NO_OUTPUT"), ErrorKind.NO_OUTPUT_PRODUCED, 500, True),
            (
                DependencyNotFoundError("missing", code="SCENE_NOT_FOUND"),
                ErrorKind.DEPENDENCY_NOT_FOUND,
                404,
                False,
            ),
            (CredentialMissingError(), ErrorKind.CONFIGURATION, 503, False),
            (InternalError(), ErrorKind.INTERNAL, 500, True),
        ]
        for error, kind, status, retryable in cases:
            assert error.kind == kind
            assert error.status_code == status
            assert error.retryable is retryable

    def test_upstream_kind_follows_retryable(self):
        """Upstream errors are transient when retryable, permanent otherwise."""
        transient = UpstreamError("busy", code="UNAVAILABLE", status_code=503)
        permanent = UpstreamError("bad", code="INVALID_ARGUMENT", status_code=400)

        assert transient.retryable is True
        assert transient.kind == ErrorKind.UPSTREAM_TRANSIENT
        assert permanent.retryable is False
        assert permanent.kind == ErrorKind.UPSTREAM_PERMANENT

    def test_credential_missing_code(self):
        """Missing credentials use the GEMINI_API_KEY_MISSING code."""
        assert CredentialMissingError().code == "GEMINI_API_KEY_MISSING"


class TestToDict:
    """GatewayError.to_dict"""

    def test_full_body(self):
        """All optional fields are rendered when set."""
        error = GatewayError(
            "Something failed",
            code="SOMETHING_FAILED",
            status_code=502,
            details={"model": "veo"},
            suggested_action="Retry",
            request_id="req-1",
            entry_point="agent:chat",
        )

        assert error.to_dict() == {
            "error": "Something failed",
            "retryable": True,
            "requestId": "req-1",
            "errorCode": "SOMETHING_FAILED",
            "details": {"model": "veo"},
            "suggestedAction": "Retry",
            "entryPoint": "agent:chat",
        }

    def test_optional_fields_omitted(self):
        """Empty details, suggestion and entry point are left out."""
        body = PayloadValidationError().to_dict()

        assert set(body) == {"error", "retryable", "requestId", "errorCode"}
        assert body["errorCode"] == "VALIDATION_FAILED"

    def test_details_can_be_hidden(self):
        """include_details=False drops the details object."""
        error = PayloadValidationError(details={"issues": [{"path": "prompt"}]})

        assert "details" not in error.to_dict(include_details=False)
