"""
Video Job Runner Unit Tests
"""

from typing import Any

import pytest

from storyboard_gateway.common.errors import (
    NoOutputError,
    UpstreamError,
    UpstreamTimeoutError,
)
from storyboard_gateway.providers.base import ProviderResponse
from storyboard_gateway.services.video_jobs import (
    EXTENSION_ERROR_CODES,
    VideoJobRunner,
    extract_video_uri,
)

MODEL = "veo-3.1-generate-preview"
OPERATION_NAME = "models/veo-3.1-generate-preview/operations/op-1"
VIDEO_URI = "https://generativelanguage.googleapis.com/v1beta/files/abc:download?alt=media"


def _done_operation(uri: str = VIDEO_URI) -> ProviderResponse:
    return ProviderResponse(
        status_code=200,
        body={
            "name": OPERATION_NAME,
            "done": True,
            "response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": uri}}]}},
        },
    )


def _pending_operation() -> ProviderResponse:
    return ProviderResponse(status_code=200, body={"name": OPERATION_NAME, "done": False})


class FakeVideoClient:
    """Scripted long-running provider"""

    def __init__(
        self,
        submit: ProviderResponse = None,
        polls: list[ProviderResponse] = None,
        download: ProviderResponse = None,
    ):
        self.submit = submit or ProviderResponse(status_code=200, body={"name": OPERATION_NAME})
        self.polls = list(polls or [])
        self.download_response = download or ProviderResponse(
            status_code=200, headers={"content-type": "video/mp4"}, body=b"mp4-bytes"
        )
        self.submitted_bodies: list[dict[str, Any]] = []
        self.polled: list[str] = []
        self.downloaded: list[str] = []

    async def predict_long_running(self, model, body):
        self.submitted_bodies.append(body)
        return self.submit

    async def get_operation(self, operation_name):
        self.polled.append(operation_name)
        return self.polls.pop(0)

    async def download(self, uri):
        self.downloaded.append(uri)
        return self.download_response


class FakeClock:
    """Monotonic clock advanced by the fake sleep"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _runner(client: FakeVideoClient, clock: FakeClock, **kwargs) -> VideoJobRunner:
    kwargs.setdefault("poll_interval", 10)
    kwargs.setdefault("max_wait", 600)
    kwargs.setdefault("max_poll_errors", 3)
    return VideoJobRunner(client, sleep=clock.sleep, clock=clock, **kwargs)


class TestVideoJobRunner:
    """VideoJobRunner.run"""

    @pytest.mark.asyncio
    async def test_success_polls_until_done(self):
        """The job polls at the configured interval and downloads the result."""
        client = FakeVideoClient(polls=[_pending_operation(), _pending_operation(), _done_operation()])
        clock = FakeClock()

        result = await _runner(client, clock).run(MODEL, {"instances": []}, "Video generation", "req-1")

        assert result.data == b"mp4-bytes"
        assert result.mime_type == "video/mp4"
        assert result.operation_name == OPERATION_NAME
        assert result.poll_count == 3
        assert clock.sleeps == [10, 10, 10]
        assert client.polled == [OPERATION_NAME] * 3
        assert client.downloaded == [VIDEO_URI]

    @pytest.mark.asyncio
    async def test_already_done_skips_polling(self):
        client = FakeVideoClient(submit=_done_operation())
        clock = FakeClock()

        result = await _runner(client, clock).run(MODEL, {}, "Video generation")

        assert result.poll_count == 0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_mime_type_parameters_stripped(self):
        client = FakeVideoClient(
            submit=_done_operation(),
            download=ProviderResponse(
                status_code=200, headers={"content-type": "video/webm; codecs=vp9"}, body=b"x"
            ),
        )

        result = await _runner(client, FakeClock()).run(MODEL, {}, "Video generation")

        assert result.mime_type == "video/webm"

    @pytest.mark.asyncio
    async def test_submit_failure_is_classified(self):
        client = FakeVideoClient(
            submit=ProviderResponse(
                status_code=400,
                body={"error": {"message": "Invalid duration", "status": "INVALID_ARGUMENT"}},
            )
        )

        with pytest.raises(UpstreamError) as exc_info:
            await _runner(client, FakeClock()).run(
                MODEL, {}, "Video generation", "req-1", details={"sceneId": "s1"}
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["sceneId"] == "s1"
        assert client.polled == []

    @pytest.mark.asyncio
    async def test_missing_operation_name(self):
        client = FakeVideoClient(submit=ProviderResponse(status_code=200, body={}))

        with pytest.raises(UpstreamError) as exc_info:
            await _runner(client, FakeClock()).run(MODEL, {}, "Video generation")

        assert exc_info.value.code == "VIDEO_OPERATION_MISSING"

    @pytest.mark.asyncio
    async def test_done_without_uri_is_no_output(self):
        """A finished operation without a link reports the provider's reason."""
        client = FakeVideoClient(
            polls=[
                ProviderResponse(
                    status_code=200,
                    body={"done": True, "error": {"message": "blocked by safety filter"}},
                )
            ]
        )

        with pytest.raises(NoOutputError) as exc_info:
            await _runner(client, FakeClock()).run(MODEL, {}, "Video generation", "req-1")

        error = exc_info.value
        assert error.code == "VIDEO_GENERATION_NO_DOWNLOAD_LINK"
        assert error.retryable is True
        assert "blocked by safety filter" in error.message
        assert "Request ID: req-1" in error.message
        assert client.downloaded == []

    @pytest.mark.asyncio
    async def test_download_failure(self):
        client = FakeVideoClient(
            submit=_done_operation(),
            download=ProviderResponse(status_code=403, error="Forbidden"),
        )

        with pytest.raises(UpstreamError) as exc_info:
            await _runner(client, FakeClock()).run(
                MODEL, {}, "Video extension", error_codes=EXTENSION_ERROR_CODES
            )

        assert exc_info.value.code == "VIDEO_EXTENSION_DOWNLOAD_FAILED"
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_timeout(self):
        """The wall-clock budget ends the job with a retryable timeout."""
        client = FakeVideoClient(polls=[_pending_operation() for _ in range(10)])
        clock = FakeClock()

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await _runner(client, clock, max_wait=30).run(
                MODEL, {}, "Video extension", "req-1", error_codes=EXTENSION_ERROR_CODES
            )

        error = exc_info.value
        assert error.code == "VIDEO_EXTENSION_TIMEOUT"
        assert error.status_code == 504
        assert error.retryable is True
        assert error.details["polls"] == 3
        assert "30 seconds" in error.message

    @pytest.mark.asyncio
    async def test_transient_poll_errors_are_retried(self):
        client = FakeVideoClient(
            polls=[
                ProviderResponse(status_code=503, error="unavailable"),
                ProviderResponse(status_code=504, error="Request timeout"),
                _done_operation(),
            ]
        )

        result = await _runner(client, FakeClock()).run(MODEL, {}, "Video generation")

        assert result.poll_count == 3

    @pytest.mark.asyncio
    async def test_too_many_poll_errors(self):
        """Consecutive transient failures beyond the limit abort the job."""
        client = FakeVideoClient(
            polls=[ProviderResponse(status_code=503, body={"error": {"message": "unavailable"}})] * 3
        )

        with pytest.raises(UpstreamError) as exc_info:
            await _runner(client, FakeClock(), max_poll_errors=2).run(MODEL, {}, "Video generation")

        assert exc_info.value.status_code == 503
        assert len(client.polled) == 3

    @pytest.mark.asyncio
    async def test_permanent_poll_error_fails_immediately(self):
        client = FakeVideoClient(
            polls=[ProviderResponse(status_code=404, body={"error": {"message": "no such operation"}})]
        )

        with pytest.raises(UpstreamError) as exc_info:
            await _runner(client, FakeClock()).run(MODEL, {}, "Video generation")

        assert exc_info.value.status_code == 404


def test_extract_video_uri_shapes():
    rest = {"response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": "a"}}]}}}
    sdk = {"response": {"generatedVideos": [{"video": {"uri": "b"}}]}}

    assert extract_video_uri(rest) == "a"
    assert extract_video_uri(sdk) == "b"
    assert extract_video_uri({"response": {}}) is None
    assert extract_video_uri(None) is None
