"""
Video Job Runner

Drives one long-running Veo operation to a terminal state:

    SUBMITTED -> POLLING -> SUCCEEDED | FAILED_NO_RESULT | FAILED_DOWNLOAD | TIMED_OUT

Polling sleeps with ``asyncio.sleep`` so other requests keep running, and
stops after a wall-clock budget.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from storyboard_gateway.common.errors import (
    NoOutputError,
    UpstreamError,
    UpstreamTimeoutError,
)
from storyboard_gateway.config import get_settings
from storyboard_gateway.providers.base import GenerativeClient, ProviderResponse
from storyboard_gateway.services.provider_errors import parse_provider_error

logger = logging.getLogger(__name__)

DEFAULT_VIDEO_MIME_TYPE = "video/mp4"


class JobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED_NO_RESULT = "failed_no_result"
    FAILED_DOWNLOAD = "failed_download"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class JobErrorCodes:
    """Error codes reported for each failure state"""

    no_result: str
    download_failed: str
    timeout: str


GENERATION_ERROR_CODES = JobErrorCodes(
    no_result="VIDEO_GENERATION_NO_DOWNLOAD_LINK",
    download_failed="VIDEO_DOWNLOAD_FAILED",
    timeout="VIDEO_GENERATION_TIMEOUT",
)

EXTENSION_ERROR_CODES = JobErrorCodes(
    no_result="VIDEO_EXTENSION_NO_DOWNLOAD_LINK",
    download_failed="VIDEO_EXTENSION_DOWNLOAD_FAILED",
    timeout="VIDEO_EXTENSION_TIMEOUT",
)


@dataclass
class GenerationJob:
    """Mutable state of one provider operation"""

    provider_handle: Optional[str] = None
    done: bool = False
    result_uri: Optional[str] = None
    state: JobState = JobState.SUBMITTED
    poll_count: int = 0
    error_message: Optional[str] = None

    def transition(self, state: JobState) -> None:
        logger.debug(
            "Video job %s: %s -> %s", self.provider_handle, self.state.value, state.value
        )
        self.state = state


@dataclass
class VideoJobResult:
    data: bytes
    mime_type: str
    operation_name: str
    poll_count: int


def extract_video_uri(operation: Any) -> Optional[str]:
    """
    Find the download URI in a finished operation

    Accepts both the REST shape (generateVideoResponse.generatedSamples) and
    the SDK shape (generatedVideos).
    """
    if not isinstance(operation, dict):
        return None
    response = operation.get("response")
    if not isinstance(response, dict):
        return None
    container = response.get("generateVideoResponse", response)
    if not isinstance(container, dict):
        return None
    samples = container.get("generatedSamples") or container.get("generatedVideos") or []
    if not samples or not isinstance(samples[0], dict):
        return None
    video = samples[0].get("video") or {}
    uri = video.get("uri") if isinstance(video, dict) else None
    return uri or None


def _operation_error(operation: Any) -> Optional[str]:
    if isinstance(operation, dict) and isinstance(operation.get("error"), dict):
        return operation["error"].get("message") or "Operation failed"
    return None


class VideoJobRunner:
    """
    Submit, poll and download one video operation

    Args:
        client: Provider client bound to the request's credential
        poll_interval: Seconds between operation polls
        max_wait: Wall-clock budget for the whole job in seconds
        max_poll_errors: Consecutive transient poll failures tolerated
        sleep: Awaitable sleep, replaced in tests
        clock: Monotonic clock in seconds, replaced in tests
    """

    def __init__(
        self,
        client: GenerativeClient,
        poll_interval: Optional[float] = None,
        max_wait: Optional[float] = None,
        max_poll_errors: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.client = client
        self.poll_interval = (
            settings.VIDEO_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        )
        self.max_wait = settings.VIDEO_POLL_TIMEOUT_SECONDS if max_wait is None else max_wait
        self.max_poll_errors = (
            settings.VIDEO_POLL_MAX_ERRORS if max_poll_errors is None else max_poll_errors
        )
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        model: str,
        body: dict[str, Any],
        operation: str,
        request_id: Optional[str] = None,
        error_codes: JobErrorCodes = GENERATION_ERROR_CODES,
        details: Optional[dict[str, Any]] = None,
    ) -> VideoJobResult:
        """
        Run the job to completion

        Args:
            model: Veo model id
            body: predictLongRunning request body
            operation: Human readable operation for error messages
            request_id: Gateway request id
            error_codes: Codes for the failure states
            details: Extra fields merged into every raised error's details

        Raises:
            UpstreamError: Submission, polling or download failed
            NoOutputError: Job finished without a result URI
            UpstreamTimeoutError: Wall-clock budget exceeded
        """
        job = GenerationJob()
        extra = dict(details or {})
        started = self._clock()

        submitted = await self.client.predict_long_running(model, body)
        if not submitted.is_success:
            error = parse_provider_error(submitted, operation, model, request_id)
            error.details.update(extra)
            raise error

        operation_body = submitted.body if isinstance(submitted.body, dict) else {}
        job.provider_handle = operation_body.get("name")
        if not job.provider_handle:
            raise UpstreamError(
                message=f"{operation} failed: provider returned no operation handle | Request ID: {request_id}",
                code="VIDEO_OPERATION_MISSING",
                status_code=502,
                details=extra,
                request_id=request_id,
            )

        logger.info("%s submitted: model=%s operation=%s", operation, model, job.provider_handle)
        job.transition(JobState.POLLING)
        job.done = bool(operation_body.get("done"))
        consecutive_errors = 0

        while not job.done:
            if self._clock() - started >= self.max_wait:
                job.transition(JobState.TIMED_OUT)
                logger.warning(
                    "%s timed out after %ss: operation=%s polls=%s",
                    operation,
                    self.max_wait,
                    job.provider_handle,
                    job.poll_count,
                )
                raise UpstreamTimeoutError(
                    message=(
                        f"{operation} did not complete within {int(self.max_wait)} seconds. "
                        f"Request ID: {request_id or job.provider_handle}"
                    ),
                    code=error_codes.timeout,
                    details={**extra, "operation": job.provider_handle, "polls": job.poll_count},
                    request_id=request_id,
                )

            await self._sleep(self.poll_interval)
            polled = await self.client.get_operation(job.provider_handle)
            job.poll_count += 1

            if not polled.is_success:
                consecutive_errors += 1
                if polled.is_retryable and consecutive_errors <= self.max_poll_errors:
                    logger.warning(
                        "%s poll %s failed with status %s, retrying",
                        operation,
                        job.poll_count,
                        polled.status_code,
                    )
                    continue
                error = parse_provider_error(polled, operation, model, request_id)
                error.details.update(extra)
                raise error

            consecutive_errors = 0
            operation_body = polled.body if isinstance(polled.body, dict) else {}
            job.done = bool(operation_body.get("done"))
            logger.debug(
                "%s poll %s: operation=%s done=%s",
                operation,
                job.poll_count,
                job.provider_handle,
                job.done,
            )

        job.result_uri = extract_video_uri(operation_body)
        if not job.result_uri:
            job.error_message = _operation_error(operation_body)
            job.transition(JobState.FAILED_NO_RESULT)
            reason = f" Provider error: {job.error_message}." if job.error_message else ""
            raise NoOutputError(
                message=(
                    f"{operation} did not return a download link. This may indicate the "
                    f"generation failed or was blocked.{reason} Request ID: "
                    f"{request_id or job.provider_handle}"
                ),
                code=error_codes.no_result,
                suggested_action="Try modifying your prompt and generating again.",
                details={**extra, "operation": job.provider_handle},
                request_id=request_id,
            )

        job.transition(JobState.SUCCEEDED)
        downloaded = await self.client.download(job.result_uri)
        if not downloaded.is_success:
            job.transition(JobState.FAILED_DOWNLOAD)
            raise self._download_error(downloaded, operation, error_codes, request_id, extra)

        mime_type = downloaded.headers.get("content-type") or DEFAULT_VIDEO_MIME_TYPE
        data = downloaded.body if isinstance(downloaded.body, bytes) else b""
        logger.info(
            "%s completed: operation=%s polls=%s size=%.2fMB",
            operation,
            job.provider_handle,
            job.poll_count,
            len(data) / 1024 / 1024,
        )
        return VideoJobResult(
            data=data,
            mime_type=mime_type.split(";", 1)[0].strip(),
            operation_name=job.provider_handle,
            poll_count=job.poll_count,
        )

    @staticmethod
    def _download_error(
        response: ProviderResponse,
        operation: str,
        error_codes: JobErrorCodes,
        request_id: Optional[str],
        extra: dict[str, Any],
    ) -> UpstreamError:
        reason = response.error or f"HTTP {response.status_code}"
        return UpstreamError(
            message=f"Failed to download video: {reason}. Request ID: {request_id}",
            code=error_codes.download_failed,
            status_code=response.status_code,
            retryable=response.status_code >= 500,
            details={**extra, "operation": operation},
            request_id=request_id,
        )
