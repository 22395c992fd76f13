"""
Google Gemini API Client

Calls the Gemini REST API (generateContent, streamGenerateContent, Imagen
predict, Veo predictLongRunning and operations) with httpx.
"""

import json
import logging
from typing import Any, AsyncGenerator, Optional

import httpx

from storyboard_gateway.common.sanitizer import mask_credential, sanitize_payload
from storyboard_gateway.common.timer import Timer
from storyboard_gateway.config import get_settings
from storyboard_gateway.providers.base import GenerativeClient, ProviderResponse

logger = logging.getLogger(__name__)

API_VERSION = "v1beta"
SSE_DATA_PREFIX = "data:"


class GeminiClient(GenerativeClient):
    """Google Gemini REST client bound to one API key."""

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = api_key
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT

    def __repr__(self) -> str:
        return f"GeminiClient(base_url={self.base_url!r}, api_key={mask_credential(self.api_key)!r})"

    def _headers(self) -> dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _build_url(self, path: str) -> str:
        cleaned_path = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{cleaned_path}"

    def _model_url(self, model: str, method: str) -> str:
        return self._build_url(f"/{API_VERSION}/models/{model}:{method}")

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        body: Any = response.text
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            pass
        return body

    async def _request(
        self,
        method: str,
        url: str,
        body: Optional[dict[str, Any]] = None,
        raw: bool = False,
    ) -> ProviderResponse:
        logger.debug(
            "Gemini Request: method=%s url=%s body=%s",
            method,
            url,
            json.dumps(sanitize_payload(body), ensure_ascii=False) if body else None,
        )

        timer = Timer().start()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._headers(),
                    json=body,
                )

                timer.mark_first_byte()

                if raw and response.status_code < 400:
                    response_body: Any = response.content
                else:
                    response_body = self._parse_body(response)

                timer.stop()

                logger.debug(
                    "Gemini Response: url=%s status=%s total_time_ms=%s",
                    url,
                    response.status_code,
                    timer.total_time_ms,
                )

                return ProviderResponse(
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    body=response_body,
                    first_byte_delay_ms=timer.first_byte_delay_ms,
                    total_time_ms=timer.total_time_ms,
                )

        except httpx.TimeoutException as e:
            timer.stop()
            return ProviderResponse(
                status_code=504,
                error=f"Request timeout: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

        except httpx.RequestError as e:
            timer.stop()
            return ProviderResponse(
                status_code=502,
                error=f"Request error: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

    async def generate_content(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        return await self._request("POST", self._model_url(model, "generateContent"), body)

    async def predict(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        return await self._request("POST", self._model_url(model, "predict"), body)

    async def predict_long_running(self, model: str, body: dict[str, Any]) -> ProviderResponse:
        return await self._request("POST", self._model_url(model, "predictLongRunning"), body)

    async def get_operation(self, operation_name: str) -> ProviderResponse:
        name = operation_name.lstrip("/")
        return await self._request("GET", self._build_url(f"/{API_VERSION}/{name}"))

    async def download(self, uri: str) -> ProviderResponse:
        """Download a generated file; the key travels in the header, not the query string"""
        return await self._request("GET", uri, raw=True)

    async def stream_generate_content(
        self, model: str, body: dict[str, Any]
    ) -> AsyncGenerator[tuple[Optional[dict[str, Any]], ProviderResponse], None]:
        """
        Stream generateContent chunks over server-sent events

        Closing the generator closes the upstream HTTP stream, so a caller that
        stops iterating stops reading from the provider.
        """
        url = f"{self._model_url(model, 'streamGenerateContent')}?alt=sse"

        logger.debug(
            "Gemini Stream Request: url=%s body=%s",
            url,
            json.dumps(sanitize_payload(body), ensure_ascii=False),
        )

        timer = Timer().start()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    method="POST",
                    url=url,
                    headers=self._headers(),
                    json=body,
                ) as response:
                    provider_response = ProviderResponse(
                        status_code=response.status_code,
                        headers=dict(response.headers),
                    )

                    if response.status_code >= 400:
                        body_bytes = await response.aread()
                        timer.mark_first_byte()
                        timer.stop()
                        provider_response.first_byte_delay_ms = timer.first_byte_delay_ms
                        provider_response.total_time_ms = timer.total_time_ms
                        try:
                            provider_response.body = json.loads(body_bytes)
                        except (json.JSONDecodeError, ValueError):
                            provider_response.body = body_bytes.decode("utf-8", errors="replace")
                        reason = response.reason_phrase or "Upstream error"
                        provider_response.error = f"{response.status_code} {reason}"
                        yield None, provider_response
                        return

                    async for line in response.aiter_lines():
                        if not line.startswith(SSE_DATA_PREFIX):
                            continue
                        data = line[len(SSE_DATA_PREFIX):].strip()
                        if not data:
                            continue
                        try:
                            chunk = json.loads(data)
                        except json.JSONDecodeError:
                            logger.warning("Skipping malformed stream chunk: %s", data[:200])
                            continue

                        if provider_response.first_byte_delay_ms is None:
                            timer.mark_first_byte()
                            provider_response.first_byte_delay_ms = timer.first_byte_delay_ms

                        yield chunk, provider_response

                    timer.stop()
                    provider_response.total_time_ms = timer.total_time_ms

        except httpx.TimeoutException as e:
            timer.stop()
            yield None, ProviderResponse(
                status_code=504,
                error=f"Request timeout: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )

        except httpx.RequestError as e:
            timer.stop()
            yield None, ProviderResponse(
                status_code=502,
                error=f"Request error: {str(e)}",
                first_byte_delay_ms=timer.first_byte_delay_ms,
                total_time_ms=timer.total_time_ms,
            )
