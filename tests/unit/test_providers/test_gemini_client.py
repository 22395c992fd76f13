from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from storyboard_gateway.providers.gemini_client import GeminiClient

BASE_URL = "https://generativelanguage.googleapis.com"


def _mock_response(status_code=200, body=None, content=b"", headers=None):
    return MagicMock(
        status_code=status_code,
        headers=headers or {},
        text="" if body is None else str(body),
        content=content,
        json=lambda: body,
    )


def test_repr_masks_key():
    client = GeminiClient("AIzaSyA1234567890abcdef", base_url=BASE_URL, timeout=5)
    assert "AIzaSyA1234567890abcdef" not in repr(client)


@pytest.mark.asyncio
async def test_generate_content_url_and_key_header():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = _mock_response(body={"candidates": []})
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.generate_content(
            "gemini-2.5-flash", {"contents": [{"parts": [{"text": "hi"}]}]}
        )

        call_args = mock_client.request.call_args
        assert (
            call_args.kwargs["url"]
            == f"{BASE_URL}/v1beta/models/gemini-2.5-flash:generateContent"
        )
        assert call_args.kwargs["headers"]["x-goog-api-key"] == "k"
        assert "key=" not in call_args.kwargs["url"]
        assert response.is_success
        assert response.body == {"candidates": []}


@pytest.mark.asyncio
async def test_long_running_and_operation_paths():
    client = GeminiClient("k", base_url=f"{BASE_URL}/", timeout=5)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = _mock_response(body={"name": "models/veo/operations/abc"})
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        await client.predict_long_running("veo-3.1-generate-preview", {"instances": []})
        submit_url = mock_client.request.call_args.kwargs["url"]

        await client.get_operation("models/veo/operations/abc")
        poll_call = mock_client.request.call_args

        assert submit_url == f"{BASE_URL}/v1beta/models/veo-3.1-generate-preview:predictLongRunning"
        assert poll_call.kwargs["method"] == "GET"
        assert poll_call.kwargs["url"] == f"{BASE_URL}/v1beta/models/veo/operations/abc"


@pytest.mark.asyncio
async def test_download_returns_raw_bytes():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = _mock_response(
            content=b"\x00\x01video", headers={"content-type": "video/mp4"}
        )
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.download(f"{BASE_URL}/v1beta/files/abc:download?alt=media")

        assert response.body == b"\x00\x01video"
        assert response.headers["content-type"] == "video/mp4"
        assert mock_client.request.call_args.kwargs["headers"]["x-goog-api-key"] == "k"


@pytest.mark.asyncio
async def test_error_body_is_parsed():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    error_body = {"error": {"code": 400, "message": "bad", "status": "INVALID_ARGUMENT"}}
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.return_value = _mock_response(status_code=400, body=error_body)
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.predict("imagen-4.0-generate-001", {"instances": []})

        assert not response.is_success
        assert response.status_code == 400
        assert response.body == error_body


@pytest.mark.asyncio
async def test_timeout_becomes_504_response():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.side_effect = httpx.ReadTimeout("timed out")
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.generate_content("gemini-2.5-flash", {})

        assert response.status_code == 504
        assert response.body is None
        assert "timeout" in response.error.lower()


@pytest.mark.asyncio
async def test_network_error_becomes_502_response():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.request.side_effect = httpx.ConnectError("refused")
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        response = await client.generate_content("gemini-2.5-flash", {})

        assert response.status_code == 502
        assert response.is_retryable


class _FakeStream:
    def __init__(self, status_code, lines=(), body=b""):
        self.status_code = status_code
        self.headers = {"content-type": "text/event-stream"}
        self.reason_phrase = "Bad Request" if status_code >= 400 else "OK"
        self._lines = list(lines)
        self._body = body
        self.lines_read = 0

    async def aiter_lines(self):
        for line in self._lines:
            self.lines_read += 1
            yield line

    async def aread(self):
        return self._body


class _FakeStreamContext:
    def __init__(self, stream):
        self.stream = stream
        self.exited = False

    async def __aenter__(self):
        return self.stream

    async def __aexit__(self, *exc):
        self.exited = True
        return False


@pytest.mark.asyncio
async def test_stream_parses_sse_lines():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    stream = _FakeStream(
        200,
        lines=[
            'data: {"candidates":[{"content":{"parts":[{"text":"Hel"}]}}]}',
            "",
            ": keep-alive",
            "data: not-json",
            'data: {"candidates":[{"content":{"parts":[{"text":"lo"}]}}]}',
        ],
    )
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.stream.return_value = _FakeStreamContext(stream)
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        chunks = [chunk async for chunk, _ in client.stream_generate_content("gemini-2.5-flash", {})]

        url = mock_client.stream.call_args.kwargs["url"]
        assert url == f"{BASE_URL}/v1beta/models/gemini-2.5-flash:streamGenerateContent?alt=sse"
        assert [c["candidates"][0]["content"]["parts"][0]["text"] for c in chunks] == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_stream_error_yields_single_failed_response():
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    stream = _FakeStream(400, body=b'{"error": {"message": "bad request", "code": 400}}')
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.stream.return_value = _FakeStreamContext(stream)
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        items = [item async for item in client.stream_generate_content("gemini-2.5-flash", {})]

        assert len(items) == 1
        chunk, response = items[0]
        assert chunk is None
        assert response.status_code == 400
        assert response.body["error"]["message"] == "bad request"


@pytest.mark.asyncio
async def test_closing_stream_stops_reading_upstream():
    """Closing the generator early exits the HTTP stream without reading the rest."""
    client = GeminiClient("k", base_url=BASE_URL, timeout=5)
    lines = [f'data: {{"candidates":[{{"content":{{"parts":[{{"text":"{i}"}}]}}}}]}}' for i in range(10)]
    stream = _FakeStream(200, lines=lines)
    context = _FakeStreamContext(stream)
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.stream.return_value = context
        mock_client_cls.return_value.__aenter__.return_value = mock_client

        generator = client.stream_generate_content("gemini-2.5-flash", {})
        await generator.__anext__()
        await generator.aclose()

        assert context.exited is True
        assert stream.lines_read == 1
