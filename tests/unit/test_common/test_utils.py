"""
Common Utilities Unit Tests
"""

from datetime import datetime, timezone

from storyboard_gateway.common.media import extension_for_mime_type, mime_type_for_path
from storyboard_gateway.common.sanitizer import (
    mask_credential,
    sanitize_headers,
    sanitize_payload,
)
from storyboard_gateway.common.utils import (
    ensure_utc,
    extract_model,
    extract_project_id,
    hash_prompt,
)


def test_extract_model_lookup_order():
    """chatModel wins over imageModel, which wins over model."""
    assert extract_model({"model": "veo", "imageModel": "imagen", "chatModel": "gemini"}) == "gemini"
    assert extract_model({"model": "veo", "imageModel": "imagen"}) == "imagen"
    assert extract_model({"model": "veo"}) == "veo"
    assert extract_model({"model": 3}) is None
    assert extract_model(["not", "a", "dict"]) is None


def test_extract_project_id():
    assert extract_project_id({"projectId": "p1"}) == "p1"
    assert extract_project_id({"projectId": 1}) is None
    assert extract_project_id(None) is None


def test_hash_prompt_is_stable_and_short():
    """The fingerprint is deterministic and never the prompt itself."""
    digest = hash_prompt("a neon city")
    assert digest == hash_prompt("a neon city")
    assert len(digest) == 16
    assert "neon" not in digest


def test_ensure_utc_handles_naive_values():
    naive = datetime(2024, 1, 1, 12, 0)
    assert ensure_utc(naive).tzinfo == timezone.utc
    assert ensure_utc(None) is None


def test_mask_credential():
    assert mask_credential("AIzaSyA1234567890abcdef") == "AIza***...***ef"
    assert mask_credential("short") == "***"
    assert mask_credential(None) is None


def test_sanitize_headers_masks_goog_key():
    headers = sanitize_headers({"x-goog-api-key": "AIzaSyA1234567890abcdef", "Accept": "json"})
    assert headers["x-goog-api-key"] == "AIza***...***ef"
    assert headers["Accept"] == "json"


def test_sanitize_payload_shortens_inline_data():
    """Large base64 fields are replaced; the input is not modified."""
    blob = "A" * 500
    body = {
        "contents": [{"parts": [{"inlineData": {"mimeType": "image/png", "data": blob}}]}],
        "instances": [{"video": {"bytesBase64Encoded": blob}}],
        "prompt": "short text",
    }

    sanitized = sanitize_payload(body)

    assert sanitized["contents"][0]["parts"][0]["inlineData"]["data"] == "<500 chars>"
    assert sanitized["instances"][0]["video"]["bytesBase64Encoded"] == "<500 chars>"
    assert sanitized["prompt"] == "short text"
    assert body["contents"][0]["parts"][0]["inlineData"]["data"] == blob


def test_media_type_mapping():
    assert mime_type_for_path("/data/assets/p1/123.PNG") == "image/png"
    assert mime_type_for_path("clip.mp4") == "video/mp4"
    assert mime_type_for_path("unknown.xyz") == "application/octet-stream"
    assert extension_for_mime_type("image/jpeg") == "jpg"
    assert extension_for_mime_type("video/mp4; codecs=avc1") == "mp4"
    assert extension_for_mime_type("image/avif") == "avif"
