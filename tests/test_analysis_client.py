from __future__ import annotations

import base64
import json
from typing import Any

import httpx
import pytest

from sitwell.analysis.client import GeminiClient
from sitwell.analysis.prompt import POSTURE_PROMPT
from sitwell.config import Settings
from sitwell.errors import BlockKind, ServiceError, ServiceErrorKind
from sitwell.types import Frame

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32


def _client(handler: Any, *, api_key: str | None = "test-key", **kwargs: Any) -> GeminiClient:
    return GeminiClient(api_key, transport=httpx.MockTransport(handler), **kwargs)


def _text_response(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}, "finishReason": "STOP"}]}


@pytest.mark.asyncio
async def test_analyze_sends_prompt_and_inline_image() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_text_response('{"posture": "good"}'))

    async with _client(handler) as client:
        output = await client.analyze(Frame(JPEG_BYTES), POSTURE_PROMPT)

    assert output == '{"posture": "good"}'
    assert seen["url"] == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.0-flash:generateContent"
    assert seen["key"] == "test-key"
    parts = seen["body"]["contents"][0]["parts"]
    assert parts[0] == {"text": POSTURE_PROMPT}
    assert parts[1]["inlineData"]["mimeType"] == "image/jpeg"
    assert base64.b64decode(parts[1]["inlineData"]["data"]) == JPEG_BYTES
    assert seen["body"]["generationConfig"] == {"maxOutputTokens": 150, "temperature": 0.2}


@pytest.mark.asyncio
async def test_analyze_returns_first_candidate_text_verbatim() -> None:
    raw = 'Sure!\n```json\n{"posture": "bad", "reason": "slouching"}\n```\n'

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_text_response(raw))

    async with _client(handler) as client:
        assert await client.analyze(Frame(JPEG_BYTES), "prompt") == raw


@pytest.mark.asyncio
async def test_missing_credential_fails_before_network() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200, json=_text_response("{}"))

    client = _client(handler, api_key="   ")
    assert client.configured is False
    with pytest.raises(ServiceError) as exc_info:
        await client.analyze(Frame(JPEG_BYTES), "prompt")

    assert exc_info.value.kind is ServiceErrorKind.MISSING_CREDENTIAL
    assert "credential" in str(exc_info.value)
    assert calls["count"] == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "frame",
    [
        Frame(b""),
        Frame(b"not really a jpeg"),
        Frame(JPEG_BYTES, mime_type="text/plain"),
        Frame(b"RIFF\x00\x00\x00\x00AVI ", mime_type="image/webp"),
    ],
)
async def test_invalid_frames_are_rejected(frame: Frame) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(frame, "prompt")
    assert exc_info.value.kind is ServiceErrorKind.INVALID_INPUT


@pytest.mark.asyncio
async def test_png_frames_are_sent_with_their_mime_type() -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_text_response('{"posture": "good"}'))

    frame = Frame(b"\x89PNG\r\n\x1a\n" + b"\x00" * 8, mime_type="image/png")
    await _client(handler).analyze(frame, "prompt")
    assert seen["body"]["contents"][0]["parts"][1]["inlineData"]["mimeType"] == "image/png"


@pytest.mark.asyncio
async def test_http_error_surfaces_service_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"code": 400, "message": "API key not valid.", "status": "INVALID_ARGUMENT"}})

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(Frame(JPEG_BYTES), "prompt")
    assert exc_info.value.kind is ServiceErrorKind.TRANSPORT_OR_HTTP
    assert str(exc_info.value) == "API request failed: API key not valid."


@pytest.mark.asyncio
async def test_http_error_without_structured_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(Frame(JPEG_BYTES), "prompt")
    assert str(exc_info.value) == "API request failed: HTTP error 503"


@pytest.mark.asyncio
async def test_timeout_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler, timeout_seconds=1.5).analyze(Frame(JPEG_BYTES), "prompt")
    assert exc_info.value.kind is ServiceErrorKind.TRANSPORT_OR_HTTP
    assert "timed out after 1.5s" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connection_error_is_a_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(Frame(JPEG_BYTES), "prompt")
    assert exc_info.value.kind is ServiceErrorKind.TRANSPORT_OR_HTTP
    assert "connection refused" in str(exc_info.value)


@pytest.mark.asyncio
async def test_non_json_success_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(Frame(JPEG_BYTES), "prompt")
    assert exc_info.value.kind is ServiceErrorKind.TRANSPORT_OR_HTTP


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "block", "fragment"),
    [
        ({"promptFeedback": {"blockReason": "SAFETY"}}, BlockKind.PROMPT_BLOCKED, "Request blocked, reason: SAFETY"),
        (
            {
                "candidates": [
                    {
                        "finishReason": "SAFETY",
                        "safetyRatings": [{"category": "HARM_CATEGORY_HARASSMENT", "probability": "HIGH"}],
                    }
                ]
            },
            BlockKind.SAFETY_FILTERED,
            "filtered due to safety ratings",
        ),
        ({"candidates": []}, BlockKind.NO_TEXT, "Could not extract text"),
        ({"candidates": [{"content": {"parts": [{"text": ""}]}}]}, BlockKind.NO_TEXT, "Could not extract text"),
    ],
)
async def test_empty_or_blocked_responses_are_distinguished(
    payload: dict[str, Any], block: BlockKind, fragment: str
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(ServiceError) as exc_info:
        await _client(handler).analyze(Frame(JPEG_BYTES), "prompt")
    assert exc_info.value.kind is ServiceErrorKind.EMPTY_OR_BLOCKED
    assert exc_info.value.block is block
    assert fragment in str(exc_info.value)


def test_from_settings_copies_request_tuning() -> None:
    settings = Settings(
        _env_file=None,
        api_key="k",
        model="gemini-test",
        max_output_tokens=64,
        temperature=0.0,
        request_timeout_seconds=5,
    )
    client = GeminiClient.from_settings(settings)
    assert client.configured
    assert client.endpoint.endswith("/models/gemini-test:generateContent")
    assert client.max_output_tokens == 64
    assert client.temperature == 0.0
    assert client.timeout_seconds == 5
