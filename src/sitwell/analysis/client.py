"""Gemini generateContent client for single-image posture analysis."""

from __future__ import annotations

import json
from typing import Any, Protocol

import httpx
from loguru import logger

from sitwell.config import DEFAULT_API_BASE, DEFAULT_MODEL, Settings
from sitwell.errors import BlockKind, ServiceError, ServiceErrorKind
from sitwell.types import Frame

USER_AGENT = "sitwell/0.1"

# Leading bytes of each supported encoding.
IMAGE_SIGNATURES: dict[str, tuple[bytes, ...]] = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG\r\n\x1a\n",),
    "image/gif": (b"GIF87a", b"GIF89a"),
    "image/webp": (b"RIFF",),
}


class AnalysisClient(Protocol):
    """What the monitor needs from an inference backend."""

    @property
    def configured(self) -> bool: ...

    async def analyze(self, frame: Frame, prompt: str) -> str: ...


def validate_frame(frame: Frame) -> None:
    """Reject frames whose payload cannot be sent as inline image data."""

    if not frame.data:
        raise ServiceError(ServiceErrorKind.INVALID_INPUT, "Invalid image data: frame is empty.")
    mime_type = frame.mime_type.strip().lower()
    signatures = IMAGE_SIGNATURES.get(mime_type)
    if signatures is None:
        raise ServiceError(ServiceErrorKind.INVALID_INPUT, f"Invalid image data format: unsupported type {mime_type!r}.")
    if not frame.data.startswith(signatures):
        raise ServiceError(
            ServiceErrorKind.INVALID_INPUT,
            f"Invalid image data format: payload is not {mime_type}.",
        )
    if mime_type == "image/webp" and frame.data[8:12] != b"WEBP":
        raise ServiceError(ServiceErrorKind.INVALID_INPUT, "Invalid image data format: payload is not image/webp.")


def build_request_body(frame: Frame, prompt: str, *, max_output_tokens: int, temperature: float) -> dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {"inlineData": {"mimeType": frame.mime_type.strip().lower(), "data": frame.to_base64()}},
                ]
            }
        ],
        "generationConfig": {
            "maxOutputTokens": max_output_tokens,
            "temperature": temperature,
        },
    }


def extract_output_text(payload: Any) -> str:
    """Return the first candidate's first text part, or raise EMPTY_OR_BLOCKED."""

    candidate = _first(payload, "candidates")
    text = None
    parts = _first_parts(candidate)
    if parts:
        first_part = parts[0]
        if isinstance(first_part, dict):
            text = first_part.get("text")
    if isinstance(text, str) and text:
        return text

    feedback = payload.get("promptFeedback") if isinstance(payload, dict) else None
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    if block_reason:
        raise ServiceError(
            ServiceErrorKind.EMPTY_OR_BLOCKED,
            f"Request blocked, reason: {block_reason}. Check safety settings or prompt.",
            block=BlockKind.PROMPT_BLOCKED,
        )
    if isinstance(candidate, dict) and (candidate.get("safetyRatings") or candidate.get("finishReason") == "SAFETY"):
        ratings = json.dumps(candidate.get("safetyRatings") or [], ensure_ascii=False)
        raise ServiceError(
            ServiceErrorKind.EMPTY_OR_BLOCKED,
            f"Response content filtered due to safety ratings. Check safety settings. Ratings: {ratings}",
            block=BlockKind.SAFETY_FILTERED,
        )
    raise ServiceError(
        ServiceErrorKind.EMPTY_OR_BLOCKED,
        "Could not extract text from model response (no text in first candidate).",
        block=BlockKind.NO_TEXT,
    )


def _first(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict):
        return None
    items = payload.get(key)
    if isinstance(items, list) and items:
        return items[0]
    return None


def _first_parts(candidate: Any) -> list[Any]:
    if not isinstance(candidate, dict):
        return []
    content = candidate.get("content")
    if not isinstance(content, dict):
        return []
    parts = content.get("parts")
    return parts if isinstance(parts, list) else []


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"].strip():
            return error["message"].strip()
    return f"HTTP error {response.status_code}"


class GeminiClient:
    """Async client for the Gemini ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = DEFAULT_MODEL,
        api_base: str = DEFAULT_API_BASE,
        max_output_tokens: int = 150,
        temperature: float = 0.2,
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip() or None
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> GeminiClient:
        return cls(
            settings.api_key,
            model=settings.model,
            api_base=settings.api_base,
            max_output_tokens=settings.max_output_tokens,
            temperature=settings.temperature,
            timeout_seconds=settings.request_timeout_seconds,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return self._api_key is not None

    @property
    def endpoint(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def __aenter__(self) -> GeminiClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
            )
        return self._http

    async def analyze(self, frame: Frame, prompt: str) -> str:
        """Send one frame with the instruction text and return the raw model output."""

        if self._api_key is None:
            raise ServiceError(
                ServiceErrorKind.MISSING_CREDENTIAL,
                "API credential is not configured (set GEMINI_API_KEY or SITWELL_API_KEY).",
            )
        validate_frame(frame)
        body = build_request_body(
            frame,
            prompt,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
        )

        logger.info("analysis.request model={} bytes={}", self.model, len(frame.data))
        try:
            response = await self._client().post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": self._api_key},
            )
        except httpx.TimeoutException as exc:
            raise ServiceError(
                ServiceErrorKind.TRANSPORT_OR_HTTP,
                f"API request timed out after {self.timeout_seconds:g}s.",
            ) from exc
        except httpx.HTTPError as exc:
            raise ServiceError(ServiceErrorKind.TRANSPORT_OR_HTTP, f"API request failed: {exc!s}") from exc

        logger.info("analysis.response status={}", response.status_code)
        if not response.is_success:
            detail = _error_message(response)
            logger.error("analysis.response.error status={} detail={}", response.status_code, detail)
            raise ServiceError(ServiceErrorKind.TRANSPORT_OR_HTTP, f"API request failed: {detail}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceError(
                ServiceErrorKind.TRANSPORT_OR_HTTP,
                "API request failed: response body is not valid JSON.",
            ) from exc

        text = extract_output_text(payload)
        logger.debug("analysis.output text={!r}", text)
        return text
