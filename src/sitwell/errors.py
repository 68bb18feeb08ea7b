"""Application-level exception types for sitwell."""

from __future__ import annotations

from enum import StrEnum


class SitwellError(Exception):
    """Base exception for sitwell."""


class ConfigurationError(SitwellError):
    """Raised when settings from the environment, .env or CLI options are invalid."""


class FrameSourceError(SitwellError):
    """Raised when a frame source cannot be acquired at start-up."""


class ServiceErrorKind(StrEnum):
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_INPUT = "invalid_input"
    TRANSPORT_OR_HTTP = "transport_or_http"
    EMPTY_OR_BLOCKED = "empty_or_blocked"


class BlockKind(StrEnum):
    """Why a well-formed response carried no usable text."""

    PROMPT_BLOCKED = "prompt_blocked"
    SAFETY_FILTERED = "safety_filtered"
    NO_TEXT = "no_text"


class ServiceError(SitwellError):
    """Raised by the analysis client for transport and service failures."""

    def __init__(self, kind: ServiceErrorKind, detail: str, *, block: BlockKind | None = None) -> None:
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        self.block = block


class ExtractionFailure(StrEnum):
    NO_OBJECT_FOUND = "no_object_found"
    MALFORMED_OBJECT = "malformed_object"
    MISSING_POSTURE_FIELD = "missing_posture_field"


class ExtractionError(SitwellError):
    """Raised when no verdict can be recovered from model output."""

    def __init__(self, reason: ExtractionFailure, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason
        self.detail = detail
