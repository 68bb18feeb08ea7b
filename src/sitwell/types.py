"""Data types shared by the monitor, its collaborators and the CLI."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Posture(StrEnum):
    GOOD = "good"
    BAD = "bad"
    ERROR = "error"


class MonitorStatus(StrEnum):
    MONITORING = "monitoring"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    PAUSED = "paused"


@dataclass(frozen=True)
class Frame:
    """One encoded still image."""

    data: bytes
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class AnalysisRequest:
    frame: Frame
    prompt: str


@dataclass(frozen=True)
class Verdict:
    """Result of one check cycle.

    ``posture`` is kept exactly as reported by the model; use ``kind`` for the
    case-insensitive classification.
    """

    posture: str
    reason: str | None = None

    @classmethod
    def error(cls, reason: str) -> Verdict:
        return cls(posture=Posture.ERROR.value, reason=reason)

    @property
    def kind(self) -> Posture:
        normalized = self.posture.strip().lower()
        if normalized == Posture.GOOD:
            return Posture.GOOD
        if normalized == Posture.BAD:
            return Posture.BAD
        return Posture.ERROR

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"posture": self.posture}
        if self.reason is not None:
            payload["reason"] = self.reason
        return payload
