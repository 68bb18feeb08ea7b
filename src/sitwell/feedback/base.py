"""Feedback sink interface."""

from __future__ import annotations

from typing import Protocol

from sitwell.types import Verdict


class FeedbackSink(Protocol):
    """Receives one verdict per check; must return promptly."""

    def deliver(self, verdict: Verdict) -> None: ...
