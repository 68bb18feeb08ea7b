"""Verdict consumers."""

from .base import FeedbackSink
from .bus import VerdictChannel
from .console import ConsoleFeedback, JsonLinesFeedback

__all__ = ["ConsoleFeedback", "FeedbackSink", "JsonLinesFeedback", "VerdictChannel"]
