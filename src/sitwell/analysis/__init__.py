"""Inference client and verdict extraction."""

from .client import AnalysisClient, GeminiClient
from .prompt import POSTURE_PROMPT
from .verdict import extract_verdict

__all__ = ["POSTURE_PROMPT", "AnalysisClient", "GeminiClient", "extract_verdict"]
