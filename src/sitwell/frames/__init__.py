"""Frame sources."""

from .base import FrameSource
from .still import StillImageFrameSource

__all__ = ["FrameSource", "StillImageFrameSource"]
