"""sitwell - keep an eye on your posture."""

from .monitor import PostureMonitor
from .types import Frame, Verdict

__version__ = "0.1.0"

__all__ = ["Frame", "PostureMonitor", "Verdict"]
