"""Scheduling and single-flight orchestration of posture checks."""

from .clock import Clock, SystemClock
from .orchestrator import PostureMonitor, current_check

__all__ = ["Clock", "PostureMonitor", "SystemClock", "current_check"]
