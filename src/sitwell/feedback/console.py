"""Terminal renderers for verdicts."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import TextIO

from rich.console import Console, RenderableType
from rich.panel import Panel
from rich.text import Text

from sitwell.types import MonitorStatus, Posture, Verdict

STATUS_TEXT: dict[MonitorStatus, str] = {
    MonitorStatus.MONITORING: "Monitoring posture...",
    MonitorStatus.CAPTURING: "Capturing image...",
    MonitorStatus.ANALYZING: "Analyzing posture...",
    MonitorStatus.COMPLETE: "Posture analysis complete.",
    MonitorStatus.PAUSED: "Posture monitoring paused.",
}


def render_verdict(verdict: Verdict) -> RenderableType:
    kind = verdict.kind
    if kind is Posture.GOOD:
        body = Text("Keep up the great work!")
        return Panel(body, title="Posture: Good!", border_style="green")
    if kind is Posture.BAD:
        title = "Posture: Needs Improvement"
        if verdict.reason:
            title = f"{title} ({verdict.reason})"
        body = Text("Take a deep breath in... and out. Sit up straight!", style="italic dark_orange")
        return Panel(body, title=title, border_style="dark_orange")
    body = Text(verdict.reason or "Could not determine posture.", style="red")
    return Panel(body, title="Analysis Error", border_style="red")


class ConsoleFeedback:
    """Show each verdict in a panel and dismiss it after ``display_seconds``.

    A newer verdict supersedes the displayed one and restarts the timer.
    """

    def __init__(self, console: Console | None = None, *, display_seconds: float = 8.0) -> None:
        self.console = console or Console()
        self.display_seconds = display_seconds
        self.current: Verdict | None = None
        self._dismiss_handle: asyncio.TimerHandle | None = None

    def deliver(self, verdict: Verdict) -> None:
        self._cancel_dismiss()
        self.current = verdict
        self.console.print(render_verdict(verdict))
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._dismiss_handle = loop.call_later(self.display_seconds, self.dismiss)

    def dismiss(self) -> None:
        self._dismiss_handle = None
        if self.current is None:
            return
        self.current = None
        self.console.print(Text(STATUS_TEXT[MonitorStatus.MONITORING], style="dim"))

    def show_status(self, status: MonitorStatus) -> None:
        self.console.print(Text(STATUS_TEXT[status], style="dim"))

    def close(self) -> None:
        self._cancel_dismiss()

    def _cancel_dismiss(self) -> None:
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None


class JsonLinesFeedback:
    """Write one JSON object per verdict."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdout

    def deliver(self, verdict: Verdict) -> None:
        self._stream.write(json.dumps(verdict.to_dict(), ensure_ascii=False) + "\n")
        self._stream.flush()
