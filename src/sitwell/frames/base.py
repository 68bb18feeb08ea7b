"""Frame source interface."""

from __future__ import annotations

from typing import Protocol

from sitwell.types import Frame


class FrameSource(Protocol):
    """Supplies the most recent still on demand; ``None`` means not ready yet."""

    def capture(self) -> Frame | None: ...
