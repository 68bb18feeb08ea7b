"""Frame source backed by an image file on disk."""

from __future__ import annotations

import mimetypes
from pathlib import Path

from loguru import logger

from sitwell.types import Frame


class StillImageFrameSource:
    """Read the file on every capture so an external process can keep replacing it."""

    def __init__(self, path: Path, *, mime_type: str | None = None) -> None:
        self.path = path
        self.mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "image/jpeg"

    def capture(self) -> Frame | None:
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            logger.warning("still.capture unreadable path={} error={}", self.path, exc)
            return None
        if not data:
            return None
        return Frame(data=data, mime_type=self.mime_type)
