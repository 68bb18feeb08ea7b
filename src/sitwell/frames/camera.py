"""OpenCV webcam frame source."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import cv2
from loguru import logger

from sitwell.config import Settings
from sitwell.errors import FrameSourceError
from sitwell.types import Frame

CaptureFactory = Callable[[int], Any]


class CameraFrameSource:
    """Grab the latest webcam frame and encode it as JPEG."""

    def __init__(
        self,
        index: int = 0,
        *,
        width: int = 640,
        height: int = 480,
        jpeg_quality: int = 75,
        capture_factory: CaptureFactory = cv2.VideoCapture,
    ) -> None:
        self.index = index
        self.width = width
        self.height = height
        self.jpeg_quality = jpeg_quality
        self._capture_factory = capture_factory
        self._cap: Any = None

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> CameraFrameSource:
        return cls(
            settings.camera_index,
            width=settings.frame_width,
            height=settings.frame_height,
            jpeg_quality=settings.jpeg_quality,
            **kwargs,
        )

    @property
    def is_open(self) -> bool:
        return self._cap is not None and bool(self._cap.isOpened())

    def open(self) -> CameraFrameSource:
        """Acquire the camera; failure here is fatal for the caller."""
        if self.is_open:
            return self
        cap = self._capture_factory(self.index)
        if not cap.isOpened():
            cap.release()
            raise FrameSourceError(f"Webcam access denied or failed: camera {self.index} could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._cap = cap
        logger.info("camera.open index={} size={}x{}", self.index, self.width, self.height)
        return self

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("camera.release index={}", self.index)

    def __enter__(self) -> CameraFrameSource:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def capture(self) -> Frame | None:
        if not self.is_open:
            logger.warning("camera.capture stream not ready index={}", self.index)
            return None
        ok, image = self._cap.read()
        if not ok or image is None or getattr(image, "size", 0) == 0:
            logger.warning("camera.capture read failed index={}", self.index)
            return None
        ok, buffer = cv2.imencode(".jpg", image, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            logger.warning("camera.capture encode failed index={}", self.index)
            return None
        return Frame(data=buffer.tobytes(), mime_type="image/jpeg")
