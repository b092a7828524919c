import asyncio
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import cv2
import numpy as np
from loguru import logger

from hlvs.exceptions import SamplingError


class VideoSource(ABC):
    """
    Handle to decodable video media.

    Decoding resources are only held between ``open()`` and ``close()``; use
    ``async with source:`` to scope them. Seeking is awaitable because the
    decoder needs time to settle on the requested frame.
    """

    @property
    @abstractmethod
    def duration(self) -> float:
        """Duration in seconds."""

    @property
    @abstractmethod
    def width(self) -> int:
        """Native frame width in pixels."""

    @property
    @abstractmethod
    def height(self) -> int:
        """Native frame height in pixels."""

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def read_frame_at(self, timestamp: float) -> np.ndarray:
        """Seek to ``timestamp`` seconds and return the frame as an RGB uint8 array."""

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class OpenCVVideoSource(VideoSource):
    """VideoSource backed by an OpenCV VideoCapture on a local file."""

    def __init__(self, video_path: str):
        self.video_path = video_path
        self._properties = self.get_video_properties(video_path)
        self._capture: Optional[cv2.VideoCapture] = None

    @staticmethod
    def get_video_properties(video_path: str) -> Dict[str, Any]:
        """
        Quick probe of basic video properties.
        """
        cap = cv2.VideoCapture(video_path)
        if not cap.isOpened():
            raise SamplingError(f"Cannot open video: {video_path}")

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = float(cap.get(cv2.CAP_PROP_FPS)) or 0.0
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        duration_seconds = (frame_count / fps) if fps > 0 else 0.0
        cap.release()

        return {
            "width": width,
            "height": height,
            "fps": fps,
            "frame_count": frame_count,
            "duration_seconds": duration_seconds,
        }

    @property
    def duration(self) -> float:
        return self._properties["duration_seconds"]

    @property
    def width(self) -> int:
        return self._properties["width"]

    @property
    def height(self) -> int:
        return self._properties["height"]

    async def open(self) -> None:
        if self._capture is not None:
            return
        loop = asyncio.get_running_loop()
        cap = await loop.run_in_executor(None, cv2.VideoCapture, self.video_path)
        if not cap.isOpened():
            cap.release()
            raise SamplingError(f"Cannot open video: {self.video_path}")
        self._capture = cap

    async def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None

    def _seek_and_read(self, timestamp: float) -> np.ndarray:
        self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
        ok, frame_bgr = self._capture.read()
        if not ok or frame_bgr is None:
            raise SamplingError(
                f"Could not decode a frame at {timestamp:.3f}s from {self.video_path}"
            )
        return cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    async def read_frame_at(self, timestamp: float) -> np.ndarray:
        if self._capture is None:
            raise SamplingError("Video source is not open")
        if math.isnan(timestamp) or timestamp < 0:
            raise SamplingError(f"Invalid seek position: {timestamp}")

        # OpenCV decode blocks, so the seek runs in the default executor
        loop = asyncio.get_running_loop()
        frame = await loop.run_in_executor(None, self._seek_and_read, timestamp)
        logger.debug(f"Decoded frame at {timestamp:.3f}s from {self.video_path}")
        return frame

    def __repr__(self) -> str:
        return f"OpenCVVideoSource({self.video_path!r}, duration={self.duration:.2f}s)"
