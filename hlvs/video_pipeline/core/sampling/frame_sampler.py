import base64
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image
from loguru import logger

from hlvs.exceptions import SamplingError
from hlvs.video_pipeline.core.sampling.video_source import VideoSource


@dataclass(frozen=True)
class Frame:
    """One sampled still image, JPEG encoded and ready for transmission."""
    index: int
    timestamp: float
    data: bytes
    mime_type: str = "image/jpeg"

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_part(self) -> Dict[str, Any]:
        """Inline-data request part carrying this frame."""
        return {"inlineData": {"mimeType": self.mime_type, "data": self.base64}}


class FrameSampler:
    """
    Samples ``count`` evenly time-spaced frames from a VideoSource.

    The interval ``[0, duration)`` is split into ``count`` equal parts and the
    frame at the start of each part is captured. Frames are downscaled by
    ``scale`` relative to the native resolution and JPEG encoded at
    ``jpeg_quality`` (0-1). The sampler knows nothing about segments.
    """

    def __init__(self, scale: float = 0.5, jpeg_quality: float = 0.6) -> None:
        if not 0 < scale <= 1:
            raise SamplingError(f"scale must be in (0, 1], got {scale}")
        if not 0 < jpeg_quality <= 1:
            raise SamplingError(f"jpeg_quality must be in (0, 1], got {jpeg_quality}")
        self.scale = scale
        self.jpeg_quality = jpeg_quality

    @classmethod
    def from_config(cls, config) -> "FrameSampler":
        """Build a sampler from a SamplingConfig."""
        return cls(scale=config.scale, jpeg_quality=config.jpeg_quality)

    @staticmethod
    def _validate(video: VideoSource, count: int) -> float:
        if not isinstance(count, int) or count <= 0:
            raise SamplingError(f"Frame count must be a positive integer, got {count!r}")

        duration = video.duration
        if duration is None or math.isnan(duration) or math.isinf(duration) or duration <= 0:
            raise SamplingError(f"Video has no decodable duration: {duration!r}")
        return float(duration)

    @staticmethod
    def timestamps(duration: float, count: int) -> List[float]:
        """Seek positions for ``count`` frames over ``duration`` seconds."""
        interval = duration / count
        return [interval * i for i in range(count)]

    def _target_size(self, video: VideoSource, pixels: np.ndarray) -> Tuple[int, int]:
        width, height = video.width, video.height
        if not width or not height:
            height, width = pixels.shape[:2]
        return max(1, int(width * self.scale)), max(1, int(height * self.scale))

    def _encode(self, pixels: np.ndarray, size: Tuple[int, int]) -> bytes:
        image = Image.fromarray(pixels).convert("RGB")
        if image.size != size:
            image = image.resize(size, Image.Resampling.BILINEAR)

        buffer = BytesIO()
        image.save(buffer, format="JPEG", quality=int(round(self.jpeg_quality * 100)))
        return buffer.getvalue()

    async def iter_frames(self, video: VideoSource, count: int) -> AsyncIterator[Frame]:
        """
        Lazily yield ``count`` frames in increasing timestamp order.

        The video's decoding resources are held only while iterating and are
        released even if iteration stops early or fails.
        """
        duration = self._validate(video, count)
        size: Optional[Tuple[int, int]] = None

        async with video:
            for index, timestamp in enumerate(self.timestamps(duration, count)):
                pixels = await video.read_frame_at(timestamp)
                if size is None:
                    size = self._target_size(video, pixels)
                yield Frame(index=index, timestamp=timestamp, data=self._encode(pixels, size))

    async def sample(self, video: VideoSource, count: int) -> List[Frame]:
        """Sample exactly ``count`` frames from ``video``."""
        frames = [frame async for frame in self.iter_frames(video, count)]
        logger.info(f"FrameSampler: sampled {len(frames)} frames over {video.duration:.2f}s")
        return frames
