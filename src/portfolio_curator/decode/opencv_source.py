"""
OpenCV Decode Source
====================

Production decode source backed by ``cv2.VideoCapture``.

VideoCapture is blocking and not thread-safe, so every call into it runs
on a dedicated single-worker executor. That keeps the asyncio loop free
while the engine waits on a seek, and serializes access when a seek that
already timed out is still running in the background.

Duration is derived from frame count and FPS. Both are frequently wrong
or missing for streamed or variable-frame-rate containers, in which case
the reported duration is None and the engine falls back to its default.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from portfolio_curator.decode.source import DecodeError, MetadataLoadError, VideoMetadata


logger = logging.getLogger(__name__)


class OpenCVDecodeSource:
    """
    Decode source reading a local video file with OpenCV.

    Attributes:
        path: Path of the video file
        name: Display name (file name by default)

    Example:
        source = OpenCVDecodeSource("clip.mp4")
        metadata = await source.load_metadata()
        await source.seek(1.5)
        picture = source.read_picture()
        source.close()
    """

    def __init__(self, path: Union[str, Path], name: Optional[str] = None) -> None:
        self.path = str(path)
        self.name = name or Path(path).name

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="decode")
        self._capture: Optional[cv2.VideoCapture] = None
        self._picture: Optional[np.ndarray] = None
        self._closed: bool = False

    async def _call(self, fn, *args):
        if self._closed:
            raise DecodeError(f"Source already closed: {self.name}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    async def load_metadata(self) -> VideoMetadata:
        return await self._call(self._open)

    async def seek(self, timestamp: float) -> None:
        await self._call(self._seek_and_read, timestamp)

    def has_current_data(self) -> bool:
        return self._picture is not None

    def read_picture(self) -> Optional[np.ndarray]:
        return self._picture

    def close(self) -> None:
        """Release the capture after any in-flight call finishes."""
        if self._closed:
            return
        self._closed = True
        self._picture = None
        self._executor.submit(self._release)
        self._executor.shutdown(wait=False)
        logger.debug(f"Decode source closed: {self.name}")

    # -------------------------------------------------------------------------
    # Worker-thread methods
    # -------------------------------------------------------------------------

    def _open(self) -> VideoMetadata:
        capture = cv2.VideoCapture(self.path)
        if not capture.isOpened():
            capture.release()
            raise MetadataLoadError(f"Cannot open video: {self.name}")

        fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0)
        frame_count = float(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)

        if width <= 0 or height <= 0:
            # Some containers only expose dimensions once a frame is decoded
            ok, first = capture.read()
            if ok and first is not None:
                height, width = first.shape[:2]
            capture.set(cv2.CAP_PROP_POS_FRAMES, 0)

        duration: Optional[float] = None
        if fps > 0 and frame_count > 0:
            duration = frame_count / fps

        self._capture = capture
        metadata = VideoMetadata(duration=duration, width=width, height=height, fps=fps)
        logger.info(f"Opened {self.name}: {metadata.to_dict()}")
        return metadata

    def _seek_and_read(self, timestamp: float) -> None:
        if self._capture is None:
            raise DecodeError("Seek requested before metadata was loaded")

        self._picture = None
        if not self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0):
            raise DecodeError(f"Seek to {timestamp:.3f}s rejected by decoder")

        ok, picture = self._capture.read()
        if not ok or picture is None:
            raise DecodeError(f"No picture decoded at {timestamp:.3f}s")
        self._picture = picture

    def _release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
