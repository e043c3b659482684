"""
Mock Decode Source
==================

Deterministic decode source for testing and demos.

Generates synthetic pictures whose colour depends on the requested
timestamp, so the same seek always yields the same pixels. It can also
simulate the decoder misbehaviour the sampling engine must survive:

    - metadata that never arrives or fails
    - unreliable durations (None, NaN, infinity, zero)
    - seeks that never fire a ready event (stalls)
    - seeks that report an error
    - "seeked" fired before pixel data is available
    - seeks that yield no picture at all

Faults are keyed by seek index (0-based count of seek() calls) rather
than timestamp, which keeps tests independent of float formatting.
"""

import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np

from portfolio_curator.decode.source import DecodeError, MetadataLoadError, VideoMetadata


logger = logging.getLogger(__name__)


class MockDecodeSource:
    """
    Synthetic decode source with configurable faults.

    Attributes:
        name: Display name
        seek_log: Timestamps passed to seek(), in call order
        closed: Whether close() has been called
        close_calls: Number of close() calls
    """

    def __init__(
        self,
        duration: Optional[float] = 10.0,
        width: int = 320,
        height: int = 240,
        fps: float = 30.0,
        name: str = "mock.mp4",
        picture_size: Optional[Tuple[int, int]] = None,
        metadata_error: bool = False,
        metadata_delay: float = 0.0,
        stall_seeks: Iterable[int] = (),
        fail_seeks: Iterable[int] = (),
        blank_seeks: Iterable[int] = (),
        data_delay_polls: int = 0,
        seek_delay: float = 0.0,
    ) -> None:
        """
        Initialize mock decode source.

        Args:
            duration: Reported duration (may be None/NaN/inf to simulate
                unreliable metadata)
            width: Reported picture width
            height: Reported picture height
            fps: Reported frame rate
            name: Display name
            picture_size: Actual (width, height) of produced pictures when
                they differ from the reported dimensions
            metadata_error: load_metadata() raises MetadataLoadError
            metadata_delay: Seconds load_metadata() takes
            stall_seeks: Seek indices that never resolve
            fail_seeks: Seek indices that raise DecodeError
            blank_seeks: Seek indices that resolve without a picture
            data_delay_polls: Number of has_current_data() checks that
                report False after every seek
            seek_delay: Seconds every seek takes before resolving
        """
        self.duration = duration
        self.width = width
        self.height = height
        self.fps = fps
        self.name = name
        self.picture_size = picture_size or (width, height)
        self.metadata_error = metadata_error
        self.metadata_delay = metadata_delay
        self.stall_seeks = set(stall_seeks)
        self.fail_seeks = set(fail_seeks)
        self.blank_seeks = set(blank_seeks)
        self.data_delay_polls = data_delay_polls
        self.seek_delay = seek_delay

        self.seek_log: List[float] = []
        self.poll_count: int = 0
        self.closed: bool = False
        self.close_calls: int = 0

        self._picture: Optional[np.ndarray] = None
        self._pending_polls: int = 0

    async def load_metadata(self) -> VideoMetadata:
        if self.metadata_delay > 0:
            await asyncio.sleep(self.metadata_delay)
        if self.metadata_error:
            raise MetadataLoadError(f"Unsupported or corrupt video: {self.name}")
        return VideoMetadata(
            duration=self.duration,
            width=self.width,
            height=self.height,
            fps=self.fps,
        )

    async def seek(self, timestamp: float) -> None:
        index = len(self.seek_log)
        self.seek_log.append(timestamp)
        self._picture = None

        if self.seek_delay > 0:
            await asyncio.sleep(self.seek_delay)
        if index in self.stall_seeks:
            # Ready event never fires
            await asyncio.Event().wait()
        if index in self.fail_seeks:
            raise DecodeError(f"Decoder error seeking to {timestamp:.3f}s")
        if index in self.blank_seeks:
            return

        self._picture = self.render(timestamp)
        self._pending_polls = self.data_delay_polls

    def has_current_data(self) -> bool:
        self.poll_count += 1
        if self._picture is None:
            return False
        if self._pending_polls > 0:
            self._pending_polls -= 1
            return False
        return True

    def read_picture(self) -> Optional[np.ndarray]:
        return self._picture

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True
        self._picture = None

    def render(self, timestamp: float) -> np.ndarray:
        """Synthetic BGR picture for ``timestamp``."""
        width, height = self.picture_size
        shade = int(timestamp * 37) % 256
        picture = np.empty((height, width, 3), dtype=np.uint8)
        picture[:] = (shade, 255 - shade, 128)
        # Horizontal gradient so encoded stills are not flat
        picture[:, :, 2] = np.linspace(0, 255, width, dtype=np.uint8)[np.newaxis, :]
        return picture
