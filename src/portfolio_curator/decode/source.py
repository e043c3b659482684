"""
Decode Source
=============

Abstract decode source consumed by the sampling engine.

The engine never touches a container or codec directly. It sees only
this protocol: metadata (possibly unreliable), "seek to timestamp" with
a ready notification, a check for whether picture data is available,
and "read current picture".

Design Rules:
    - seek() resolves when the source reports the seek complete, and
      raises DecodeError when the source reports an error
    - seek() may never resolve; callers bound it with a timeout
    - has_current_data() may lag behind seek(); callers poll it
    - close() must be idempotent
"""

import math
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np


class DecodeError(Exception):
    """Raised when the source fails to seek or decode."""
    pass


class MetadataLoadError(DecodeError):
    """Raised when source metadata cannot be loaded (fatal to a run)."""
    pass


@dataclass(frozen=True, slots=True)
class VideoMetadata:
    """
    Metadata reported by a decode source.

    Attributes:
        duration: Duration in seconds. May be None, NaN, zero or infinite
            when the container does not report it reliably.
        width: Native picture width in pixels
        height: Native picture height in pixels
        fps: Reported frame rate (0.0 when unknown)
    """

    duration: Optional[float]
    width: int
    height: int
    fps: float = 0.0

    @property
    def has_reliable_duration(self) -> bool:
        return (
            self.duration is not None
            and math.isfinite(self.duration)
            and self.duration > 0
        )

    def to_dict(self) -> dict:
        """Export as dictionary for logging."""
        return {
            "duration": self.duration,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
        }


class DecodeSource(Protocol):
    """
    Protocol for decode backends.

    Implemented by:
        - OpenCVDecodeSource (production, cv2.VideoCapture)
        - MockDecodeSource (deterministic, for tests and demos)
    """

    name: str

    async def load_metadata(self) -> VideoMetadata:
        """Open the source and report its metadata."""
        ...

    async def seek(self, timestamp: float) -> None:
        """Seek to ``timestamp`` seconds; resolves once seeked."""
        ...

    def has_current_data(self) -> bool:
        """Whether picture data for the last seek is available."""
        ...

    def read_picture(self) -> Optional[np.ndarray]:
        """Return the current picture as a BGR array, or None."""
        ...

    def close(self) -> None:
        """Release decoder resources."""
        ...
