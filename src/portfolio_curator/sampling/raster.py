"""
Raster Target
=============

Fixed-size raster buffer that decoded pictures are drawn into before
being encoded as JPEG stills.

Design Rules:
    - This is the ONLY place in the codebase that encodes images
    - The buffer is allocated once per run at the source's native size
    - Pictures of a different size are scaled into the buffer
    - Encoding failure yields None rather than an exception

Raster target creation failure is fatal to a run; encode failures only
skip a single timestamp.
"""

import logging
from typing import Optional

import cv2
import numpy as np


logger = logging.getLogger(__name__)


# Largest edge accepted for a raster target (matches common canvas limits)
MAX_DIMENSION = 16384


class RasterTargetError(Exception):
    """Raised when the raster target cannot be created."""
    pass


class RasterEncodeError(Exception):
    """Raised when a picture cannot be drawn into the raster target."""
    pass


class RasterTarget:
    """
    Single-writer BGR buffer with JPEG encoding.

    Attributes:
        width: Buffer width in pixels
        height: Buffer height in pixels

    Example:
        target = RasterTarget(1920, 1080)
        target.draw(picture)
        payload = target.encode(quality=92)
        target.release()
    """

    def __init__(self, width: int, height: int) -> None:
        """
        Allocate the raster buffer.

        Args:
            width: Native picture width
            height: Native picture height

        Raises:
            RasterTargetError: If the dimensions are unusable or the
                buffer cannot be allocated
        """
        if width <= 0 or height <= 0:
            raise RasterTargetError(
                f"Could not initialize raster target for {width}x{height}"
            )
        if width > MAX_DIMENSION or height > MAX_DIMENSION:
            raise RasterTargetError(
                f"Raster target {width}x{height} exceeds {MAX_DIMENSION}px limit"
            )

        try:
            self._buffer: Optional[np.ndarray] = np.zeros((height, width, 3), dtype=np.uint8)
        except MemoryError as e:
            raise RasterTargetError(
                f"Could not allocate raster target {width}x{height}: {e}"
            )

        self.width = width
        self.height = height

    @property
    def released(self) -> bool:
        return self._buffer is None

    def draw(self, picture: Optional[np.ndarray]) -> None:
        """
        Draw a decoded picture into the buffer.

        Args:
            picture: BGR, BGRA or grayscale uint8 array

        Raises:
            RasterEncodeError: If the picture is missing or malformed
        """
        if self._buffer is None:
            raise RasterEncodeError("Raster target already released")
        if picture is None or not isinstance(picture, np.ndarray) or picture.size == 0:
            raise RasterEncodeError("No picture data to draw")
        if picture.dtype != np.uint8:
            raise RasterEncodeError(f"Invalid picture dtype: {picture.dtype}")

        if picture.ndim == 2:
            picture = cv2.cvtColor(picture, cv2.COLOR_GRAY2BGR)
        elif picture.ndim == 3 and picture.shape[2] == 4:
            picture = cv2.cvtColor(picture, cv2.COLOR_BGRA2BGR)
        elif picture.ndim != 3 or picture.shape[2] != 3:
            raise RasterEncodeError(f"Invalid picture shape: {picture.shape}")

        if picture.shape[:2] != (self.height, self.width):
            picture = cv2.resize(picture, (self.width, self.height), interpolation=cv2.INTER_AREA)

        np.copyto(self._buffer, picture)

    def encode(self, quality: int = 92) -> Optional[bytes]:
        """
        Encode the buffer as a JPEG still.

        Args:
            quality: JPEG quality (1-100)

        Returns:
            Encoded bytes, or None if the encoder produced nothing
        """
        if self._buffer is None:
            return None

        ok, encoded = cv2.imencode(".jpg", self._buffer, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
        if not ok or encoded is None or encoded.size == 0:
            logger.debug("JPEG encoder returned no payload")
            return None
        return encoded.tobytes()

    def release(self) -> None:
        self._buffer = None
