"""
Frame Data Model
=================

Entity model for one extracted still.

A Frame is created by the sampling engine and afterwards mutated only by
the selection manager. The raster payload is never modified once the
frame has been appended to a run.

Design Rules:
    - id is derived from the source timestamp (unique within a run)
    - Each live Frame carries exactly one live DisplayHandle
    - The raster payload is the encoded JPEG, never re-encoded
"""

from dataclasses import dataclass


def frame_id_for(timestamp: float) -> str:
    """Derive the frame id from its source timestamp."""
    return f"frame-{timestamp:.3f}"


def format_timestamp(timestamp: float) -> str:
    """Render a video offset as MM:SS for gallery labels."""
    total = max(0, int(timestamp))
    minutes, seconds = divmod(total, 60)
    return f"{minutes % 60:02d}:{seconds:02d}"


@dataclass(frozen=True, slots=True)
class DisplayHandle:
    """
    Revocable, process-local reference to a frame's raster payload.

    Handles are minted and released by DisplayHandleRegistry. The token
    is opaque to everything except the registry.

    Attributes:
        token: Registry key, e.g. "blob:3f2a..."
    """

    token: str

    def __str__(self) -> str:
        return self.token


@dataclass(slots=True)
class Frame:
    """
    One extracted still plus its metadata and selection state.

    Attributes:
        id: Identifier derived from the timestamp ("frame-1.433")
        raster: Encoded JPEG payload owned by this frame
        display_handle: Live handle used to render the payload
        selected: Whether the frame is part of the export selection
        timestamp: Video offset in seconds the frame was sampled from
    """

    id: str
    raster: bytes
    display_handle: DisplayHandle
    selected: bool
    timestamp: float

    @property
    def label(self) -> str:
        """MM:SS label of the source timestamp."""
        return format_timestamp(self.timestamp)

    @property
    def size_bytes(self) -> int:
        return len(self.raster)

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the raster."""
        return (
            f"Frame(id={self.id!r}, "
            f"timestamp={self.timestamp:.3f}, "
            f"selected={self.selected}, "
            f"bytes={len(self.raster)})"
        )
