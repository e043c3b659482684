"""
API Response Schemas
====================

Pydantic models for the HTTP surface of the curator service.

These are read-only views over the in-memory Frame and SamplingRun
objects. Raster payloads are never embedded; clients fetch them through
the frame image endpoint instead.

Example:
    from portfolio_curator.models.api import FrameView

    view = FrameView.from_frame(frame)
    payload = view.model_dump(mode="json")
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from portfolio_curator.models.frame import Frame
from portfolio_curator.models.run import RunStatus, SamplingRun


class FrameView(BaseModel):
    """
    Public representation of a single extracted still.

    Attributes:
        id: Frame identifier
        timestamp: Source offset in seconds
        label: MM:SS label
        selected: Selection flag
        size_bytes: Size of the JPEG payload in bytes
        image_url: Relative URL serving the JPEG payload
    """

    id: str = Field(..., description="Frame identifier derived from timestamp")
    timestamp: float = Field(..., ge=0, description="Source offset in seconds")
    label: str = Field(..., description="MM:SS rendering of the timestamp")
    selected: bool = Field(..., description="Whether the frame will be exported")
    size_bytes: int = Field(..., ge=0, description="Size of the JPEG payload in bytes")
    image_url: str = Field(..., description="Relative URL of the JPEG payload")

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameView":
        return cls(
            id=frame.id,
            timestamp=round(frame.timestamp, 3),
            label=frame.label,
            selected=frame.selected,
            size_bytes=frame.size_bytes,
            image_url=f"/frames/{frame.id}/image",
        )

    class Config:
        """Pydantic model configuration."""

        json_schema_extra = {
            "example": {
                "id": "frame-0.433",
                "timestamp": 0.433,
                "label": "00:00",
                "selected": True,
                "size_bytes": 48213,
                "image_url": "/frames/frame-0.433/image",
            }
        }


class RunView(BaseModel):
    """Status snapshot of the current sampling run."""

    run_id: str = Field(..., description="Run identifier")
    status: RunStatus = Field(..., description="Run status")
    progress: int = Field(..., ge=0, le=100, description="Progress percentage")
    frame_count: int = Field(..., ge=0, description="Frames currently in the run")
    selected_count: int = Field(..., ge=0, description="Frames currently selected")
    exhausted: bool = Field(..., description="All frames have been deleted")
    duration: Optional[float] = Field(default=None, description="Effective duration")
    interval: Optional[float] = Field(default=None, description="Sampling interval")
    error: Optional[str] = Field(default=None, description="Run-fatal error message")

    @classmethod
    def from_run(cls, run: SamplingRun) -> "RunView":
        return cls(
            run_id=run.run_id,
            status=run.status,
            progress=run.progress,
            frame_count=len(run.frames),
            selected_count=run.selected_count,
            exhausted=run.exhausted,
            duration=run.duration,
            interval=run.interval,
            error=run.error,
        )


class FrameListView(BaseModel):
    """Ordered frame gallery."""

    frames: List[FrameView] = Field(default_factory=list)
    selected_count: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)


class RemovalView(BaseModel):
    """Result of deleting one frame."""

    removed: str = Field(..., description="Id of the removed frame")
    successor: Optional[FrameView] = Field(
        default=None,
        description="Frame to focus next (next in order, else previous)",
    )
    exhausted: bool = Field(..., description="No frames remain in the run")


class SelectRequest(BaseModel):
    """Body of the bulk select endpoint."""

    selected: bool = Field(..., description="Selection state applied to every frame")
