"""
Data Models
===========

Frame store types and API schemas for Portfolio Curator.

Models:
    Frame store:
        - Frame: One extracted still with selection state
        - DisplayHandle: Revocable reference to a frame's payload
        - SamplingRun: Ordered frames plus progress and status
        - RunStatus: pending / running / complete / failed

    API:
        - FrameView, FrameListView: Gallery views
        - RunView: Run status snapshot
        - RemovalView: Delete result with successor
        - SelectRequest: Bulk selection body
"""

from portfolio_curator.models.frame import DisplayHandle, Frame, format_timestamp, frame_id_for
from portfolio_curator.models.run import RunStatus, SamplingRun
from portfolio_curator.models.api import (
    FrameListView,
    FrameView,
    RemovalView,
    RunView,
    SelectRequest,
)

__all__ = [
    # Frame store
    "DisplayHandle",
    "Frame",
    "RunStatus",
    "SamplingRun",
    "format_timestamp",
    "frame_id_for",
    # API
    "FrameView",
    "FrameListView",
    "RunView",
    "RemovalView",
    "SelectRequest",
]
