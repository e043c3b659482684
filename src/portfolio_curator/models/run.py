"""
Sampling Run Model
==================

Explicit value object for one end-to-end sampling session.

The engine receives a SamplingRun, fills it and hands it back. It keeps
no state of its own between runs. Teardown receives the same object by
reference.

Lifecycle:
    PENDING → RUNNING → (COMPLETE | FAILED)

Progress:
    Integer in [0, 100], never decreasing. 100 is only reported after
    the run has been finalized.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from portfolio_curator.models.frame import Frame


class RunStatus(str, Enum):
    """
    Terminal and intermediate states of a sampling run.

    Attributes:
        PENDING: Created, engine not started
        RUNNING: Metadata loading or sampling in progress
        COMPLETE: Finalized, frames committed
        FAILED: Stopped by a run-fatal error
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class SamplingRun:
    """
    Ordered frame collection plus bookkeeping for one uploaded video.

    Attributes:
        run_id: Random identifier for logging and API responses
        frames: Frames in strictly increasing timestamp order
        duration: Effective duration used for planning (seconds)
        interval: Planned spacing between target timestamps
        start_offset: First target timestamp
        progress: Monotonic progress value in [0, 100]
        status: Current RunStatus
        error: Message of the run-fatal error, if any
        source_name: Display name of the uploaded video
        removed_count: Number of frames deleted by the user
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    frames: List[Frame] = field(default_factory=list)
    duration: Optional[float] = None
    interval: Optional[float] = None
    start_offset: Optional[float] = None
    progress: int = 0
    status: RunStatus = RunStatus.PENDING
    error: Optional[str] = None
    source_name: Optional[str] = None
    removed_count: int = 0

    def advance_progress(self, value: float) -> int:
        """
        Raise progress to ``value`` without ever lowering it.

        Values are rounded and clamped to 99 while the run is not
        complete; 100 is reserved for finalization.

        Returns:
            The progress value after the update.
        """
        ceiling = 100 if self.status == RunStatus.COMPLETE else 99
        candidate = max(0, min(ceiling, int(round(value))))
        if candidate > self.progress:
            self.progress = candidate
        return self.progress

    def index_of(self, frame_id: str) -> Optional[int]:
        for i, frame in enumerate(self.frames):
            if frame.id == frame_id:
                return i
        return None

    @property
    def selected_count(self) -> int:
        return sum(1 for f in self.frames if f.selected)

    @property
    def finished(self) -> bool:
        """Whether the engine is done with this run."""
        return self.status in (RunStatus.COMPLETE, RunStatus.FAILED)

    @property
    def exhausted(self) -> bool:
        """A finished run whose frames have all been deleted.

        A failed run counts once the user has removed its partial frames;
        a run that failed before yielding any frame does not.
        """
        if not self.finished or self.frames:
            return False
        return self.status == RunStatus.COMPLETE or self.removed_count > 0

    def __repr__(self) -> str:
        return (
            f"SamplingRun(run_id={self.run_id!r}, status={self.status.value}, "
            f"frames={len(self.frames)}, progress={self.progress})"
        )
