"""
Selection & Lifecycle Manager
=============================

Mutates the ordered frame collection of a finished sampling run and owns
the release-on-removal contract for display handles.

Operations:
    - toggle(id): flip one frame's selection (unknown id = no-op)
    - set_all(selected): apply one selection state to every frame
    - toggle_all(): select all if any frame is unselected, else deselect all
    - remove(id): drop one frame, release its handle, return a successor
    - discard_run(): release every remaining handle and clear the run

Handle contract:
    A handle is released if and only if its frame leaves the run, exactly
    once, through either remove() or discard_run(), never both.

Design Rules:
    - Frames are never reordered, only flagged or removed
    - Only finished runs may be mutated
"""

import logging
from typing import List, Optional

from portfolio_curator.lifecycle.handles import DisplayHandleRegistry
from portfolio_curator.models.frame import Frame
from portfolio_curator.models.run import RunStatus, SamplingRun


logger = logging.getLogger(__name__)


class FrameNotFoundError(KeyError):
    """Raised when removing a frame id that is not in the run."""
    pass


class RunNotMutableError(RuntimeError):
    """Raised when mutating a run the engine is still producing."""
    pass


class SelectionManager:
    """
    Selection and lifecycle operations for one sampling run.

    Attributes:
        run: The run whose frames are managed
        registry: Registry holding the frames' display handles

    Example:
        manager = SelectionManager(run, registry)
        manager.toggle("frame-1.433")
        successor = manager.remove("frame-2.100")
        if manager.exhausted:
            manager.discard_run()
    """

    def __init__(self, run: SamplingRun, registry: DisplayHandleRegistry) -> None:
        self.run = run
        self.registry = registry

    @property
    def frames(self) -> List[Frame]:
        return self.run.frames

    @property
    def exhausted(self) -> bool:
        """No frames remain after deletions."""
        return self.run.exhausted

    def get(self, frame_id: str) -> Optional[Frame]:
        index = self.run.index_of(frame_id)
        return None if index is None else self.run.frames[index]

    def selected_frames(self) -> List[Frame]:
        return [f for f in self.run.frames if f.selected]

    def toggle(self, frame_id: str) -> Optional[Frame]:
        """
        Flip ``selected`` on the matching frame.

        Returns:
            The toggled frame, or None for an unknown id
        """
        self._ensure_mutable()
        frame = self.get(frame_id)
        if frame is None:
            logger.debug(f"Toggle ignored for unknown frame {frame_id}")
            return None
        frame.selected = not frame.selected
        return frame

    def set_all(self, selected: bool) -> int:
        """
        Set every frame's ``selected`` flag.

        Returns:
            Number of frames whose state changed
        """
        self._ensure_mutable()
        changed = 0
        for frame in self.run.frames:
            if frame.selected != selected:
                frame.selected = selected
                changed += 1
        return changed

    def toggle_all(self) -> bool:
        """
        Select all frames if any is unselected, otherwise deselect all.

        Returns:
            The selection state that was applied
        """
        target = any(not f.selected for f in self.run.frames)
        self.set_all(target)
        return target

    def remove(self, frame_id: str) -> Optional[Frame]:
        """
        Remove one frame and release its display handle.

        Args:
            frame_id: Id of the frame to remove

        Returns:
            The next frame in order if one exists, else the previous
            frame, else None (the run is then exhausted)

        Raises:
            FrameNotFoundError: If no frame has this id
        """
        self._ensure_mutable()
        index = self.run.index_of(frame_id)
        if index is None:
            raise FrameNotFoundError(frame_id)

        frame = self.run.frames.pop(index)
        self.run.removed_count += 1
        self.registry.release(frame.display_handle)

        remaining = self.run.frames
        if index < len(remaining):
            successor = remaining[index]
        elif index > 0:
            successor = remaining[index - 1]
        else:
            successor = None

        if not remaining:
            logger.info(f"Run {self.run.run_id} exhausted: no frames remain")
        return successor

    def discard_run(self) -> int:
        """
        Release every live handle of the run and clear its frames.

        Safe on an empty or exhausted run.

        Returns:
            Number of handles released
        """
        self._ensure_mutable()
        frames = self.run.frames
        self.run.frames = []
        for frame in frames:
            self.registry.release(frame.display_handle)
        if frames:
            logger.info(f"Run {self.run.run_id} discarded, released {len(frames)} handles")
        return len(frames)

    def _ensure_mutable(self) -> None:
        if self.run.status in (RunStatus.PENDING, RunStatus.RUNNING):
            raise RunNotMutableError(
                f"Run {self.run.run_id} is {self.run.status.value}; wait for it to finish"
            )
