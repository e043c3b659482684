"""
Curator Session
===============

Owns the active sampling run for one user session.

This module ties the pieces together:
    - DisplayHandleRegistry shared by the engine and selection manager
    - SamplingEngine producing frames for each uploaded video
    - SelectionManager mutating the finished run
    - export_frames packaging the selected subset

Concurrency:
    - One sampling run in flight at a time (run lock)
    - Starting a run first discards the previous one, releasing its handles
    - reset() waits for an in-flight run to finish before discarding
    - One export in flight at a time; a second request is refused
    - Exports work on a snapshot, so later selection changes don't leak in
"""

import asyncio
import dataclasses
import logging
from typing import Optional

from portfolio_curator.config import Settings, settings as default_settings
from portfolio_curator.decode.source import DecodeSource
from portfolio_curator.export.packager import export_frames
from portfolio_curator.lifecycle.handles import DisplayHandleRegistry
from portfolio_curator.lifecycle.selection import SelectionManager
from portfolio_curator.models.run import SamplingRun
from portfolio_curator.sampling.engine import ProgressCallback, SamplingEngine


logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Base class for session state errors."""
    pass


class NoActiveRunError(SessionError):
    """Raised when an operation needs a run and none exists."""
    pass


class RunInProgressError(SessionError):
    """Raised when an operation needs a finished run."""
    pass


class ExportInProgressError(SessionError):
    """Raised when an export is requested while another is running."""
    pass


class CuratorSession:
    """
    Session-scoped owner of the current run.

    Attributes:
        config: Settings the engine and packager were built from
        registry: Display handle registry for all frames of the session
        engine: Sampling engine

    Example:
        session = CuratorSession()
        run = await session.start_run(OpenCVDecodeSource("clip.mp4"))
        session.selection.toggle(run.frames[0].id)
        archive = await session.export()
        await session.reset()
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        registry: Optional[DisplayHandleRegistry] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.config = config or default_settings
        self.registry = registry or DisplayHandleRegistry()
        self.engine = SamplingEngine.from_settings(self.config, self.registry, on_progress=on_progress)

        self._run: Optional[SamplingRun] = None
        self._selection: Optional[SelectionManager] = None
        self._run_lock = asyncio.Lock()
        self._export_lock = asyncio.Lock()

    @property
    def current_run(self) -> Optional[SamplingRun]:
        return self._run

    @property
    def busy(self) -> bool:
        """Whether a sampling run is in flight."""
        return self._run_lock.locked()

    @property
    def exporting(self) -> bool:
        return self._export_lock.locked()

    @property
    def selection(self) -> SelectionManager:
        """
        Selection manager of the finished current run.

        Raises:
            NoActiveRunError: No run exists
            RunInProgressError: The run is still sampling
        """
        self._require_finished_run()
        return self._selection

    async def start_run(
        self,
        source: DecodeSource,
        run: Optional[SamplingRun] = None,
    ) -> SamplingRun:
        """
        Discard the previous run, then sample ``source`` into a new one.

        Args:
            source: Decode source for the uploaded video
            run: Pre-created run object (lets callers report its id early)

        Returns:
            The finished run

        Raises:
            MetadataLoadError, RasterTargetError: Run-fatal errors
        """
        async with self._run_lock:
            self._discard_current()

            run = run or SamplingRun()
            self._run = run
            self._selection = SelectionManager(run, self.registry)

            return await self.engine.sample(source, run)

    async def reset(self) -> int:
        """
        Start over: wait for any in-flight run, then discard it.

        Returns:
            Number of display handles released
        """
        async with self._run_lock:
            return self._discard_current()

    async def export(self) -> bytes:
        """
        Package the selected frames of the current run.

        Raises:
            NoActiveRunError, RunInProgressError: No finished run
            ExportInProgressError: Another export is running
            NothingSelectedError: Nothing selected
            ArchiveBuildError: Serialization failed
        """
        run = self._require_finished_run()
        if self._export_lock.locked():
            raise ExportInProgressError("An export is already in progress")

        async with self._export_lock:
            snapshot = [dataclasses.replace(f) for f in run.frames]
            return await asyncio.to_thread(
                export_frames,
                snapshot,
                self.config.export.prefix,
                self.config.export.extension,
                self.config.export.min_index_width,
            )

    def image_for(self, frame_id: str) -> Optional[bytes]:
        """Resolve a frame's display handle to its JPEG payload."""
        frame = self.selection.get(frame_id)
        if frame is None:
            return None
        return self.registry.resolve(frame.display_handle)

    def _require_finished_run(self) -> SamplingRun:
        if self._run is None:
            raise NoActiveRunError("No video has been processed")
        if not self._run.finished:
            raise RunInProgressError(f"Run {self._run.run_id} is still sampling")
        return self._run

    def _discard_current(self) -> int:
        released = 0
        if self._selection is not None and self._run is not None and self._run.finished:
            released = self._selection.discard_run()
        if self._run is not None:
            logger.info(f"Session cleared run {self._run.run_id}")
        self._run = None
        self._selection = None
        return released
