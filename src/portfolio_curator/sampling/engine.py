"""
Sampling Engine
===============

Drives a decode source through a sequence of target timestamps and turns
each reached picture into a Frame.

Run state machine:
    Loading → (LoadFailed | Ready) → Sampling → Finalizing → Done

Per sampling step:
    1. Seek the source to the target timestamp
    2. Race ready / error / per-step timeout
    3. Poll with backoff until picture data is available
    4. Settle for a few paint-cycle yields
    5. Draw into the fixed-size raster target
    6. Encode as JPEG (empty payload = skip)
    7. Build a Frame with a fresh display handle
    8. Advance and report progress

    Steps 1-6 share one per-step deadline. Draw and encode run on a
    single worker thread so the event loop never blocks on cv2.

Termination:
    The loop exits when the target time reaches the duration, when the
    step ceiling is hit, or when the frame ceiling is hit, whichever comes
    first. Worst-case run time is bounded by steps × step timeout even if
    the decoder never answers.

Failure semantics:
    - Metadata load failure: MetadataLoadError, run FAILED, no frames
    - Raster target failure: RasterTargetError, run FAILED, no frames
    - Anything else inside a step: logged, step skipped, loop continues

Design Rules:
    - The engine holds no state between runs; all run state lives in the
      SamplingRun passed to sample()
    - Frames are committed to the run in one assignment at finalization
    - Progress never decreases and reaches 100 only after finalization
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from portfolio_curator.decode.source import DecodeError, DecodeSource, MetadataLoadError, VideoMetadata
from portfolio_curator.lifecycle.handles import DisplayHandleRegistry
from portfolio_curator.models.frame import Frame, frame_id_for
from portfolio_curator.models.run import RunStatus, SamplingRun
from portfolio_curator.sampling.planner import IntervalPlan, effective_duration, plan
from portfolio_curator.sampling.raster import RasterEncodeError, RasterTarget, RasterTargetError


logger = logging.getLogger(__name__)


ProgressCallback = Callable[[int], None]


class SamplingMetrics:
    """Metrics for one sampling run."""

    __slots__ = (
        "steps_taken",
        "frames_produced",
        "timeouts",
        "decode_errors",
        "encode_failures",
        "step_errors",
        "data_polls",
    )

    def __init__(self) -> None:
        self.steps_taken: int = 0
        self.frames_produced: int = 0
        self.timeouts: int = 0
        self.decode_errors: int = 0
        self.encode_failures: int = 0
        self.step_errors: int = 0
        self.data_polls: int = 0

    @property
    def skipped(self) -> int:
        return self.steps_taken - self.frames_produced

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "steps_taken": self.steps_taken,
            "frames_produced": self.frames_produced,
            "timeouts": self.timeouts,
            "decode_errors": self.decode_errors,
            "encode_failures": self.encode_failures,
            "step_errors": self.step_errors,
            "data_polls": self.data_polls,
            "skipped": self.skipped,
        }


class SamplingEngine:
    """
    Frame sampling engine.

    Attributes:
        registry: Registry that mints display handles for new frames
        metrics: Metrics of the most recent run

    Example:
        registry = DisplayHandleRegistry()
        engine = SamplingEngine(registry, step_timeout=3.0)

        run = SamplingRun()
        await engine.sample(OpenCVDecodeSource("clip.mp4"), run)
        print(len(run.frames), run.progress)
    """

    def __init__(
        self,
        registry: DisplayHandleRegistry,
        desired_rate: Optional[float] = None,
        target_frame_count: int = 30,
        max_frames: int = 600,
        max_steps: int = 600,
        min_spacing: float = 0.1,
        lead_in: float = 0.1,
        fallback_duration: float = 1.0,
        default_selected: bool = True,
        metadata_timeout: float = 10.0,
        step_timeout: float = 3.0,
        poll_interval: float = 0.05,
        settle_frames: int = 2,
        settle_delay: float = 1.0 / 60.0,
        jpeg_quality: int = 92,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Initialize sampling engine.

        Args:
            registry: Display handle registry shared with the session
            desired_rate: Requested frames per second (None = target count)
            target_frame_count: Frames to aim for without a requested rate
            max_frames: Hard ceiling on frames per run
            max_steps: Hard ceiling on sampling steps per run; raised to
                max_frames if lower
            min_spacing: Planner floor on the interval
            lead_in: Planner offset of the first sample
            fallback_duration: Duration used when the source reports none
            default_selected: Selection state of new frames
            metadata_timeout: Seconds allowed for metadata
            step_timeout: Seconds allowed per sampling step
            poll_interval: Backoff between picture data checks
            settle_frames: Paint-cycle yields before reading a picture
            settle_delay: Length of one paint-cycle yield
            jpeg_quality: JPEG quality of extracted stills
            on_progress: Called with each new progress value
        """
        if max_frames < 1:
            raise ValueError("max_frames must be >= 1")
        if step_timeout <= 0 or metadata_timeout <= 0:
            raise ValueError("timeouts must be positive")

        self.registry = registry
        self.desired_rate = desired_rate
        self.target_frame_count = target_frame_count
        self.max_frames = max_frames
        self.max_steps = max(max_steps, max_frames)
        self.min_spacing = min_spacing
        self.lead_in = lead_in
        self.fallback_duration = fallback_duration
        self.default_selected = default_selected
        self.metadata_timeout = metadata_timeout
        self.step_timeout = step_timeout
        self.poll_interval = poll_interval
        self.settle_frames = settle_frames
        self.settle_delay = settle_delay
        self.jpeg_quality = jpeg_quality
        self.on_progress = on_progress

        self.metrics = SamplingMetrics()

    @classmethod
    def from_settings(
        cls,
        settings,
        registry: DisplayHandleRegistry,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "SamplingEngine":
        """Build an engine from a Settings instance."""
        return cls(
            registry=registry,
            desired_rate=settings.sampling.desired_rate,
            target_frame_count=settings.sampling.target_frame_count,
            max_frames=settings.sampling.max_frames,
            max_steps=settings.sampling.max_steps,
            min_spacing=settings.sampling.min_spacing_seconds,
            lead_in=settings.sampling.lead_in_seconds,
            fallback_duration=settings.sampling.fallback_duration_seconds,
            default_selected=settings.sampling.default_selected,
            metadata_timeout=settings.timing.metadata_timeout_seconds,
            step_timeout=settings.timing.step_timeout_seconds,
            poll_interval=settings.timing.poll_interval_seconds,
            settle_frames=settings.timing.settle_frames,
            settle_delay=settings.timing.settle_delay_seconds,
            jpeg_quality=settings.encoding.jpeg_quality,
            on_progress=on_progress,
        )

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def sample(self, source: DecodeSource, run: SamplingRun) -> SamplingRun:
        """
        Sample ``source`` into ``run``.

        The run is marked RUNNING, filled, finalized and returned. The
        source is closed in every outcome.

        Args:
            source: Decode source for the uploaded video
            run: Fresh SamplingRun to populate

        Returns:
            The same run, COMPLETE with frames committed

        Raises:
            MetadataLoadError: Metadata unavailable (run FAILED)
            RasterTargetError: Raster target creation failed (run FAILED)
        """
        self.metrics = SamplingMetrics()
        run.status = RunStatus.RUNNING
        run.source_name = run.source_name or getattr(source, "name", None)
        self._report(run, 0)

        frames: List[Frame] = []
        raster: Optional[RasterTarget] = None
        completed = False

        # Draw and encode run here, one at a time; the raster target is single-writer
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="raster")

        logger.info(f"Sampling run {run.run_id} started: {run.source_name}")

        try:
            metadata = await self._load_metadata(source)
            duration = effective_duration(metadata.duration, self.fallback_duration)
            if not metadata.has_reliable_duration:
                logger.warning(
                    f"Source reported unusable duration {metadata.duration!r}, "
                    f"assuming {duration:.1f}s"
                )

            interval_plan = plan(
                duration,
                desired_rate=self.desired_rate,
                target_count=self.target_frame_count,
                hard_ceiling=self.max_frames,
                min_spacing=self.min_spacing,
                lead_in=self.lead_in,
            )
            run.duration = duration
            run.interval = interval_plan.interval
            run.start_offset = interval_plan.start_offset

            raster = RasterTarget(metadata.width, metadata.height)

            logger.info(
                f"Run {run.run_id} planned: duration={duration:.2f}s, "
                f"interval={interval_plan.interval:.3f}s, "
                f"start={interval_plan.start_offset:.3f}s, "
                f"size={metadata.width}x{metadata.height}"
            )

            await self._sample_timeline(source, raster, executor, run, interval_plan, duration, frames)
            completed = True

        except (MetadataLoadError, RasterTargetError) as e:
            run.error = str(e)
            logger.error(f"Sampling run {run.run_id} failed: {e}")
            raise

        finally:
            self._finalize(source, raster, executor, run, frames, completed)

        return run

    async def _load_metadata(self, source: DecodeSource) -> VideoMetadata:
        try:
            return await asyncio.wait_for(
                source.load_metadata(),
                timeout=self.metadata_timeout,
            )
        except asyncio.TimeoutError:
            raise MetadataLoadError(
                f"Video metadata not available after {self.metadata_timeout:.1f}s"
            )
        except MetadataLoadError:
            raise
        except DecodeError as e:
            raise MetadataLoadError(f"Could not load video metadata: {e}")

    async def _sample_timeline(
        self,
        source: DecodeSource,
        raster: RasterTarget,
        executor: ThreadPoolExecutor,
        run: SamplingRun,
        interval_plan: IntervalPlan,
        duration: float,
        frames: List[Frame],
    ) -> None:
        """Walk target timestamps until time, step or frame ceiling is hit."""
        steps = 0
        current_time = interval_plan.start_offset

        while current_time < duration and steps < self.max_steps:
            if len(frames) >= self.max_frames:
                logger.info(f"Frame ceiling {self.max_frames} reached, stopping")
                break

            frame = await self._sample_step(source, raster, executor, current_time)
            if frame is not None:
                frames.append(frame)

            steps += 1
            current_time = interval_plan.target_at(steps)

            time_progress = min(current_time, duration) / duration * 100
            step_progress = steps / self.max_steps * 100
            self._report(run, max(time_progress, step_progress))

        if steps >= self.max_steps and current_time < duration:
            logger.warning(f"Step ceiling {self.max_steps} reached before end of video")

    async def _sample_step(
        self,
        source: DecodeSource,
        raster: RasterTarget,
        executor: ThreadPoolExecutor,
        timestamp: float,
    ) -> Optional[Frame]:
        """
        Capture one still at ``timestamp``.

        Returns:
            New Frame, or None if the step was skipped
        """
        self.metrics.steps_taken += 1

        try:
            payload = await asyncio.wait_for(
                self._capture(source, raster, executor, timestamp),
                timeout=self.step_timeout,
            )
        except asyncio.TimeoutError:
            self.metrics.timeouts += 1
            logger.warning(
                f"Step at {timestamp:.3f}s timed out after {self.step_timeout:.1f}s, skipping"
            )
            return None
        except DecodeError as e:
            self.metrics.decode_errors += 1
            logger.warning(f"Decode error at {timestamp:.3f}s, skipping: {e}")
            return None
        except RasterEncodeError as e:
            self.metrics.encode_failures += 1
            logger.warning(f"Could not rasterize {timestamp:.3f}s, skipping: {e}")
            return None
        except Exception as e:
            self.metrics.step_errors += 1
            logger.error(f"Sampling step at {timestamp:.3f}s failed: {e}")
            return None

        if not payload:
            self.metrics.encode_failures += 1
            return None

        handle = self.registry.create(payload)
        self.metrics.frames_produced += 1

        return Frame(
            id=frame_id_for(timestamp),
            raster=payload,
            display_handle=handle,
            selected=self.default_selected,
            timestamp=timestamp,
        )

    async def _await_picture(self, source: DecodeSource, timestamp: float) -> None:
        """Seek, wait for pixel data, then let the decoder settle."""
        await source.seek(timestamp)

        while not source.has_current_data():
            self.metrics.data_polls += 1
            await asyncio.sleep(self.poll_interval)

        for _ in range(self.settle_frames):
            await asyncio.sleep(self.settle_delay)

    async def _capture(
        self,
        source: DecodeSource,
        raster: RasterTarget,
        executor: ThreadPoolExecutor,
        timestamp: float,
    ) -> Optional[bytes]:
        """Wait for the picture at ``timestamp``, then draw and encode it off the loop."""
        await self._await_picture(source, timestamp)
        picture = source.read_picture()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, self._rasterize, raster, picture)

    def _rasterize(self, raster: RasterTarget, picture) -> Optional[bytes]:
        raster.draw(picture)
        return raster.encode(self.jpeg_quality)

    # -------------------------------------------------------------------------
    # Finalization
    # -------------------------------------------------------------------------

    def _finalize(
        self,
        source: DecodeSource,
        raster: Optional[RasterTarget],
        executor: ThreadPoolExecutor,
        run: SamplingRun,
        frames: List[Frame],
        completed: bool,
    ) -> None:
        try:
            source.close()
        except Exception as e:
            logger.warning(f"Error closing decode source: {e}")
        if raster is not None:
            # Queued behind any draw abandoned by a step timeout
            executor.submit(raster.release)
        executor.shutdown(wait=False)

        # Partial results of an interrupted run are kept
        run.frames = frames

        if completed:
            run.status = RunStatus.COMPLETE
            self._report(run, 100)
            logger.info(
                f"Sampling run {run.run_id} complete: {len(frames)} frames, "
                f"metrics={self.metrics.to_dict()}"
            )
        else:
            run.status = RunStatus.FAILED
            if run.error is None:
                run.error = "Sampling interrupted"
            logger.warning(
                f"Sampling run {run.run_id} ended early with {len(frames)} frames"
            )

    def _report(self, run: SamplingRun, value: float) -> None:
        before = run.progress
        after = run.advance_progress(value)
        if after != before and self.on_progress is not None:
            self.on_progress(after)
