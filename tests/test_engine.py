"""
Sampling Engine Tests
=====================

Tests for the seek/ready/timeout loop, driven by the mock decode source.
"""

import asyncio
import threading

import pytest

from portfolio_curator.decode.mock_source import MockDecodeSource
from portfolio_curator.decode.source import MetadataLoadError
from portfolio_curator.models.run import RunStatus, SamplingRun
from portfolio_curator.sampling.engine import SamplingEngine
from portfolio_curator.sampling.raster import RasterTarget, RasterTargetError


def _engine(registry, **kwargs) -> SamplingEngine:
    options = dict(
        metadata_timeout=0.5,
        step_timeout=0.2,
        poll_interval=0.001,
        settle_frames=0,
        settle_delay=0.0,
    )
    options.update(kwargs)
    return SamplingEngine(registry, **options)


def _sample(engine: SamplingEngine, source: MockDecodeSource) -> SamplingRun:
    run = SamplingRun()
    asyncio.run(engine.sample(source, run))
    return run


class TestSamplingHappyPath:
    """Tests for well-behaved sources."""

    def test_ten_second_video_yields_thirty_frames(self, registry):
        source = MockDecodeSource(duration=10.0, width=64, height=48)
        run = _sample(_engine(registry), source)

        assert run.status == RunStatus.COMPLETE
        assert len(run.frames) == 30
        assert run.frames[0].timestamp == pytest.approx(0.1)
        assert run.frames[0].id == "frame-0.100"
        assert run.interval == pytest.approx(10.0 / 30)
        assert run.progress == 100

    def test_frames_ordered_and_unique(self, registry):
        source = MockDecodeSource(duration=10.0, width=64, height=48)
        run = _sample(_engine(registry), source)

        timestamps = [f.timestamp for f in run.frames]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)
        assert len({f.id for f in run.frames}) == len(run.frames)
        assert all(0 <= t < 10.0 for t in timestamps)

    def test_every_frame_has_live_handle(self, registry):
        source = MockDecodeSource(duration=2.0, width=64, height=48)
        run = _sample(_engine(registry), source)

        assert registry.live_count == len(run.frames)
        for frame in run.frames:
            assert registry.resolve(frame.display_handle) == frame.raster
            assert frame.raster.startswith(b"\xff\xd8")

    def test_default_selection_state(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32)
        run = _sample(_engine(registry, default_selected=False), source)

        assert run.frames
        assert run.selected_count == 0

    def test_source_closed_after_run(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32)
        _sample(_engine(registry), source)

        assert source.closed

    def test_mismatched_picture_size_is_scaled(self, registry):
        source = MockDecodeSource(
            duration=1.0, width=64, height=48, picture_size=(128, 72),
        )
        run = _sample(_engine(registry), source)

        assert len(run.frames) == len(source.seek_log)

    def test_settle_cycles(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32)
        run = _sample(_engine(registry, settle_frames=2, settle_delay=0.001), source)

        assert len(run.frames) == 9


class TestUnreliableDuration:
    """Tests for the 1 second fallback duration."""

    @pytest.mark.parametrize("duration", [None, float("inf"), float("nan"), 0.0])
    def test_falls_back_to_one_second(self, registry, duration):
        source = MockDecodeSource(duration=duration, width=32, height=32)
        run = _sample(_engine(registry), source)

        assert run.status == RunStatus.COMPLETE
        assert run.duration == 1.0
        assert run.interval == pytest.approx(0.1)
        assert len(run.frames) == 9
        assert all(f.timestamp < 1.0 for f in run.frames)


class TestStepFaults:
    """Faults inside one step skip that timestamp only."""

    def test_stalled_seek_is_skipped(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32, stall_seeks=[2])
        engine = _engine(registry, step_timeout=0.05)
        run = _sample(engine, source)

        assert run.status == RunStatus.COMPLETE
        assert len(source.seek_log) == 9
        assert len(run.frames) == 8
        assert engine.metrics.timeouts == 1
        assert source.seek_log[2] not in [f.timestamp for f in run.frames]
        assert engine.metrics.to_dict()["skipped"] == 1

    def test_decoder_error_is_skipped(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32, fail_seeks=[0, 4])
        engine = _engine(registry)
        run = _sample(engine, source)

        assert len(run.frames) == 7
        assert engine.metrics.decode_errors == 2

    def test_seek_without_picture_is_skipped(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32, blank_seeks=[1])
        engine = _engine(registry, step_timeout=0.05)
        run = _sample(engine, source)

        assert len(run.frames) == 8
        assert engine.metrics.timeouts == 1

    def test_waits_for_picture_data(self, registry):
        source = MockDecodeSource(duration=1.0, width=32, height=32, data_delay_polls=3)
        engine = _engine(registry)
        run = _sample(engine, source)

        assert len(run.frames) == 9
        assert engine.metrics.data_polls >= 3 * 9

    def test_slow_encode_is_timed_and_off_loop(self, registry, monkeypatch):
        """A hung encoder costs one step; encoding never runs on the loop thread."""
        release = threading.Event()
        threads = []
        original_encode = RasterTarget.encode

        def slow_encode(self, quality=92):
            threads.append(threading.current_thread().name)
            if len(threads) == 1:
                release.wait(2.0)
            return original_encode(self, quality)

        monkeypatch.setattr(RasterTarget, "encode", slow_encode)
        source = MockDecodeSource(duration=1.0, width=32, height=32)
        engine = _engine(registry, step_timeout=0.1, on_progress=lambda value: release.set())
        run = _sample(engine, source)

        assert run.status == RunStatus.COMPLETE
        assert len(run.frames) == 8
        assert engine.metrics.timeouts == 1
        assert len(threads) == 9
        assert all(name.startswith("raster") for name in threads)

    def test_all_seeks_stall(self, registry):
        """A decoder that never answers still terminates, with no frames."""
        source = MockDecodeSource(
            duration=1.0, width=32, height=32, stall_seeks=range(100),
        )
        engine = _engine(registry, step_timeout=0.02)
        run = _sample(engine, source)

        assert run.status == RunStatus.COMPLETE
        assert run.frames == []
        assert run.exhausted
        assert engine.metrics.timeouts == 9
        assert registry.live_count == 0


class TestRunFatalErrors:
    """Errors that fail the whole run."""

    def test_metadata_error(self, registry):
        source = MockDecodeSource(metadata_error=True)
        run = SamplingRun()

        with pytest.raises(MetadataLoadError):
            asyncio.run(_engine(registry).sample(source, run))

        assert run.status == RunStatus.FAILED
        assert run.frames == []
        assert run.error
        assert source.closed
        assert source.seek_log == []

    def test_metadata_timeout(self, registry):
        source = MockDecodeSource(metadata_delay=1.0)
        run = SamplingRun()

        with pytest.raises(MetadataLoadError):
            asyncio.run(_engine(registry, metadata_timeout=0.05).sample(source, run))

        assert run.status == RunStatus.FAILED
        assert source.closed

    def test_raster_target_failure(self, registry):
        source = MockDecodeSource(duration=2.0, width=0, height=0)
        run = SamplingRun()

        with pytest.raises(RasterTargetError):
            asyncio.run(_engine(registry).sample(source, run))

        assert run.status == RunStatus.FAILED
        assert run.frames == []
        assert registry.live_count == 0
        assert source.closed

    def test_cancelled_run_is_failed(self, registry):
        source = MockDecodeSource(duration=10.0, width=32, height=32, seek_delay=0.02)
        run = SamplingRun()
        engine = _engine(registry)

        async def scenario():
            task = asyncio.create_task(engine.sample(source, run))
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert run.status == RunStatus.FAILED
        assert run.error == "Sampling interrupted"
        assert run.progress < 100
        assert source.closed


class TestCeilings:
    """Tests for the frame and step ceilings."""

    def test_frame_ceiling(self, registry):
        source = MockDecodeSource(duration=10.0, width=32, height=32)
        run = _sample(_engine(registry, max_frames=5, max_steps=5), source)

        assert len(run.frames) == 5
        assert run.status == RunStatus.COMPLETE

    def test_step_ceiling_counts_skipped_steps(self, registry):
        source = MockDecodeSource(duration=10.0, width=32, height=32, fail_seeks=[0])
        run = _sample(_engine(registry, max_frames=3, max_steps=3), source)

        assert len(source.seek_log) == 3
        assert len(run.frames) == 2

    def test_max_steps_raised_to_max_frames(self, registry):
        engine = _engine(registry, max_frames=50, max_steps=10)

        assert engine.max_steps == 50


class TestProgress:
    """Tests for progress reporting."""

    def test_progress_monotonic_and_ends_at_100(self, registry):
        values = []
        source = MockDecodeSource(duration=2.0, width=32, height=32)
        _sample(_engine(registry, on_progress=values.append), source)

        assert values == sorted(values)
        assert len(values) == len(set(values))
        assert values[-1] == 100
        assert all(v <= 99 for v in values[:-1])

    def test_failed_run_never_reports_100(self, registry):
        values = []
        source = MockDecodeSource(metadata_error=True)

        with pytest.raises(MetadataLoadError):
            asyncio.run(_engine(registry, on_progress=values.append).sample(source, SamplingRun()))

        assert 100 not in values
