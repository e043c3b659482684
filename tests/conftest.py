"""
Test Configuration
==================

Pytest fixtures and test configuration for Portfolio Curator.
"""

import pytest

from portfolio_curator.config import Settings


@pytest.fixture
def fast_settings():
    """Settings with timings small enough for unit tests."""
    return Settings.model_validate({
        "sampling": {
            "target_frame_count": 30,
            "max_frames": 600,
            "max_steps": 600,
        },
        "timing": {
            "metadata_timeout_seconds": 0.5,
            "step_timeout_seconds": 0.2,
            "poll_interval_seconds": 0.001,
            "settle_frames": 0,
            "settle_delay_seconds": 0.0,
        },
        "decoder": {
            "backend": "mock",
            "mock": {"duration": 2.0, "width": 64, "height": 48},
        },
    })


@pytest.fixture
def registry():
    """Provide an empty display handle registry."""
    from portfolio_curator.lifecycle.handles import DisplayHandleRegistry

    return DisplayHandleRegistry()


@pytest.fixture
def make_frame(registry):
    """Factory for frames whose handles live in ``registry``."""
    from portfolio_curator.models.frame import Frame, frame_id_for

    def _make(timestamp: float, selected: bool = True, payload: bytes = None) -> Frame:
        raster = payload if payload is not None else f"jpeg@{timestamp:.3f}".encode()
        return Frame(
            id=frame_id_for(timestamp),
            raster=raster,
            display_handle=registry.create(raster),
            selected=selected,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture
def completed_run(make_frame):
    """A COMPLETE run of five frames at 0.1, 0.4, ... 1.3 seconds."""
    from portfolio_curator.models.run import RunStatus, SamplingRun

    run = SamplingRun(source_name="clip.mp4")
    run.frames = [make_frame(0.1 + 0.3 * i) for i in range(5)]
    run.status = RunStatus.COMPLETE
    run.progress = 100
    return run
