"""
Model Tests
===========

Tests for frame store types and API views.
"""

import pytest

from portfolio_curator.models import (
    FrameView,
    RunStatus,
    RunView,
    SamplingRun,
    format_timestamp,
    frame_id_for,
)


class TestFrame:
    """Tests for Frame helpers."""

    @pytest.mark.parametrize("timestamp,label", [
        (0.1, "00:00"),
        (9.9, "00:09"),
        (61.5, "01:01"),
        (3599.0, "59:59"),
    ])
    def test_format_timestamp(self, timestamp, label):
        assert format_timestamp(timestamp) == label

    def test_frame_id_precision(self):
        assert frame_id_for(1.4333) == "frame-1.433"
        assert frame_id_for(0.1) != frame_id_for(0.11)

    def test_repr_omits_payload(self, make_frame):
        frame = make_frame(0.5, payload=b"x" * 1000)

        assert "bytes=1000" in repr(frame)
        assert "xxx" not in repr(frame)


class TestSamplingRun:
    """Tests for run bookkeeping."""

    def test_progress_never_decreases(self):
        run = SamplingRun()
        run.advance_progress(40)
        run.advance_progress(20)

        assert run.progress == 40

    def test_progress_capped_until_complete(self):
        run = SamplingRun()
        run.advance_progress(100)

        assert run.progress == 99

        run.status = RunStatus.COMPLETE
        run.advance_progress(100)
        assert run.progress == 100

    def test_exhausted_requires_completion(self):
        run = SamplingRun()

        assert not run.exhausted
        run.status = RunStatus.COMPLETE
        assert run.exhausted

    def test_failed_run_exhausted_only_after_removals(self):
        run = SamplingRun(status=RunStatus.FAILED, error="No metadata")

        assert not run.exhausted
        run.removed_count = 1
        assert run.exhausted

    def test_index_of(self, completed_run):
        second = completed_run.frames[1]

        assert completed_run.index_of(second.id) == 1
        assert completed_run.index_of("missing") is None


class TestViews:
    """Tests for API views."""

    def test_frame_view(self, make_frame):
        frame = make_frame(61.25, selected=False)
        view = FrameView.from_frame(frame)

        assert view.id == "frame-61.250"
        assert view.size_bytes == frame.size_bytes
        assert view.size_bytes > 0
        assert view.label == "01:01"
        assert view.selected is False
        assert view.image_url == "/frames/frame-61.250/image"

    def test_run_view(self, completed_run):
        completed_run.frames[0].selected = False
        view = RunView.from_run(completed_run)
        payload = view.model_dump(mode="json")

        assert payload["status"] == "complete"
        assert payload["frame_count"] == 5
        assert payload["selected_count"] == 4
        assert payload["exhausted"] is False
