"""
Selection Manager Tests
=======================

Tests for toggling, bulk selection, removal and run discard.
"""

import pytest

from portfolio_curator.lifecycle.selection import (
    FrameNotFoundError,
    RunNotMutableError,
    SelectionManager,
)
from portfolio_curator.models.run import RunStatus


@pytest.fixture
def manager(completed_run, registry):
    return SelectionManager(completed_run, registry)


class TestToggle:
    """Tests for single-frame toggling."""

    def test_toggle_flips_only_target(self, manager):
        target = manager.frames[2]

        result = manager.toggle(target.id)

        assert result is target
        assert target.selected is False
        assert [f.selected for f in manager.frames] == [True, True, False, True, True]

    def test_toggle_twice_restores(self, manager):
        frame_id = manager.frames[0].id
        manager.toggle(frame_id)
        manager.toggle(frame_id)

        assert manager.frames[0].selected is True

    def test_toggle_unknown_is_noop(self, manager):
        before = [f.selected for f in manager.frames]

        assert manager.toggle("frame-99.000") is None
        assert [f.selected for f in manager.frames] == before

    def test_toggle_keeps_order(self, manager):
        ids = [f.id for f in manager.frames]
        manager.toggle(ids[1])

        assert [f.id for f in manager.frames] == ids


class TestSetAll:
    """Tests for bulk selection."""

    def test_deselect_all(self, manager):
        changed = manager.set_all(False)

        assert changed == 5
        assert manager.run.selected_count == 0

    def test_set_all_counts_changes_only(self, manager):
        manager.toggle(manager.frames[0].id)

        assert manager.set_all(True) == 1

    def test_toggle_all_selects_when_any_unselected(self, manager):
        manager.toggle(manager.frames[3].id)

        assert manager.toggle_all() is True
        assert manager.run.selected_count == 5

    def test_toggle_all_deselects_when_all_selected(self, manager):
        assert manager.toggle_all() is False
        assert manager.run.selected_count == 0

    def test_set_all_on_empty_run(self, manager):
        manager.discard_run()

        assert manager.set_all(True) == 0


class TestRemove:
    """Tests for frame removal and successor choice."""

    def test_remove_middle_returns_next(self, manager, registry):
        ids = [f.id for f in manager.frames]

        successor = manager.remove(ids[2])

        assert successor.id == ids[3]
        assert [f.id for f in manager.frames] == ids[:2] + ids[3:]
        assert registry.live_count == 4

    def test_remove_last_returns_previous(self, manager):
        ids = [f.id for f in manager.frames]

        successor = manager.remove(ids[-1])

        assert successor.id == ids[-2]

    def test_remove_only_frame_exhausts_run(self, manager, registry):
        for frame in list(manager.frames[1:]):
            manager.remove(frame.id)

        successor = manager.remove(manager.frames[0].id)

        assert successor is None
        assert manager.exhausted
        assert registry.live_count == 0

    def test_removing_partial_frames_of_failed_run_exhausts_it(self, manager, registry):
        manager.run.status = RunStatus.FAILED
        manager.run.error = "Decoder went away"

        for frame in list(manager.frames):
            assert not manager.exhausted
            manager.remove(frame.id)

        assert manager.exhausted
        assert registry.live_count == 0

    def test_remove_releases_handle(self, manager, registry):
        frame = manager.frames[0]
        manager.remove(frame.id)

        assert not registry.is_live(frame.display_handle)

    def test_remove_unknown_raises(self, manager, registry):
        with pytest.raises(FrameNotFoundError):
            manager.remove("frame-99.000")
        assert registry.live_count == 5

    def test_remove_twice_raises(self, manager):
        frame_id = manager.frames[0].id
        manager.remove(frame_id)

        with pytest.raises(FrameNotFoundError):
            manager.remove(frame_id)


class TestDiscardRun:
    """Tests for releasing the whole run."""

    def test_discard_releases_all(self, manager, registry):
        released = manager.discard_run()

        assert released == 5
        assert manager.frames == []
        assert registry.live_count == 0
        assert registry.released_count == 5

    def test_discard_after_removals_releases_rest_once(self, manager, registry):
        manager.remove(manager.frames[0].id)
        manager.remove(manager.frames[0].id)

        assert manager.discard_run() == 3
        assert registry.released_count == 5

    def test_discard_is_idempotent(self, manager, registry):
        manager.discard_run()

        assert manager.discard_run() == 0
        assert registry.released_count == 5


class TestMutability:
    """Runs still being sampled cannot be mutated."""

    @pytest.mark.parametrize("status", [RunStatus.PENDING, RunStatus.RUNNING])
    def test_in_flight_run_rejects_mutation(self, manager, status):
        manager.run.status = status

        with pytest.raises(RunNotMutableError):
            manager.toggle(manager.frames[0].id)
        with pytest.raises(RunNotMutableError):
            manager.remove(manager.frames[0].id)
        with pytest.raises(RunNotMutableError):
            manager.set_all(False)

    def test_failed_run_is_mutable(self, manager):
        manager.run.status = RunStatus.FAILED

        assert manager.toggle(manager.frames[0].id) is not None
