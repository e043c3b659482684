"""
Display Handle Registry Tests
=============================
"""

import pytest

from portfolio_curator.lifecycle.handles import DisplayHandleRegistry, HandleError


class TestDisplayHandleRegistry:
    """Tests for handle creation, resolution and release."""

    def test_create_and_resolve(self, registry):
        payload = b"\xff\xd8jpeg"
        handle = registry.create(payload)

        assert handle.token.startswith("blob:")
        assert registry.is_live(handle)
        assert registry.resolve(handle) is payload
        assert registry.live_count == 1

    def test_handles_are_distinct(self, registry):
        first = registry.create(b"same")
        second = registry.create(b"same")

        assert first != second
        assert registry.live_count == 2

    def test_release(self, registry):
        handle = registry.create(b"x")
        registry.release(handle)

        assert not registry.is_live(handle)
        assert registry.live_count == 0
        assert registry.released_count == 1

    def test_double_release_raises(self, registry):
        handle = registry.create(b"x")
        registry.release(handle)

        with pytest.raises(HandleError):
            registry.release(handle)

    def test_resolve_after_release_raises(self, registry):
        handle = registry.create(b"x")
        registry.release(handle)

        with pytest.raises(HandleError):
            registry.resolve(handle)

    def test_metrics(self):
        registry = DisplayHandleRegistry(prefix="test:")
        handles = [registry.create(b"x") for _ in range(3)]
        registry.release(handles[0])

        assert handles[1].token.startswith("test:")
        assert registry.metrics() == {"live": 2, "created": 3, "released": 1}
