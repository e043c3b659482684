"""
Display Handle Registry
=======================

Mints and revokes display handles for frame raster payloads.

A display handle lets the presentation layer render a frame's JPEG
without copying its bytes. The registry maps opaque tokens to the
payload owned by the frame.

Design Rules:
    - Exactly one handle per live frame
    - A handle is released exactly once
    - Releasing twice or resolving after release raises HandleError
    - Payload bytes are referenced, never duplicated
"""

import logging
import uuid
from typing import Dict

from portfolio_curator.models.frame import DisplayHandle


logger = logging.getLogger(__name__)


class HandleError(Exception):
    """Raised on double release or use of a released handle."""
    pass


class DisplayHandleRegistry:
    """
    Process-local table of live display handles.

    Attributes:
        live_count: Number of handles not yet released
        created_count: Handles ever created
        released_count: Handles ever released

    Example:
        registry = DisplayHandleRegistry()
        handle = registry.create(jpeg_bytes)
        payload = registry.resolve(handle)
        registry.release(handle)
    """

    def __init__(self, prefix: str = "blob:") -> None:
        self._prefix = prefix
        self._payloads: Dict[str, bytes] = {}
        self._created_count: int = 0
        self._released_count: int = 0

    @property
    def live_count(self) -> int:
        return len(self._payloads)

    @property
    def created_count(self) -> int:
        return self._created_count

    @property
    def released_count(self) -> int:
        return self._released_count

    def create(self, payload: bytes) -> DisplayHandle:
        """
        Create a new handle referencing ``payload``.

        Args:
            payload: Encoded image bytes owned by a frame

        Returns:
            Fresh DisplayHandle
        """
        token = f"{self._prefix}{uuid.uuid4().hex}"
        self._payloads[token] = payload
        self._created_count += 1
        return DisplayHandle(token=token)

    def is_live(self, handle: DisplayHandle) -> bool:
        return handle.token in self._payloads

    def resolve(self, handle: DisplayHandle) -> bytes:
        """
        Return the payload behind a live handle.

        Raises:
            HandleError: If the handle was released or never issued
        """
        try:
            return self._payloads[handle.token]
        except KeyError:
            raise HandleError(f"Display handle is not live: {handle.token}")

    def release(self, handle: DisplayHandle) -> None:
        """
        Revoke a handle.

        Raises:
            HandleError: If the handle was already released
        """
        if self._payloads.pop(handle.token, None) is None:
            raise HandleError(f"Display handle already released: {handle.token}")
        self._released_count += 1

    def metrics(self) -> dict:
        """
        Get registry metrics for observability.

        Returns:
            Dict with live, created and released counts
        """
        return {
            "live": self.live_count,
            "created": self._created_count,
            "released": self._released_count,
        }
