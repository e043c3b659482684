"""
Lifecycle Module
================

Ownership of extracted stills after sampling.

Components:
    - DisplayHandleRegistry: Mints and revokes display handles
    - SelectionManager: toggle / set_all / remove / discard_run
"""

from portfolio_curator.lifecycle.handles import DisplayHandleRegistry, HandleError
from portfolio_curator.lifecycle.selection import (
    FrameNotFoundError,
    RunNotMutableError,
    SelectionManager,
)

__all__ = [
    "DisplayHandleRegistry",
    "HandleError",
    "FrameNotFoundError",
    "RunNotMutableError",
    "SelectionManager",
]
