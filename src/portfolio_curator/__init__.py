"""
Portfolio Curator
=================

Extracts a curated set of still images from a video, lets a user
select, deselect and delete individual stills, and packages the
selection into a downloadable archive.

Components:
    - decode: Decode source abstraction (OpenCV and mock backends)
    - sampling: Interval planning, rasterization and the sampling engine
    - lifecycle: Display handles and selection management
    - session: Owner of the current run (sampling, reset, export)
    - export: Archive packaging of selected stills

Example:
    from portfolio_curator.decode import OpenCVDecodeSource
    from portfolio_curator.session import CuratorSession

    session = CuratorSession()
    run = await session.start_run(OpenCVDecodeSource("clip.mp4"))
    archive = await session.export()

    # The HTTP service is started via the FastAPI application
    # See main.py for entry point
"""

__version__ = "0.1.0"
__author__ = "Portfolio Curator Project"

__all__ = [
    "__version__",
]
