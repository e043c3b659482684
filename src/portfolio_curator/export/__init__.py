"""
Export Module
=============

Packages selected stills into a downloadable zip archive.
"""

from portfolio_curator.export.packager import (
    ArchiveBuildError,
    ExportError,
    NothingSelectedError,
    archive_entry_names,
    entry_names,
    export_frames,
    index_width,
)

__all__ = [
    "ArchiveBuildError",
    "ExportError",
    "NothingSelectedError",
    "archive_entry_names",
    "entry_names",
    "export_frames",
    "index_width",
]
