"""
Export Packager
===============

Serializes the selected frames into a single zip archive.

Naming:
    Entries are named ``<prefix>_<index>.<extension>`` with a 1-based index
    in current display order, zero-padded to a common width so that
    lexicographic and numeric ordering agree:

        portfolio_shot_01.jpg, portfolio_shot_02.jpg, ...

    The width is max(min_index_width, digits of the entry count), so any
    number of entries keeps its sort order.

Design Rules:
    - Payloads are written verbatim (stored, not re-encoded or deflated)
    - Entry timestamps are fixed so identical input gives identical bytes
    - Nothing selected → NothingSelectedError, no archive
    - Any serialization failure → ArchiveBuildError, no partial archive
"""

import io
import logging
import zipfile
from typing import List, Sequence

from portfolio_curator.models.frame import Frame


logger = logging.getLogger(__name__)


DEFAULT_PREFIX = "portfolio_shot"
DEFAULT_EXTENSION = "jpg"
DEFAULT_INDEX_WIDTH = 2

# Earliest timestamp representable in a zip entry
_ENTRY_DATE_TIME = (1980, 1, 1, 0, 0, 0)


class ExportError(Exception):
    """Base class for export failures."""
    pass


class NothingSelectedError(ExportError):
    """Raised when export is requested with no frames selected."""
    pass


class ArchiveBuildError(ExportError):
    """Raised when the archive cannot be serialized."""
    pass


def index_width(count: int, min_width: int = DEFAULT_INDEX_WIDTH) -> int:
    """Zero-padding width that keeps ``count`` entries sortable."""
    return max(min_width, len(str(max(count, 1))))


def entry_names(
    count: int,
    prefix: str = DEFAULT_PREFIX,
    extension: str = DEFAULT_EXTENSION,
    min_width: int = DEFAULT_INDEX_WIDTH,
) -> List[str]:
    """Entry names for ``count`` archive members, in order."""
    width = index_width(count, min_width)
    return [f"{prefix}_{i:0{width}d}.{extension}" for i in range(1, count + 1)]


def archive_entry_names(
    frames: Sequence[Frame],
    prefix: str = DEFAULT_PREFIX,
    extension: str = DEFAULT_EXTENSION,
    min_width: int = DEFAULT_INDEX_WIDTH,
) -> List[str]:
    """Names the selected frames would receive in an export."""
    selected = [f for f in frames if f.selected]
    return entry_names(len(selected), prefix, extension, min_width)


def export_frames(
    frames: Sequence[Frame],
    prefix: str = DEFAULT_PREFIX,
    extension: str = DEFAULT_EXTENSION,
    min_width: int = DEFAULT_INDEX_WIDTH,
) -> bytes:
    """
    Build a zip archive of the selected frames.

    Args:
        frames: Frames in display order (unselected ones are skipped)
        prefix: Entry name prefix
        extension: Entry file extension
        min_width: Minimum zero-padded index width

    Returns:
        Complete archive as bytes

    Raises:
        NothingSelectedError: If no frame is selected
        ArchiveBuildError: If serialization fails
    """
    selected = [f for f in frames if f.selected]
    if not selected:
        raise NothingSelectedError("No frames selected for download")

    names = entry_names(len(selected), prefix, extension, min_width)
    buffer = io.BytesIO()

    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
            for name, frame in zip(names, selected):
                info = zipfile.ZipInfo(name, date_time=_ENTRY_DATE_TIME)
                info.compress_type = zipfile.ZIP_STORED
                info.external_attr = 0o644 << 16
                archive.writestr(info, frame.raster)
    except Exception as e:
        raise ArchiveBuildError(f"Could not create zip file: {e}") from e

    payload = buffer.getvalue()
    logger.info(f"Built archive with {len(selected)} entries ({len(payload)} bytes)")
    return payload
