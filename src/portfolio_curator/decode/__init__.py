"""
Decode Module
=============

Decode source abstraction for the sampling engine.

Components:
    - DecodeSource: Protocol the engine drives
    - OpenCVDecodeSource: cv2.VideoCapture-backed production source
    - MockDecodeSource: Deterministic source with fault injection

Design Philosophy:
    The decoder is a pluggable, untrusted black box. The engine assumes
    it can stall, fail or lie about its metadata.
"""

from portfolio_curator.decode.source import (
    DecodeError,
    DecodeSource,
    MetadataLoadError,
    VideoMetadata,
)
from portfolio_curator.decode.mock_source import MockDecodeSource
from portfolio_curator.decode.opencv_source import OpenCVDecodeSource

__all__ = [
    "DecodeError",
    "DecodeSource",
    "MetadataLoadError",
    "VideoMetadata",
    "MockDecodeSource",
    "OpenCVDecodeSource",
]
