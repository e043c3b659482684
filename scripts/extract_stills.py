#!/usr/bin/env python3
"""
Still Extraction Script
=======================

Standalone script that samples a local video and writes the stills
archive to disk, without starting the HTTP service.

This script:
    1. Opens the video with the configured decode backend
    2. Samples it into a run of JPEG stills
    3. Logs progress and a final summary
    4. Writes every extracted still into a zip archive

Prerequisites:
    - Install the project: pip install -e .

Usage:
    python scripts/extract_stills.py clip.mp4
    python scripts/extract_stills.py clip.mp4 --rate 2 --output stills.zip
    python scripts/extract_stills.py --mock --mock-duration 5
"""

import argparse
import asyncio
import logging
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from portfolio_curator.config import load_config
from portfolio_curator.decode import MetadataLoadError, MockDecodeSource, OpenCVDecodeSource
from portfolio_curator.export import NothingSelectedError
from portfolio_curator.sampling import RasterTargetError
from portfolio_curator.session import CuratorSession


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_extraction(args: argparse.Namespace) -> dict:
    """
    Sample one video and write its archive.

    Args:
        args: Parsed command line arguments

    Returns:
        Summary dict
    """
    config = load_config(args.config)
    if args.rate is not None:
        config.sampling.desired_rate = args.rate
    if args.target_frames is not None:
        config.sampling.target_frame_count = args.target_frames
    if args.max_frames is not None:
        config.sampling.max_frames = args.max_frames
        config.sampling.max_steps = max(config.sampling.max_steps, args.max_frames)
    if args.step_timeout is not None:
        config.timing.step_timeout_seconds = args.step_timeout

    if args.mock:
        source = MockDecodeSource(duration=args.mock_duration, name="mock.mp4")
    else:
        source = OpenCVDecodeSource(args.video)

    logger.info("=" * 60)
    logger.info("Still Extraction")
    logger.info("=" * 60)
    logger.info(f"Source: {source.name}")
    logger.info(f"Rate: {config.sampling.desired_rate or 'auto'}")
    logger.info(f"Target frames: {config.sampling.target_frame_count}")
    logger.info(f"Max frames: {config.sampling.max_frames}")
    logger.info(f"Output: {args.output}")
    logger.info("=" * 60)

    last_logged = -10

    def on_progress(value: int) -> None:
        nonlocal last_logged
        if value - last_logged >= 10 or value == 100:
            logger.info(f"Progress: {value}%")
            last_logged = value

    session = CuratorSession(config, on_progress=on_progress)
    start_time = time.time()

    try:
        run = await session.start_run(source)
    except (MetadataLoadError, RasterTargetError) as e:
        logger.error(f"Extraction failed: {e}")
        return {"frames": 0, "written": False, "error": str(e)}

    elapsed = time.time() - start_time
    metrics = session.engine.metrics

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {elapsed:.1f} seconds")
    logger.info(f"Duration: {run.duration:.2f}s, interval: {run.interval:.3f}s")
    logger.info(f"Frames extracted: {len(run.frames)}")
    logger.info(f"Steps taken: {metrics.steps_taken}")
    logger.info(f"Timeouts: {metrics.timeouts}")
    logger.info(f"Decode errors: {metrics.decode_errors}")
    logger.info(f"Encode failures: {metrics.encode_failures}")
    logger.info("=" * 60)

    written = False
    try:
        payload = await session.export()
        with open(args.output, "wb") as f:
            f.write(payload)
        written = True
        logger.info(f"Wrote {len(payload)} bytes to {args.output}")
    except NothingSelectedError as e:
        logger.error(f"Nothing to write: {e}")
    finally:
        await session.reset()

    return {
        "frames": len(run.frames),
        "written": written,
        "elapsed": elapsed,
        "metrics": metrics.to_dict(),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Extract evenly spaced stills from a video into a zip archive"
    )
    parser.add_argument(
        "video",
        nargs="?",
        help="Path of the video file",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path of config.yaml (default: search common locations)",
    )
    parser.add_argument(
        "--rate",
        type=float,
        default=None,
        help="Requested frames per second (default: aim for --target-frames)",
    )
    parser.add_argument(
        "--target-frames",
        type=int,
        default=None,
        help="Frames to aim for when no rate is given",
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=None,
        help="Hard ceiling on extracted frames",
    )
    parser.add_argument(
        "--step-timeout",
        type=float,
        default=None,
        help="Seconds allowed per seek",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="portfolio_stills.zip",
        help="Archive path (default: portfolio_stills.zip)",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the synthetic mock decoder instead of a video file",
    )
    parser.add_argument(
        "--mock-duration",
        type=float,
        default=10.0,
        help="Duration reported by the mock decoder (default: 10)",
    )

    args = parser.parse_args()
    if not args.mock and not args.video:
        parser.error("a video path is required unless --mock is given")

    result = asyncio.run(run_extraction(args))

    # Exit with appropriate code
    sys.exit(0 if result["written"] else 1)


if __name__ == "__main__":
    main()
