"""
Interval Planner
================

Maps (duration, desired rate, target count, hard ceiling) to a sampling
interval and a starting offset.

Formulas:
    With a positive finite desired rate:
        interval = max(1 / rate, duration / hard_ceiling, MIN_INTERVAL)

    Without one:
        interval = max(min_spacing, duration / target_count,
                       duration / hard_ceiling, MIN_INTERVAL)

    start_offset = min(lead_in, duration / 10)

The ceiling term keeps a high requested rate on a long video from
producing an unbounded number of frames. min_spacing keeps very short
clips from degenerating into a near-zero interval. The lead-in skips
the very first instant, which decoders often render black.

Duration policy:
    plan() refuses non-finite or non-positive durations. Callers run the
    reported duration through effective_duration() first, which
    substitutes a 1 second default.
"""

import math
from dataclasses import dataclass
from typing import Optional


DEFAULT_MIN_SPACING = 0.1
DEFAULT_LEAD_IN = 0.1
DEFAULT_DURATION = 1.0

# Frame ids carry millisecond precision; 10ms spacing keeps them distinct
MIN_INTERVAL = 0.01

_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class IntervalPlan:
    """
    Output of the interval planner.

    Attributes:
        interval: Spacing between consecutive target timestamps (seconds)
        start_offset: First target timestamp (seconds)
    """

    interval: float
    start_offset: float

    def implied_frame_count(self, duration: float) -> int:
        """Number of target timestamps in [start_offset, duration)."""
        span = duration - self.start_offset
        if span <= 0:
            return 0
        return max(0, math.ceil(span / self.interval - _EPSILON))

    def target_at(self, step: int) -> float:
        """Target timestamp of the given 0-based step."""
        return self.start_offset + step * self.interval


def effective_duration(
    reported: Optional[float],
    fallback: float = DEFAULT_DURATION,
) -> float:
    """
    Substitute a default for missing or nonsensical durations.

    Args:
        reported: Duration reported by the decode source
        fallback: Duration to use instead (seconds)

    Returns:
        ``reported`` if it is finite and positive, else ``fallback``
    """
    if reported is None or not math.isfinite(reported) or reported <= 0:
        return fallback
    return float(reported)


def plan(
    duration: float,
    desired_rate: Optional[float] = None,
    target_count: int = 30,
    hard_ceiling: int = 600,
    min_spacing: float = DEFAULT_MIN_SPACING,
    lead_in: float = DEFAULT_LEAD_IN,
) -> IntervalPlan:
    """
    Compute the sampling interval and start offset for a video.

    Args:
        duration: Video duration in seconds, finite and > 0
        desired_rate: Requested frames per second; None, non-finite or
            non-positive values fall back to ``target_count``
        target_count: Frames to aim for without a requested rate
        hard_ceiling: Maximum frames a run may produce
        min_spacing: Smallest interval on the target-count path
        lead_in: Preferred offset of the first sample

    Returns:
        IntervalPlan with interval > 0

    Raises:
        ValueError: On invalid duration, counts or spacing
    """
    if duration is None or not math.isfinite(duration) or duration <= 0:
        raise ValueError(f"duration must be finite and > 0, got {duration!r}")
    if target_count < 1:
        raise ValueError("target_count must be >= 1")
    if hard_ceiling < 1:
        raise ValueError("hard_ceiling must be >= 1")
    if min_spacing <= 0:
        raise ValueError("min_spacing must be positive")
    if lead_in < 0:
        raise ValueError("lead_in must be non-negative")

    ceiling_interval = duration / hard_ceiling

    if desired_rate is not None and math.isfinite(desired_rate) and desired_rate > 0:
        interval = max(1.0 / desired_rate, ceiling_interval, MIN_INTERVAL)
    else:
        interval = max(min_spacing, duration / target_count, ceiling_interval, MIN_INTERVAL)

    start_offset = min(lead_in, duration / 10.0)

    return IntervalPlan(interval=interval, start_offset=start_offset)
