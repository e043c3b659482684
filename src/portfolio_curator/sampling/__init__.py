"""
Sampling Module
===============

Turns a decode source into an ordered sequence of extracted stills.

Components:
    - plan / IntervalPlan: Interval and start offset planning
    - RasterTarget: Fixed-size buffer and JPEG encoder
    - SamplingEngine: Seek/ready/timeout loop producing Frames

Example:
    from portfolio_curator.sampling import SamplingEngine, plan

    interval_plan = plan(duration=10.0, target_count=30)
    print(interval_plan.interval, interval_plan.start_offset)
"""

from portfolio_curator.sampling.planner import (
    IntervalPlan,
    effective_duration,
    plan,
)
from portfolio_curator.sampling.raster import (
    RasterEncodeError,
    RasterTarget,
    RasterTargetError,
)
from portfolio_curator.sampling.engine import SamplingEngine, SamplingMetrics

__all__ = [
    "IntervalPlan",
    "effective_duration",
    "plan",
    "RasterEncodeError",
    "RasterTarget",
    "RasterTargetError",
    "SamplingEngine",
    "SamplingMetrics",
]
