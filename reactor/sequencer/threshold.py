# reactor/sequencer/threshold.py
"""Threshold detection for Wait-mode steps. Pure functions, no state."""
import math
from typing import Optional

from reactor.recipe import Step, TargetChannel
from reactor.sensor_feed import SensorSample

# Readings beyond this magnitude are sensor noise (open probe, bad frame)
SANITY_LIMIT = 500.0


def is_valid_reading(value) -> bool:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(v) and abs(v) <= SANITY_LIMIT


def channel_value(channel: TargetChannel, sample: SensorSample) -> float:
    return sample.tj if channel is TargetChannel.TJ else sample.tr


def is_threshold_reached(step: Step, sample: Optional[SensorSample]) -> bool:
    """True when the step's channel reading is valid and at or above its target."""
    if sample is None:
        return False

    value = channel_value(step.target_channel, sample)
    if not is_valid_reading(value):
        return False

    target = step.target_temperature
    if not isinstance(target, (int, float)) or not math.isfinite(target):
        return False

    return value >= target
