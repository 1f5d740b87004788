"""
Mathematical helpers for smooth, non-flickering color changes.
"""

from gloaming.color import (
    ColorConfiguration,
    MIN_TEMPERATURE,
    MAX_TEMPERATURE,
    MIN_BRIGHTNESS,
    MAX_BRIGHTNESS,
)

# Residual distance treated as "arrived" (absorbs float accumulation)
EPSILON = 1e-9


def lerp(a: float, b: float, t: float) -> float:
    """Linear interpolation."""
    return a + (b - a) * t


def lerp_configuration(start: ColorConfiguration, end: ColorConfiguration, t: float) -> ColorConfiguration:
    """Blend two configurations field by field (t=0 -> start, t=1 -> end)."""
    return ColorConfiguration(
        temperature=lerp(start.temperature, end.temperature, t),
        brightness=lerp(start.brightness, end.brightness, t),
    )


def step_value(current: float, target: float, min_step: float, rate: float) -> float:
    """
    Move current toward target by an exponentially decaying step.

    The step is a fraction (rate) of the remaining distance, but never
    smaller than min_step, and never past the target. Within EPSILON of
    the target it snaps to the target.
    """
    remaining = target - current
    distance = abs(remaining)
    step = max(distance * rate, min_step)

    if step >= distance - EPSILON:
        return target

    return current + step if remaining > 0 else current - step


def step_toward(
    current: ColorConfiguration,
    target: ColorConfiguration,
    max_steps: int,
    rate: float,
) -> ColorConfiguration:
    """
    Advance current toward target by one smoothing tick.

    The minimum step per field is the field's full range divided by max_steps,
    so any in-range target is reached exactly within max_steps calls.
    """
    if current == target:
        return current

    max_steps = max(1, max_steps)

    return ColorConfiguration(
        temperature=step_value(
            current.temperature,
            target.temperature,
            (MAX_TEMPERATURE - MIN_TEMPERATURE) / max_steps,
            rate,
        ),
        brightness=step_value(
            current.brightness,
            target.brightness,
            (MAX_BRIGHTNESS - MIN_BRIGHTNESS) / max_steps,
            rate,
        ),
    )
