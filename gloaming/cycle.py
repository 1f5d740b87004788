"""
Day/night cycle interpolation.

Maps an instant to the ideal color configuration: exact day or night
configuration outside the transition windows, a linear blend inside them.
All functions here are pure.
"""

from datetime import datetime, timedelta

from gloaming.color import ColorConfiguration
from gloaming.lighting_math import lerp_configuration
from gloaming.solar_time import CycleBoundaries, TimeOfDay


def _window_progress(start: TimeOfDay, duration: float, now: TimeOfDay) -> float | None:
    """Fraction of the way through [start, start + duration), or None if outside."""
    if duration <= 0:
        return None

    elapsed = now.seconds_since(start)
    if elapsed < duration:
        return elapsed / duration

    return None


def transition_progress(
    boundaries: CycleBoundaries,
    transition_duration: timedelta,
    instant: datetime,
) -> float:
    """
    How far the cycle is toward full day at instant.

    0.0 is full night, 1.0 is full day. Inside the sunrise window the value
    rises from 0 to 1, inside the sunset window it falls from 1 to 0.
    The sunrise window wins when the two windows overlap.
    """
    now = TimeOfDay.from_datetime(instant)
    duration = transition_duration.total_seconds()

    progress = _window_progress(boundaries.sunrise_start, duration, now)
    if progress is not None:
        return progress

    progress = _window_progress(boundaries.sunset_start, duration, now)
    if progress is not None:
        return 1.0 - progress

    # Daytime runs from sunrise end up to (excluding) sunset start. When the
    # windows overlap there is no daytime at all.
    day_span = boundaries.sunset_start.seconds_since(boundaries.sunrise_start) - max(duration, 0.0)
    if day_span > 0 and now.seconds_since(boundaries.sunrise_end) < day_span:
        return 1.0

    return 0.0


def interpolate_configuration(
    boundaries: CycleBoundaries,
    day_configuration: ColorConfiguration,
    night_configuration: ColorConfiguration,
    transition_duration: timedelta,
    instant: datetime,
) -> ColorConfiguration:
    progress = transition_progress(boundaries, transition_duration, instant)

    # No blending outside the windows
    if progress == 1.0:
        return day_configuration
    if progress == 0.0:
        return night_configuration

    return lerp_configuration(night_configuration, day_configuration, progress)


def target_configuration(
    boundaries: CycleBoundaries,
    day_configuration: ColorConfiguration,
    night_configuration: ColorConfiguration,
    transition_duration: timedelta,
    transition_offset: timedelta,
    instant: datetime,
    is_active: bool,
    default_to_day_when_inactive: bool,
) -> ColorConfiguration:
    """
    Ideal configuration at instant, before user offsets.

    When the cycle is inactive this is the day configuration or the neutral
    default, depending on default_to_day_when_inactive. transition_offset is
    already folded into the boundaries and is accepted for symmetry with
    compute_boundaries.
    """
    if not is_active:
        return day_configuration if default_to_day_when_inactive else ColorConfiguration.DEFAULT

    return interpolate_configuration(
        boundaries,
        day_configuration,
        night_configuration,
        transition_duration,
        instant,
    )
