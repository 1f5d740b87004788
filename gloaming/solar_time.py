"""
Astronomical sunrise/sunset calculation using Astral.

Also provides the time-of-day arithmetic the cycle is built on: every
boundary is a TimeOfDay, and all arithmetic wraps at midnight.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Optional

from astral import LocationInfo
from astral.sun import sun

from gloaming.logger import logger

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class TimeOfDay:
    """Seconds since midnight, always in [0, 86400)."""

    seconds: float

    def __post_init__(self):
        object.__setattr__(self, "seconds", self.seconds % SECONDS_PER_DAY)

    @classmethod
    def of(cls, hour: int, minute: int = 0, second: float = 0) -> "TimeOfDay":
        return cls(hour * 3600 + minute * 60 + second)

    @classmethod
    def from_datetime(cls, value: datetime) -> "TimeOfDay":
        return cls(
            value.hour * 3600
            + value.minute * 60
            + value.second
            + value.microsecond / 1_000_000
        )

    @classmethod
    def parse(cls, text: str) -> "TimeOfDay":
        """
        Parse "HH:MM" or "HH:MM:SS".

        Raises:
            ValueError: if the text is not a valid time of day
        """
        parts = text.strip().split(":")
        if len(parts) not in (2, 3):
            raise ValueError(f"Invalid time of day: {text!r}")

        hour, minute = int(parts[0]), int(parts[1])
        second = float(parts[2]) if len(parts) == 3 else 0.0

        if not (0 <= hour < 24 and 0 <= minute < 60 and 0 <= second < 60):
            raise ValueError(f"Invalid time of day: {text!r}")

        return cls.of(hour, minute, second)

    @property
    def hour(self) -> int:
        return int(self.seconds // 3600)

    @property
    def minute(self) -> int:
        return int(self.seconds % 3600 // 60)

    @property
    def second(self) -> int:
        return int(self.seconds % 60)

    def __add__(self, other: timedelta) -> "TimeOfDay":
        if not isinstance(other, timedelta):
            return NotImplemented
        return TimeOfDay(self.seconds + other.total_seconds())

    def __sub__(self, other: timedelta) -> "TimeOfDay":
        if not isinstance(other, timedelta):
            return NotImplemented
        return TimeOfDay(self.seconds - other.total_seconds())

    def seconds_since(self, other: "TimeOfDay") -> float:
        """Forward distance from other to self, wrapping at midnight."""
        return (self.seconds - other.seconds) % SECONDS_PER_DAY

    def on_date_of(self, instant: datetime) -> datetime:
        """This time of day on the calendar date of instant, same tzinfo."""
        midnight = instant.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight + timedelta(seconds=self.seconds)

    def next_after(self, instant: datetime) -> datetime:
        """Next occurrence at or after instant."""
        candidate = self.on_date_of(instant)
        if candidate < instant:
            candidate += timedelta(days=1)
        return candidate

    def previous_before(self, instant: datetime) -> datetime:
        """Latest occurrence at or before instant."""
        candidate = self.on_date_of(instant)
        if candidate > instant:
            candidate -= timedelta(days=1)
        return candidate

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class SolarTimes:
    sunrise: TimeOfDay
    sunset: TimeOfDay


@dataclass(frozen=True)
class CycleBoundaries:
    sunrise_start: TimeOfDay
    sunrise_end: TimeOfDay
    sunset_start: TimeOfDay
    sunset_end: TimeOfDay

    def to_dict(self) -> dict[str, str]:
        return {
            "sunrise_start": str(self.sunrise_start),
            "sunrise_end": str(self.sunrise_end),
            "sunset_start": str(self.sunset_start),
            "sunset_end": str(self.sunset_end),
        }


@lru_cache(maxsize=32)
def _sun_times_on(latitude: float, longitude: float, day: date, tz: tzinfo) -> Optional[SolarTimes]:
    location = LocationInfo(latitude=latitude, longitude=longitude)
    try:
        s = sun(location.observer, date=day, tzinfo=tz)
    except ValueError as e:
        # Polar day or night: astral cannot place sunrise/sunset
        logger.warning(f"Sun times unavailable for {day} at ({latitude:.2f}, {longitude:.2f}): {e}")
        return None

    return SolarTimes(
        sunrise=TimeOfDay.from_datetime(s["sunrise"]),
        sunset=TimeOfDay.from_datetime(s["sunset"]),
    )


def get_sun_times(latitude: float, longitude: float, instant: datetime) -> Optional[SolarTimes]:
    """
    Sunrise and sunset for the date of instant, in instant's timezone.

    Results are cached per date, since the engine asks on every tick.

    Returns:
        SolarTimes, or None when the sun never rises or never sets that day
    """
    tz = instant.tzinfo or timezone.utc
    return _sun_times_on(latitude, longitude, instant.date(), tz)


def compute_solar_times(
    location: Optional[Location],
    manual_sunrise: TimeOfDay,
    manual_sunset: TimeOfDay,
    manual_enabled: bool,
    instant: datetime,
) -> SolarTimes:
    """
    Sunrise/sunset for the date of instant.

    Uses the manual times when manual mode is on or no location is known.
    Polar day/night also falls back to the manual times.
    """
    manual = SolarTimes(sunrise=manual_sunrise, sunset=manual_sunset)

    if manual_enabled or location is None:
        return manual

    return get_sun_times(location.latitude, location.longitude, instant) or manual


def compute_boundaries(
    solar_times: SolarTimes,
    transition_duration: timedelta,
    transition_offset: timedelta,
) -> CycleBoundaries:
    """Transition windows centered on sunrise/sunset, shifted by offset."""
    half = transition_duration / 2
    return CycleBoundaries(
        sunrise_start=solar_times.sunrise - half + transition_offset,
        sunrise_end=solar_times.sunrise + half + transition_offset,
        sunset_start=solar_times.sunset - half + transition_offset,
        sunset_end=solar_times.sunset + half + transition_offset,
    )
