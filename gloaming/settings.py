"""
Immutable settings snapshot and change notification.

The engine reads a Settings snapshot on every tick. Replacing the snapshot
through SettingsService.save() notifies subscribers synchronously.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Callable, Optional

from gloaming import config
from gloaming.color import ColorConfiguration
from gloaming.logger import logger
from gloaming.solar_time import Location, TimeOfDay


@dataclass(frozen=True)
class HotKeyBindings:
    """Key combinations per action. Empty string means unbound."""

    toggle: str = ""
    increase_temperature_offset: str = ""
    decrease_temperature_offset: str = ""
    increase_brightness_offset: str = ""
    decrease_brightness_offset: str = ""
    reset_configuration_offset: str = ""


@dataclass(frozen=True)
class Settings:
    location: Optional[Location] = None
    is_manual_sunrise_sunset_enabled: bool = False
    manual_sunrise: TimeOfDay = TimeOfDay.of(7, 20)
    manual_sunset: TimeOfDay = TimeOfDay.of(16, 30)

    day_configuration: ColorConfiguration = ColorConfiguration(6600.0, 1.0)
    night_configuration: ColorConfiguration = ColorConfiguration(3900.0, 0.85)

    transition_duration: timedelta = timedelta(minutes=90)
    transition_offset: timedelta = timedelta(0)

    is_smoothing_enabled: bool = True
    smoothing_max_steps: int = 600
    smoothing_rate: float = 0.05

    is_default_to_day_configuration_enabled: bool = False
    is_pause_when_full_screen_enabled: bool = False
    is_application_whitelist_enabled: bool = False
    whitelisted_applications: Optional[frozenset[str]] = None

    hot_keys: HotKeyBindings = field(default_factory=HotKeyBindings)
    temperature_offset_step: float = 100.0
    brightness_offset_step: float = 0.05

    def updated(self, **changes) -> "Settings":
        return replace(self, **changes)


def _parse_time(name: str, value: str, default: TimeOfDay) -> TimeOfDay:
    try:
        return TimeOfDay.parse(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using {default}")
        return default


def _parse_float(name: str, value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using {default}")
        return default


def _parse_whitelist(value: str) -> Optional[frozenset[str]]:
    names = frozenset(name.strip().lower() for name in value.split(",") if name.strip())
    return names or None


def load_settings() -> Settings:
    """
    Build a Settings snapshot from the environment configuration.

    Invalid values fall back to defaults with a warning.
    """
    defaults = Settings()

    location = None
    if config.LATITUDE is not None and config.LONGITUDE is not None:
        location = Location(latitude=config.LATITUDE, longitude=config.LONGITUDE)
    elif config.LATITUDE is not None or config.LONGITUDE is not None:
        logger.warning("Only one of LATITUDE/LONGITUDE is set, ignoring location")

    day = ColorConfiguration(
        temperature=_parse_float("DAY_TEMPERATURE", config.DAY_TEMPERATURE, defaults.day_configuration.temperature),
        brightness=_parse_float("DAY_BRIGHTNESS", config.DAY_BRIGHTNESS, defaults.day_configuration.brightness),
    ).clamped()
    night = ColorConfiguration(
        temperature=_parse_float("NIGHT_TEMPERATURE", config.NIGHT_TEMPERATURE, defaults.night_configuration.temperature),
        brightness=_parse_float("NIGHT_BRIGHTNESS", config.NIGHT_BRIGHTNESS, defaults.night_configuration.brightness),
    ).clamped()

    duration_minutes = _parse_float("TRANSITION_DURATION_MINUTES", config.TRANSITION_DURATION_MINUTES, 90.0)
    offset_minutes = _parse_float("TRANSITION_OFFSET_MINUTES", config.TRANSITION_OFFSET_MINUTES, 0.0)

    return Settings(
        location=location,
        is_manual_sunrise_sunset_enabled=config.MANUAL_SUNRISE_SUNSET_ENABLED,
        manual_sunrise=_parse_time("MANUAL_SUNRISE", config.MANUAL_SUNRISE, defaults.manual_sunrise),
        manual_sunset=_parse_time("MANUAL_SUNSET", config.MANUAL_SUNSET, defaults.manual_sunset),
        day_configuration=day,
        night_configuration=night,
        transition_duration=timedelta(minutes=max(0.0, duration_minutes)),
        transition_offset=timedelta(minutes=offset_minutes),
        is_smoothing_enabled=config.SMOOTHING_ENABLED,
        smoothing_max_steps=config.SMOOTHING_MAX_STEPS,
        smoothing_rate=config.SMOOTHING_RATE,
        is_default_to_day_configuration_enabled=config.DEFAULT_TO_DAY_WHEN_INACTIVE,
        is_pause_when_full_screen_enabled=config.PAUSE_WHEN_FULLSCREEN,
        is_application_whitelist_enabled=config.WHITELIST_ENABLED,
        whitelisted_applications=_parse_whitelist(config.WHITELIST),
        hot_keys=HotKeyBindings(
            toggle=config.HOTKEY_TOGGLE,
            increase_temperature_offset=config.HOTKEY_INCREASE_TEMPERATURE,
            decrease_temperature_offset=config.HOTKEY_DECREASE_TEMPERATURE,
            increase_brightness_offset=config.HOTKEY_INCREASE_BRIGHTNESS,
            decrease_brightness_offset=config.HOTKEY_DECREASE_BRIGHTNESS,
            reset_configuration_offset=config.HOTKEY_RESET_OFFSET,
        ),
        temperature_offset_step=config.TEMPERATURE_OFFSET_STEP,
        brightness_offset_step=config.BRIGHTNESS_OFFSET_STEP,
    )


class SettingsService:
    """Holds the current settings snapshot and notifies on save."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings if settings is not None else Settings()
        self._subscribers: list[Callable[[Settings], None]] = []
        self._lock = threading.Lock()

    @property
    def settings(self) -> Settings:
        return self._settings

    def subscribe(self, callback: Callable[[Settings], None]) -> Callable[[], None]:
        """
        Register a settings-saved callback.

        Returns:
            Function that removes the subscription (safe to call twice)
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def save(self, settings: Settings):
        with self._lock:
            self._settings = settings
            subscribers = list(self._subscribers)

        logger.info("Settings saved")
        for callback in subscribers:
            callback(settings)
