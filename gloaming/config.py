"""
Configuration management with environment variable support.

All settings can be overridden via environment variables.
Automatically loads .env file if present.
"""

import os
from pathlib import Path
from typing import Literal
from dotenv import load_dotenv

# Load .env file from project root (one level up from gloaming/)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_optional_float(name: str) -> float | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError:
        print(f"Warning: Invalid {name}={value!r}, ignoring")
        return None


def _env_number(name: str, default: str, cast: type = float):
    """Numeric env var; falls back to default when it doesn't parse."""
    value = os.getenv(name, default)
    try:
        return cast(value)
    except ValueError:
        print(f"Warning: Invalid {name}={value!r}, using {default}")
        return cast(default)


# Logging configuration
LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = os.getenv("LOG_LEVEL", "INFO")

# Mock mode (no xrandr / xprop calls, for testing without a display)
MOCK_MODE: bool = _env_bool("MOCK_MODE", "false")

# Location (both must be set for astronomical sunrise/sunset)
LATITUDE: float | None = _env_optional_float("LATITUDE")
LONGITUDE: float | None = _env_optional_float("LONGITUDE")

# Manual sunrise/sunset, used when location is absent or manual mode is forced
MANUAL_SUNRISE_SUNSET_ENABLED: bool = _env_bool("MANUAL_SUNRISE_SUNSET_ENABLED", "false")
MANUAL_SUNRISE: str = os.getenv("MANUAL_SUNRISE", "07:20")
MANUAL_SUNSET: str = os.getenv("MANUAL_SUNSET", "16:30")

# Day / night color targets
DAY_TEMPERATURE: str = os.getenv("DAY_TEMPERATURE", "6600")
DAY_BRIGHTNESS: str = os.getenv("DAY_BRIGHTNESS", "1.0")
NIGHT_TEMPERATURE: str = os.getenv("NIGHT_TEMPERATURE", "3900")
NIGHT_BRIGHTNESS: str = os.getenv("NIGHT_BRIGHTNESS", "0.85")

# Transition window around sunrise/sunset
TRANSITION_DURATION_MINUTES: str = os.getenv("TRANSITION_DURATION_MINUTES", "90")
TRANSITION_OFFSET_MINUTES: str = os.getenv("TRANSITION_OFFSET_MINUTES", "0")

# Smoothing between ticks
SMOOTHING_ENABLED: bool = _env_bool("SMOOTHING_ENABLED", "true")
SMOOTHING_MAX_STEPS: int = _env_number("SMOOTHING_MAX_STEPS", "600", int)
SMOOTHING_RATE: float = _env_number("SMOOTHING_RATE", "0.05")

# Behavior while disabled or paused
DEFAULT_TO_DAY_WHEN_INACTIVE: bool = _env_bool("DEFAULT_TO_DAY_WHEN_INACTIVE", "false")

# Pause conditions
PAUSE_WHEN_FULLSCREEN: bool = _env_bool("PAUSE_WHEN_FULLSCREEN", "false")
WHITELIST_ENABLED: bool = _env_bool("WHITELIST_ENABLED", "false")
# Comma-separated process names, e.g. "gimp,darktable"
WHITELIST: str = os.getenv("WHITELIST", "")

# Hotkey bindings (empty = not bound), e.g. "ctrl+alt+shift+l"
HOTKEY_TOGGLE: str = os.getenv("HOTKEY_TOGGLE", "")
HOTKEY_INCREASE_TEMPERATURE: str = os.getenv("HOTKEY_INCREASE_TEMPERATURE", "")
HOTKEY_DECREASE_TEMPERATURE: str = os.getenv("HOTKEY_DECREASE_TEMPERATURE", "")
HOTKEY_INCREASE_BRIGHTNESS: str = os.getenv("HOTKEY_INCREASE_BRIGHTNESS", "")
HOTKEY_DECREASE_BRIGHTNESS: str = os.getenv("HOTKEY_DECREASE_BRIGHTNESS", "")
HOTKEY_RESET_OFFSET: str = os.getenv("HOTKEY_RESET_OFFSET", "")

# Offset deltas applied per hotkey press
TEMPERATURE_OFFSET_STEP: float = _env_number("TEMPERATURE_OFFSET_STEP", "100")
BRIGHTNESS_OFFSET_STEP: float = _env_number("BRIGHTNESS_OFFSET_STEP", "0.05")

# Tick cadences
UPDATE_INTERVAL_MS: int = _env_number("UPDATE_INTERVAL_MS", "50", int)
PAUSE_CHECK_INTERVAL_MS: int = _env_number("PAUSE_CHECK_INTERVAL_MS", "1000", int)

# MQTT configuration
MQTT_ENABLED: bool = _env_bool("MQTT_ENABLED", "false")
MQTT_BROKER: str = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT: int = _env_number("MQTT_PORT", "1883", int)
MQTT_USERNAME: str | None = os.getenv("MQTT_USERNAME")
MQTT_PASSWORD: str | None = os.getenv("MQTT_PASSWORD")
MQTT_CLIENT_ID: str = os.getenv("MQTT_CLIENT_ID", "gloaming")
