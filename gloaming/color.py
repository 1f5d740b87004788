"""
Display color configuration value type.

A configuration is a (temperature, brightness) pair. Both fields are kept
inside the range the gamma sink can represent.
"""

from dataclasses import dataclass
from typing import ClassVar


MIN_TEMPERATURE = 500.0
MAX_TEMPERATURE = 20000.0
MIN_BRIGHTNESS = 0.1
MAX_BRIGHTNESS = 1.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ColorConfiguration:
    """Color temperature in Kelvin and brightness as a 0.1-1.0 multiplier."""

    temperature: float
    brightness: float

    DEFAULT: ClassVar["ColorConfiguration"]

    def with_offset(self, temperature_offset: float, brightness_offset: float) -> "ColorConfiguration":
        """Add deltas to both fields and clamp the result to the valid range."""
        return ColorConfiguration(
            temperature=clamp(self.temperature + temperature_offset, MIN_TEMPERATURE, MAX_TEMPERATURE),
            brightness=clamp(self.brightness + brightness_offset, MIN_BRIGHTNESS, MAX_BRIGHTNESS),
        )

    def clamped(self) -> "ColorConfiguration":
        return self.with_offset(0, 0)

    def to_dict(self) -> dict[str, float]:
        return {"temperature": self.temperature, "brightness": self.brightness}


# Neutral configuration (no visible tint)
ColorConfiguration.DEFAULT = ColorConfiguration(temperature=6600.0, brightness=1.0)
