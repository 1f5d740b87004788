"""
User-adjustable temperature/brightness offsets.

Offsets are applied on top of the interpolated configuration. Adjustments
that would not change the clamped target are ignored, so an offset never
keeps growing once the target sits at a range limit.
"""

from typing import Callable

from gloaming.color import ColorConfiguration
from gloaming.logger import logger

RESET_THRESHOLD = 0.01


class OffsetManager:
    """
    Holds the temperature and brightness offsets.

    target_provider returns the current offset-adjusted target configuration;
    it is consulted before every adjustment.
    """

    def __init__(self, target_provider: Callable[[], ColorConfiguration]):
        self.target_provider = target_provider
        self.temperature_offset: float = 0.0
        self.brightness_offset: float = 0.0

    def _adjust(self, temperature_delta: float, brightness_delta: float) -> bool:
        target = self.target_provider()
        if target.with_offset(temperature_delta, brightness_delta) == target:
            logger.debug(
                f"Offset adjustment ignored at range limit "
                f"(temperature={temperature_delta:+}, brightness={brightness_delta:+})"
            )
            return False

        self.temperature_offset += temperature_delta
        self.brightness_offset += brightness_delta
        return True

    def increase_temperature(self, delta: float) -> bool:
        return self._adjust(abs(delta), 0)

    def decrease_temperature(self, delta: float) -> bool:
        return self._adjust(-abs(delta), 0)

    def increase_brightness(self, delta: float) -> bool:
        return self._adjust(0, abs(delta))

    def decrease_brightness(self, delta: float) -> bool:
        return self._adjust(0, -abs(delta))

    @property
    def can_reset(self) -> bool:
        return abs(self.temperature_offset) + abs(self.brightness_offset) >= RESET_THRESHOLD

    def reset(self):
        self.temperature_offset = 0.0
        self.brightness_offset = 0.0

    def apply(self, configuration: ColorConfiguration) -> ColorConfiguration:
        return configuration.with_offset(self.temperature_offset, self.brightness_offset)
