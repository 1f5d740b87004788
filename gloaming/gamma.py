"""
Gamma output through xrandr.

Converts a color configuration to per-channel gamma multipliers and applies
them to every connected output.
"""

import re
import subprocess
from typing import Optional

from gloaming.color import ColorConfiguration
from gloaming.logger import logger

# A hung X server must not stall the engine lock
XRANDR_TIMEOUT_SECONDS = 2.0


def kelvin_to_rgb_gamma(temp_k: float) -> tuple[float, float, float]:
    """
    Convert a color temperature in Kelvin to R, G, B gamma multipliers.

    Piecewise-linear approximation of the Planckian locus, tuned for the
    screen gamma ramp (0.0 to 1.0). 6500 K and above is neutral.
    """
    temp_k = float(temp_k)

    min_k = 1000.0
    max_k = 6500.0

    if temp_k >= max_k:
        return 1.0, 1.0, 1.0
    if temp_k <= min_k:
        temp_k = min_k

    red = 1.0

    if temp_k >= 5000.0:
        green = 0.8 + 0.2 * ((temp_k - 5000.0) / 1500.0)
    elif temp_k >= 2000.0:
        green = 0.6 + 0.3 * ((temp_k - 2000.0) / 3000.0)
    else:
        green = 0.6 - 0.1 * ((2000.0 - temp_k) / 1000.0)

    green = max(0.5, min(1.0, green))

    if temp_k >= 6000.0:
        blue = 0.8 + 0.2 * ((temp_k - 6000.0) / 500.0)
    elif temp_k >= 3000.0:
        blue = 0.3 + 0.5 * ((temp_k - 3000.0) / 3000.0)
    else:
        blue = 0.3 * ((temp_k - 1000.0) / 2000.0)

    blue = max(0.0, min(1.0, blue))

    return red, green, blue


def configuration_to_gamma(configuration: ColorConfiguration) -> tuple[float, float, float]:
    """Channel multipliers for a configuration, brightness folded in."""
    r, g, b = kelvin_to_rgb_gamma(configuration.temperature)
    brightness = configuration.brightness
    return r * brightness, g * brightness, b * brightness


def get_connected_displays() -> list[str]:
    """Names of connected xrandr outputs (e.g. 'eDP-1'). Empty on failure."""
    try:
        result = subprocess.run(
            ['xrandr'], capture_output=True, text=True, check=True, timeout=XRANDR_TIMEOUT_SECONDS
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.error(f"Error accessing xrandr: {e}")
        return []

    return re.findall(r'^(\S+)\s+connected', result.stdout, re.MULTILINE)


class XrandrGammaSink:
    """
    Applies configurations with `xrandr --gamma`.

    Only calls xrandr when the rounded gamma actually changes, since the
    engine pushes a configuration every tick.
    """

    def __init__(self, displays: Optional[list[str]] = None):
        self.displays = displays if displays is not None else get_connected_displays()
        self._last_gamma: Optional[str] = None

        if not self.displays:
            logger.warning("No connected displays found, gamma changes will be skipped")
        else:
            logger.info(f"Gamma output on displays: {', '.join(self.displays)}")

    def apply_configuration(self, configuration: ColorConfiguration):
        r, g, b = configuration_to_gamma(configuration)
        gamma_value = f"{r:.4f}:{g:.4f}:{b:.4f}"

        if gamma_value == self._last_gamma:
            return

        for display in self.displays:
            cmd = ['xrandr', '--output', display, '--gamma', gamma_value]
            try:
                subprocess.run(cmd, check=True, capture_output=True, timeout=XRANDR_TIMEOUT_SECONDS)
            except subprocess.CalledProcessError as e:
                logger.warning(f"Failed to set gamma for {display}: {e.stderr.decode().strip()}")
                return
            except subprocess.TimeoutExpired:
                logger.warning(f"xrandr timed out setting gamma for {display}")
                return
            except OSError as e:
                logger.error(f"Unexpected error setting gamma for {display}: {e}")
                return

        self._last_gamma = gamma_value
        logger.debug(f"Gamma set to {gamma_value} ({configuration.temperature:.0f}K)")

    def reset(self):
        """Restore neutral gamma on all displays."""
        self.apply_configuration(ColorConfiguration(temperature=6500.0, brightness=1.0))
