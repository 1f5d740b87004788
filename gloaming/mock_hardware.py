"""
Mock collaborators for running without an X display.

Enable mock mode by setting MOCK_MODE=true in .env

Features:
- Mock gamma sink that logs and records configurations
- Mock foreground application with settable full-screen flag / identity
- Compatible interface with the xrandr / xprop implementations
"""

import threading
from typing import Optional

from gloaming.color import ColorConfiguration
from gloaming.logger import logger


class MockGammaSink:
    """
    Mock gamma sink.

    Drop-in replacement for gloaming.gamma.XrandrGammaSink when MOCK_MODE=true
    """

    def __init__(self, history_size: int = 1000):
        self.history_size = history_size
        self.applied: list[ColorConfiguration] = []
        self.lock = threading.Lock()
        logger.info("[MOCK] Gamma sink ready (mock mode)")

    @property
    def last(self) -> Optional[ColorConfiguration]:
        with self.lock:
            return self.applied[-1] if self.applied else None

    def apply_configuration(self, configuration: ColorConfiguration):
        with self.lock:
            changed = not self.applied or self.applied[-1] != configuration
            self.applied.append(configuration)
            if len(self.applied) > self.history_size:
                del self.applied[0]

        # Only log actual changes, the engine pushes every tick
        if changed:
            logger.debug(
                f"[MOCK] Gamma update: {configuration.temperature:.0f}K, "
                f"brightness={configuration.brightness:.2f}"
            )

    def reset(self):
        self.apply_configuration(ColorConfiguration(temperature=6500.0, brightness=1.0))


class MockForegroundApplication:
    """
    Mock foreground application service.

    Drop-in replacement for gloaming.foreground.X11ForegroundApplication
    """

    def __init__(self, full_screen: bool = False, application: Optional[str] = None):
        self.full_screen = full_screen
        self.application = application

    def set_foreground(self, application: Optional[str], full_screen: bool = False):
        logger.info(f"[MOCK] Foreground application: {application} (full_screen={full_screen})")
        self.application = application
        self.full_screen = full_screen

    def is_foreground_full_screen(self) -> bool:
        return self.full_screen

    def try_get_foreground_application(self) -> Optional[str]:
        return self.application
