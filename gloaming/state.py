"""
Activity state for the color cycle.

Tracks whether the cycle is enabled, temporarily disabled, paused by the
foreground application, or running a preview, and classifies the
resulting CycleState.
"""

from datetime import timedelta
from enum import Enum
from typing import Callable, Optional, Protocol

from gloaming.color import ColorConfiguration
from gloaming.logger import logger
from gloaming.settings import Settings
from gloaming.timers import DelayedAction, schedule_delayed


class CycleState(str, Enum):
    """Cycle classification enumeration."""
    DAY = "DAY"
    NIGHT = "NIGHT"
    TRANSITION = "TRANSITION"
    PAUSED = "PAUSED"
    DISABLED = "DISABLED"


def classify_cycle_state(
    current: ColorConfiguration,
    target: ColorConfiguration,
    adjusted_day: ColorConfiguration,
    adjusted_night: ColorConfiguration,
    is_enabled: bool,
    is_paused: bool,
) -> CycleState:
    """
    Classify the cycle. Checks run in priority order.

    A configuration that matches neither the day nor the night configuration
    (e.g. resting mid-blend with smoothing off) is reported as TRANSITION.
    """
    if current != target:
        return CycleState.TRANSITION
    if not is_enabled:
        return CycleState.DISABLED
    if is_paused:
        return CycleState.PAUSED
    if current == adjusted_day:
        return CycleState.DAY
    if current == adjusted_night:
        return CycleState.NIGHT
    return CycleState.TRANSITION


class ForegroundApplicationService(Protocol):
    def is_foreground_full_screen(self) -> bool: ...

    def try_get_foreground_application(self) -> Optional[str]: ...


def compute_is_paused(settings: Settings, foreground: ForegroundApplicationService) -> bool:
    """Pause while a full-screen or whitelisted application has focus."""

    def is_paused_by_full_screen() -> bool:
        return settings.is_pause_when_full_screen_enabled and foreground.is_foreground_full_screen()

    def is_paused_by_whitelisted_application() -> bool:
        if not settings.is_application_whitelist_enabled or not settings.whitelisted_applications:
            return False
        application = foreground.try_get_foreground_application()
        return application is not None and application.lower() in settings.whitelisted_applications

    return is_paused_by_full_screen() or is_paused_by_whitelisted_application()


Scheduler = Callable[[float, Callable[[], None]], DelayedAction]


class ActivityState:
    """
    Enabled / paused / preview flags plus the deferred re-enable timer.

    At most one deferred re-enable is pending. Enabling manually cancels it.
    Callers serialize access (the engine holds its lock around every call).
    """

    def __init__(self, scheduler: Scheduler = schedule_delayed):
        self.scheduler = scheduler

        self.is_enabled: bool = True
        self.is_paused: bool = False
        self.is_cycle_preview_enabled: bool = False

        self._pending_enable: Optional[DelayedAction] = None

    @property
    def is_active(self) -> bool:
        return (self.is_enabled and not self.is_paused) or self.is_cycle_preview_enabled

    @property
    def is_temporarily_disabled(self) -> bool:
        return self._pending_enable is not None and self._pending_enable.is_pending

    def _set_enabled(self, value: bool):
        if value:
            self.cancel_pending_enable()

        if value != self.is_enabled:
            self.is_enabled = value
            logger.info(f"Cycle {'enabled' if value else 'disabled'}")

    def enable(self):
        self._set_enabled(True)

    def disable(self):
        self._set_enabled(False)

    def toggle(self):
        self._set_enabled(not self.is_enabled)

    def disable_temporarily(self, duration: timedelta):
        """Disable now and re-enable once duration has elapsed."""
        self.cancel_pending_enable()

        registration: Optional[DelayedAction] = None

        def enable_if_current():
            # A cancel can race with the timer thread; only the live registration may enable
            if self._pending_enable is registration:
                self._pending_enable = None
                self._set_enabled(True)

        registration = self.scheduler(max(0.0, duration.total_seconds()), enable_if_current)
        self._pending_enable = registration
        self._set_enabled(False)

        logger.info(f"Cycle disabled temporarily for {duration}")

    def cancel_pending_enable(self):
        if self._pending_enable is not None:
            self._pending_enable.cancel()
            self._pending_enable = None
            logger.debug("Pending re-enable cancelled")
