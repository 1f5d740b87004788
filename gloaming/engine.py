"""
Cycle engine: the periodic control loop.

Features:
- Fast tick: instant update, target computation, smoothing, gamma output
- Slow tick: pause recomputation from the foreground application
- Temporary disable with automatic re-enable
- Cycle preview (one simulated day, fast-forwarded)
- Hotkey actions re-bound whenever settings are saved
- Thread-safe operation (one lock around every tick and action)
"""

import threading
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Callable, Optional, Protocol

from gloaming.color import ColorConfiguration
from gloaming.config import UPDATE_INTERVAL_MS, PAUSE_CHECK_INTERVAL_MS
from gloaming.cycle import target_configuration, transition_progress
from gloaming.lighting_math import step_toward
from gloaming.logger import logger
from gloaming.offsets import OffsetManager
from gloaming.preview import PreviewClock
from gloaming.settings import Settings, SettingsService
from gloaming.solar_time import CycleBoundaries, SolarTimes, compute_boundaries, compute_solar_times
from gloaming.state import (
    ActivityState,
    CycleState,
    ForegroundApplicationService,
    Scheduler,
    classify_cycle_state,
    compute_is_paused,
)
from gloaming.timers import PeriodicTimer, schedule_delayed


class GammaSink(Protocol):
    def apply_configuration(self, configuration: ColorConfiguration) -> None: ...


class HotKeyRegistrar(Protocol):
    def register_hot_key(self, binding: str, action: Callable[[], None]) -> None: ...

    def unregister_all(self) -> None: ...


def local_now() -> datetime:
    """Current wall-clock time, timezone-aware in the local zone."""
    return datetime.now().astimezone()


class CycleEngine:
    """
    Owns the cycle's mutable state and its periodic updates.

    All read accessors are derived from the owned state on demand, so they
    are consistent whenever they are read between ticks.
    """

    def __init__(
        self,
        settings_service: SettingsService,
        gamma_sink: GammaSink,
        hot_key_registrar: HotKeyRegistrar,
        foreground: ForegroundApplicationService,
        clock: Callable[[], datetime] = local_now,
        scheduler: Scheduler = schedule_delayed,
        update_interval: float = UPDATE_INTERVAL_MS / 1000,
        pause_check_interval: float = PAUSE_CHECK_INTERVAL_MS / 1000,
    ):
        """
        Args:
            settings_service: Source of the settings snapshot
            gamma_sink: Receives the current configuration every fast tick
            hot_key_registrar: Binds key combinations to engine actions
            foreground: Answers full-screen / whitelist queries
            clock: Wall-clock source (timezone-aware)
            scheduler: Schedules the one-shot deferred re-enable
            update_interval: Fast tick period in seconds
            pause_check_interval: Slow tick period in seconds
        """
        self.settings_service = settings_service
        self.gamma_sink = gamma_sink
        self.hot_key_registrar = hot_key_registrar
        self.foreground = foreground
        self.clock = clock

        self._lock = threading.RLock()
        self._closed = False

        self.activity = ActivityState(
            scheduler=lambda delay, action: scheduler(delay, self._locked(action))
        )
        self.offsets = OffsetManager(lambda: self.target_configuration)
        self.preview_clock = PreviewClock()

        self._instant: datetime = clock()
        self._current_configuration = ColorConfiguration.DEFAULT

        self._update_timer = PeriodicTimer(update_interval, self.tick, name="CycleUpdate")
        self._pause_timer = PeriodicTimer(pause_check_interval, self.update_is_paused, name="PauseCheck")

        self._status_listeners: list[Callable[[dict[str, Any]], None]] = []
        self._last_status_summary: Optional[tuple] = None

        self._unsubscribe_settings = settings_service.subscribe(self._on_settings_saved)

    def _locked(self, action: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap an externally triggered callback: take the lock, skip after close()."""

        @wraps(action)
        def wrapper(*args, **kwargs):
            with self._lock:
                if self._closed:
                    return None
                return action(*args, **kwargs)

        return wrapper

    # ------------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self.settings_service.settings

    @property
    def instant(self) -> datetime:
        return self._instant

    @property
    def is_enabled(self) -> bool:
        return self.activity.is_enabled

    @property
    def is_paused(self) -> bool:
        return self.activity.is_paused

    @property
    def is_cycle_preview_enabled(self) -> bool:
        return self.activity.is_cycle_preview_enabled

    @property
    def is_active(self) -> bool:
        return self.activity.is_active

    @property
    def is_temporarily_disabled(self) -> bool:
        return self.activity.is_temporarily_disabled

    @property
    def temperature_offset(self) -> float:
        return self.offsets.temperature_offset

    @property
    def brightness_offset(self) -> float:
        return self.offsets.brightness_offset

    @property
    def can_reset_configuration_offset(self) -> bool:
        return self.offsets.can_reset

    def _solar_times_at(self, instant: datetime) -> SolarTimes:
        settings = self.settings
        return compute_solar_times(
            settings.location,
            settings.manual_sunrise,
            settings.manual_sunset,
            settings.is_manual_sunrise_sunset_enabled,
            instant,
        )

    @property
    def solar_times(self) -> SolarTimes:
        return self._solar_times_at(self._instant)

    @property
    def boundaries(self) -> CycleBoundaries:
        settings = self.settings
        return compute_boundaries(
            self.solar_times,
            settings.transition_duration,
            settings.transition_offset,
        )

    @property
    def sunrise_start(self):
        return self.boundaries.sunrise_start

    @property
    def sunrise_end(self):
        return self.boundaries.sunrise_end

    @property
    def sunset_start(self):
        return self.boundaries.sunset_start

    @property
    def sunset_end(self):
        return self.boundaries.sunset_end

    @property
    def target_configuration(self) -> ColorConfiguration:
        """Interpolated configuration with offsets, or the inactive fallback."""
        with self._lock:
            settings = self.settings
            is_active = self.is_active

            target = target_configuration(
                self.boundaries,
                settings.day_configuration,
                settings.night_configuration,
                settings.transition_duration,
                settings.transition_offset,
                self._instant,
                is_active,
                settings.is_default_to_day_configuration_enabled,
            )

            return self.offsets.apply(target) if is_active else target

    @property
    def current_configuration(self) -> ColorConfiguration:
        return self._current_configuration

    @property
    def adjusted_day_configuration(self) -> ColorConfiguration:
        return self.offsets.apply(self.settings.day_configuration)

    @property
    def adjusted_night_configuration(self) -> ColorConfiguration:
        return self.offsets.apply(self.settings.night_configuration)

    @property
    def cycle_state(self) -> CycleState:
        with self._lock:
            return classify_cycle_state(
                current=self._current_configuration,
                target=self.target_configuration,
                adjusted_day=self.adjusted_day_configuration,
                adjusted_night=self.adjusted_night_configuration,
                is_enabled=self.is_enabled,
                is_paused=self.is_paused,
            )

    def get_status(self) -> dict[str, Any]:
        """
        Snapshot of the engine state.

        Returns:
            Dictionary with instant, solar times, boundaries, configurations,
            flags, offsets and cycle state
        """
        with self._lock:
            settings = self.settings
            solar_times = self.solar_times
            boundaries = self.boundaries

            return {
                "instant": self._instant.isoformat(),
                "cycle_state": self.cycle_state.value,
                "is_enabled": self.is_enabled,
                "is_paused": self.is_paused,
                "is_active": self.is_active,
                "is_cycle_preview_enabled": self.is_cycle_preview_enabled,
                "is_temporarily_disabled": self.is_temporarily_disabled,
                "sunrise": str(solar_times.sunrise),
                "sunset": str(solar_times.sunset),
                "boundaries": boundaries.to_dict(),
                "day_progress": transition_progress(boundaries, settings.transition_duration, self._instant),
                "temperature_offset": self.temperature_offset,
                "brightness_offset": self.brightness_offset,
                "can_reset_configuration_offset": self.can_reset_configuration_offset,
                "current_configuration": self._current_configuration.to_dict(),
                "target_configuration": self.target_configuration.to_dict(),
                "adjusted_day_configuration": self.adjusted_day_configuration.to_dict(),
                "adjusted_night_configuration": self.adjusted_night_configuration.to_dict(),
            }

    # ------------------------------------------------------------------------
    # Periodic updates
    # ------------------------------------------------------------------------

    def tick(self):
        """Fast tick: instant first, then configuration."""
        with self._lock:
            if self._closed:
                return
            self.update_instant()
            self.update_configuration()

    def update_instant(self):
        with self._lock:
            instant, still_previewing = self.preview_clock.advance(
                self._instant,
                self.clock(),
                self.activity.is_cycle_preview_enabled,
            )
            self._instant = instant

            if self.activity.is_cycle_preview_enabled and not still_previewing:
                self.activity.is_cycle_preview_enabled = False
                logger.info("Cycle preview completed")

    def update_configuration(self):
        with self._lock:
            settings = self.settings
            target = self.target_configuration

            is_smooth = settings.is_smoothing_enabled and not self.activity.is_cycle_preview_enabled
            if is_smooth:
                self._current_configuration = step_toward(
                    self._current_configuration,
                    target,
                    settings.smoothing_max_steps,
                    settings.smoothing_rate,
                )
            else:
                self._current_configuration = target

            self.gamma_sink.apply_configuration(self._current_configuration)

    def update_is_paused(self):
        """Slow tick: recompute the pause flag from the foreground application."""
        if self._closed:
            return

        # Foreground queries may shell out, so they run outside the lock.
        # Settings is an immutable snapshot.
        is_paused = compute_is_paused(self.settings, self.foreground)

        with self._lock:
            if self._closed:
                return

            if is_paused != self.activity.is_paused:
                logger.info(f"Cycle {'paused' if is_paused else 'resumed'} by foreground application")
            self.activity.is_paused = is_paused

        self._notify_status_listeners()

    # ------------------------------------------------------------------------
    # Status listeners
    # ------------------------------------------------------------------------

    def add_status_listener(self, callback: Callable[[dict[str, Any]], None]):
        """Call callback with get_status() whenever the visible state changes."""
        self._status_listeners.append(callback)

    def _notify_status_listeners(self, force: bool = False):
        if not self._status_listeners:
            return

        status = self.get_status()
        current = status["current_configuration"]
        summary = (
            status["cycle_state"],
            status["is_enabled"],
            status["is_paused"],
            status["is_cycle_preview_enabled"],
            status["is_temporarily_disabled"],
            status["temperature_offset"],
            status["brightness_offset"],
            round(current["temperature"]),
            round(current["brightness"], 2),
        )

        if not force and summary == self._last_status_summary:
            return
        self._last_status_summary = summary

        for callback in list(self._status_listeners):
            try:
                callback(status)
            except Exception as e:
                logger.error(f"Status listener failed: {e}", exc_info=True)

    # ------------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------------

    def on_view_ready(self):
        """Start the periodic updates and bind hotkeys."""
        with self._lock:
            if self._closed:
                logger.warning("Cycle engine already closed, not starting")
                return
            self.register_hot_keys()

            # Started under the lock so a concurrent close() always sees them
            self._update_timer.start()
            self._pause_timer.start()

        logger.info("Cycle engine started")

    def _on_settings_saved(self, settings: Settings):
        with self._lock:
            if self._closed:
                return
            self.update_configuration()
            self.register_hot_keys()

        self._notify_status_listeners(force=True)

    def register_hot_keys(self):
        with self._lock:
            self.hot_key_registrar.unregister_all()

            hot_keys = self.settings.hot_keys
            bindings = [
                (hot_keys.toggle, self.toggle),
                (hot_keys.increase_temperature_offset, self.increase_temperature_offset),
                (hot_keys.decrease_temperature_offset, self.decrease_temperature_offset),
                (hot_keys.increase_brightness_offset, self.increase_brightness_offset),
                (hot_keys.decrease_brightness_offset, self.decrease_brightness_offset),
                (hot_keys.reset_configuration_offset, self.reset_configuration_offset),
            ]

            for binding, action in bindings:
                if binding:
                    self.hot_key_registrar.register_hot_key(binding, self._locked(action))

    def close(self):
        """Stop both ticks, cancel any pending re-enable, release collaborators."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self.activity.cancel_pending_enable()

        self._update_timer.stop()
        self._pause_timer.stop()
        self._unsubscribe_settings()

        try:
            self.hot_key_registrar.unregister_all()
        except Exception as e:
            logger.error(f"Failed to unregister hotkeys: {e}", exc_info=True)

        logger.info("Cycle engine closed")

    def __enter__(self) -> "CycleEngine":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------------

    def enable(self):
        with self._lock:
            self.activity.enable()

    def disable(self):
        with self._lock:
            self.activity.disable()

    def toggle(self):
        with self._lock:
            self.activity.toggle()

    def disable_temporarily(self, duration: timedelta):
        with self._lock:
            self.activity.disable_temporarily(duration)

    def disable_temporarily_until_sunrise(self):
        """Disable until the next real-world sunrise."""
        with self._lock:
            # Real time, not the (possibly simulated) instant
            now = self.clock()
            sunrise = self._solar_times_at(now).sunrise.next_after(now)
            self.activity.disable_temporarily(sunrise - now)

    def enable_cycle_preview(self):
        with self._lock:
            self.activity.is_cycle_preview_enabled = True
            logger.info("Cycle preview started")

    def disable_cycle_preview(self):
        with self._lock:
            self.activity.is_cycle_preview_enabled = False
            logger.info("Cycle preview stopped")

    def increase_temperature_offset(self, delta: Optional[float] = None) -> bool:
        with self._lock:
            return self.offsets.increase_temperature(delta or self.settings.temperature_offset_step)

    def decrease_temperature_offset(self, delta: Optional[float] = None) -> bool:
        with self._lock:
            return self.offsets.decrease_temperature(delta or self.settings.temperature_offset_step)

    def increase_brightness_offset(self, delta: Optional[float] = None) -> bool:
        with self._lock:
            return self.offsets.increase_brightness(delta or self.settings.brightness_offset_step)

    def decrease_brightness_offset(self, delta: Optional[float] = None) -> bool:
        with self._lock:
            return self.offsets.decrease_brightness(delta or self.settings.brightness_offset_step)

    def reset_configuration_offset(self):
        with self._lock:
            self.offsets.reset()
            logger.info("Configuration offset reset")
