"""Shared pytest fixtures for all tests."""

import os

# Run without an X display: must be set BEFORE any gloaming imports,
# gloaming.config reads the environment at import time
os.environ["MOCK_MODE"] = "true"
os.environ.setdefault("MQTT_ENABLED", "false")

import pytest
from datetime import datetime, timedelta, timezone

from gloaming.color import ColorConfiguration
from gloaming.engine import CycleEngine
from gloaming.hotkeys import HotKeyRegistry
from gloaming.mock_hardware import MockGammaSink, MockForegroundApplication
from gloaming.settings import Settings, SettingsService
from gloaming.solar_time import TimeOfDay


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, hour: int, minute: int = 0):
        self.now = self.now.replace(hour=hour, minute=minute, second=0, microsecond=0)

    def advance(self, delta: timedelta):
        self.now += delta


class FakeDelayedAction:
    """Stand-in for gloaming.timers.DelayedAction that fires on demand."""

    def __init__(self, delay: float, action):
        self.delay = delay
        self.action = action
        self.cancelled = False
        self.fired = False

    @property
    def is_pending(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Simulate the timer thread: a cancelled action never runs."""
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.action()


class FakeScheduler:
    def __init__(self):
        self.scheduled: list[FakeDelayedAction] = []

    def __call__(self, delay: float, action) -> FakeDelayedAction:
        delayed = FakeDelayedAction(delay, action)
        self.scheduled.append(delayed)
        return delayed

    @property
    def last(self) -> FakeDelayedAction:
        return self.scheduled[-1]


DAY = ColorConfiguration(temperature=6600.0, brightness=1.0)
NIGHT = ColorConfiguration(temperature=3900.0, brightness=0.8)


def make_settings(**overrides) -> Settings:
    """Manual 06:00 / 18:00 sun, one-hour transitions, no smoothing."""
    values = dict(
        location=None,
        manual_sunrise=TimeOfDay.of(6),
        manual_sunset=TimeOfDay.of(18),
        day_configuration=DAY,
        night_configuration=NIGHT,
        transition_duration=timedelta(hours=1),
        transition_offset=timedelta(0),
        is_smoothing_enabled=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def clock():
    """Wall clock fixed at noon UTC on 2024-06-01."""
    return FakeClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def settings_service():
    return SettingsService(make_settings())


@pytest.fixture
def gamma_sink():
    return MockGammaSink()


@pytest.fixture
def foreground():
    return MockForegroundApplication()


@pytest.fixture
def hot_keys():
    return HotKeyRegistry()


@pytest.fixture
def engine(settings_service, gamma_sink, hot_keys, foreground, clock, scheduler):
    """CycleEngine with fake clock/scheduler. Ticks are driven by the test."""
    cycle = CycleEngine(
        settings_service=settings_service,
        gamma_sink=gamma_sink,
        hot_key_registrar=hot_keys,
        foreground=foreground,
        clock=clock,
        scheduler=scheduler,
    )
    yield cycle
    cycle.close()
