"""Tests for the cycle engine control loop."""

import threading
import time
from datetime import timedelta
from unittest.mock import Mock

import pytest

from gloaming.color import ColorConfiguration
from gloaming.engine import CycleEngine
from gloaming.settings import HotKeyBindings
from gloaming.solar_time import Location, TimeOfDay
from gloaming.state import CycleState

from conftest import DAY, NIGHT, make_settings


def tick(engine, times: int = 1):
    for _ in range(times):
        engine.tick()


class TestTick:
    """Tests for the fast tick."""

    def test_day_at_noon(self, engine, gamma_sink):
        tick(engine)
        assert engine.current_configuration == DAY
        assert engine.cycle_state == CycleState.DAY
        assert gamma_sink.last == DAY

    def test_night_at_midnight(self, engine, clock, gamma_sink):
        clock.set(23)
        tick(engine)
        assert engine.current_configuration == NIGHT
        assert engine.cycle_state == CycleState.NIGHT
        assert gamma_sink.last == NIGHT

    def test_blend_in_window(self, engine, clock):
        """Should rest mid-blend at sunrise with smoothing off."""
        clock.set(6)
        tick(engine)
        assert engine.current_configuration.temperature == pytest.approx(5250)
        assert engine.current_configuration.brightness == pytest.approx(0.9)
        assert engine.cycle_state == CycleState.TRANSITION

    def test_instant_tracks_clock(self, engine, clock):
        clock.advance(timedelta(minutes=7))
        tick(engine)
        assert engine.instant == clock()

    def test_pushes_every_tick(self, engine, gamma_sink):
        tick(engine, 3)
        assert len(gamma_sink.applied) == 3

    def test_uses_location_when_set(self, settings_service, engine):
        settings_service.save(make_settings(location=Location(51.5074, -0.1278)))
        tick(engine)
        assert 3 <= engine.solar_times.sunrise.hour <= 4

    def test_manual_override_beats_location(self, settings_service, engine):
        settings_service.save(make_settings(
            location=Location(51.5074, -0.1278),
            is_manual_sunrise_sunset_enabled=True,
        ))
        assert engine.solar_times.sunrise == TimeOfDay.of(6)
        assert engine.sunrise_start == TimeOfDay.of(5, 30)
        assert engine.sunset_end == TimeOfDay.of(18, 30)


class TestSmoothing:
    """Tests for gradual configuration changes."""

    @pytest.fixture
    def smooth(self, settings_service, engine, clock):
        settings_service.save(make_settings(is_smoothing_enabled=True, smoothing_max_steps=10))
        clock.set(23)
        tick(engine, 10)
        assert engine.current_configuration == NIGHT
        return engine

    def test_moves_gradually(self, smooth, clock):
        clock.set(12)
        tick(smooth)
        current = smooth.current_configuration
        assert NIGHT.temperature < current.temperature < DAY.temperature

    def test_transition_reported_before_disabled(self, smooth):
        """Should report TRANSITION while fading out after disable."""
        smooth.disable()
        tick(smooth)
        assert smooth.cycle_state == CycleState.TRANSITION

        tick(smooth, 10)
        assert smooth.current_configuration == ColorConfiguration.DEFAULT
        assert smooth.cycle_state == CycleState.DISABLED

    def test_preview_bypasses_smoothing(self, smooth):
        smooth.enable_cycle_preview()
        tick(smooth)
        assert smooth.current_configuration == smooth.target_configuration


class TestPause:
    """Tests for the slow pause tick."""

    def test_full_screen_pauses(self, settings_service, engine, foreground):
        settings_service.save(make_settings(is_pause_when_full_screen_enabled=True))
        foreground.set_foreground("mpv", full_screen=True)

        engine.update_is_paused()
        tick(engine)

        assert engine.is_paused is True
        assert engine.is_active is False
        assert engine.current_configuration == ColorConfiguration.DEFAULT
        assert engine.cycle_state == CycleState.PAUSED

    def test_resumes(self, settings_service, engine, foreground):
        settings_service.save(make_settings(is_pause_when_full_screen_enabled=True))
        foreground.set_foreground("mpv", full_screen=True)
        engine.update_is_paused()
        foreground.set_foreground("mpv", full_screen=False)
        engine.update_is_paused()
        assert engine.is_paused is False

    def test_whitelisted_application_pauses(self, settings_service, engine, foreground, clock):
        settings_service.save(make_settings(
            is_application_whitelist_enabled=True,
            whitelisted_applications=frozenset({"gimp"}),
            is_default_to_day_configuration_enabled=True,
        ))
        foreground.set_foreground("gimp")
        clock.set(23)

        engine.update_is_paused()
        tick(engine)

        assert engine.is_paused is True
        assert engine.current_configuration == DAY

    def test_foreground_query_does_not_block_tick(self, settings_service, engine, gamma_sink):
        """Should keep ticking while a slow foreground query is in progress."""
        settings_service.save(make_settings(is_pause_when_full_screen_enabled=True))
        entered = threading.Event()
        release = threading.Event()

        def slow_full_screen():
            entered.set()
            release.wait(timeout=5.0)
            return True

        engine.foreground = Mock(is_foreground_full_screen=slow_full_screen)
        pause_check = threading.Thread(target=engine.update_is_paused)
        pause_check.start()
        try:
            assert entered.wait(timeout=2.0)

            ticker = threading.Thread(target=engine.tick)
            ticker.start()
            ticker.join(timeout=1.0)
            assert not ticker.is_alive()
            assert gamma_sink.last == DAY
        finally:
            release.set()
            pause_check.join(timeout=2.0)

        assert engine.is_paused is True


class TestPreview:
    """Tests for cycle preview."""

    def test_preview_runs_one_day(self, engine, clock):
        """Should reach real time + 1 day and then stop itself."""
        engine.enable_cycle_preview()

        tick(engine, 287)
        assert engine.is_cycle_preview_enabled is True

        tick(engine)
        assert engine.is_cycle_preview_enabled is False
        assert engine.instant == clock() + timedelta(days=1)

        tick(engine)
        assert engine.instant == clock()

    def test_preview_active_while_disabled(self, engine, clock):
        clock.set(23)
        engine.disable()
        engine.enable_cycle_preview()
        assert engine.is_active is True

    def test_disable_preview_returns_to_real_time(self, engine, clock):
        engine.enable_cycle_preview()
        tick(engine, 10)
        engine.disable_cycle_preview()
        tick(engine)
        assert engine.instant == clock()


class TestActions:
    """Tests for enable/disable and offset actions."""

    def test_disable_returns_default(self, engine, clock):
        clock.set(23)
        engine.disable()
        tick(engine)
        assert engine.current_configuration == ColorConfiguration.DEFAULT
        assert engine.cycle_state == CycleState.DISABLED

    def test_toggle(self, engine):
        engine.toggle()
        assert engine.is_enabled is False
        engine.toggle()
        assert engine.is_enabled is True

    def test_disable_temporarily(self, engine, scheduler):
        engine.disable_temporarily(timedelta(minutes=10))
        assert engine.is_enabled is False
        assert engine.is_temporarily_disabled is True
        assert scheduler.last.delay == 600

        scheduler.last.fire()

        assert engine.is_enabled is True
        assert engine.is_temporarily_disabled is False

    def test_enable_cancels_temporary_disable(self, engine, scheduler):
        engine.disable_temporarily(timedelta(minutes=10))
        engine.enable()
        assert scheduler.last.cancelled is True
        assert engine.is_temporarily_disabled is False

    def test_disable_until_sunrise(self, engine, scheduler):
        """Should wait until tomorrow's 06:00 from noon."""
        engine.disable_temporarily_until_sunrise()
        assert scheduler.last.delay == pytest.approx(18 * 3600)
        assert engine.is_enabled is False

    def test_disable_until_sunrise_uses_real_time(self, engine, scheduler, clock):
        """Should ignore the simulated preview instant."""
        clock.set(4)
        engine.enable_cycle_preview()
        tick(engine, 100)
        engine.disable_temporarily_until_sunrise()
        assert scheduler.last.delay == pytest.approx(2 * 3600)

    def test_offsets_shift_target(self, engine):
        assert engine.increase_temperature_offset() is True
        assert engine.decrease_brightness_offset() is True
        tick(engine)

        assert engine.current_configuration.temperature == 6700
        assert engine.current_configuration.brightness == pytest.approx(0.95)
        assert engine.cycle_state == CycleState.DAY
        assert engine.can_reset_configuration_offset is True

    def test_offset_noop_at_limit(self, engine):
        """Should ignore a brightness increase at full brightness."""
        assert engine.increase_brightness_offset() is False
        assert engine.brightness_offset == 0
        assert engine.can_reset_configuration_offset is False

    def test_explicit_offset_delta(self, engine):
        engine.decrease_temperature_offset(250)
        assert engine.temperature_offset == -250

    def test_offsets_ignored_when_inactive(self, engine):
        engine.decrease_temperature_offset()
        engine.disable()
        assert engine.target_configuration == ColorConfiguration.DEFAULT

    def test_reset_offset(self, engine):
        engine.increase_temperature_offset()
        engine.reset_configuration_offset()
        assert engine.temperature_offset == 0
        assert engine.can_reset_configuration_offset is False


class TestSettingsAndHotKeys:
    """Tests for settings changes and hotkey binding."""

    def test_save_applies_immediately(self, settings_service, engine, gamma_sink):
        new_day = ColorConfiguration(5000, 0.9)
        settings_service.save(make_settings(day_configuration=new_day))
        assert gamma_sink.last == new_day

    def test_save_rebinds_hot_keys(self, settings_service, engine, hot_keys):
        settings_service.save(make_settings(hot_keys=HotKeyBindings(toggle="Ctrl+Alt+T")))
        assert hot_keys.get_bindings() == ["alt+ctrl+t"]

        assert hot_keys.trigger("ctrl+alt+t") is True
        assert engine.is_enabled is False

        settings_service.save(make_settings(hot_keys=HotKeyBindings(reset_configuration_offset="ctrl+r")))
        assert hot_keys.get_bindings() == ["ctrl+r"]

    def test_on_view_ready_registers_hot_keys(self, settings_service, engine, hot_keys):
        settings_service._settings = make_settings(
            hot_keys=HotKeyBindings(increase_temperature_offset="ctrl+up")
        )
        engine.on_view_ready()

        hot_keys.trigger("ctrl+up")
        assert engine.temperature_offset == 100


class TestStatus:
    """Tests for status reporting."""

    def test_get_status(self, engine):
        tick(engine)
        status = engine.get_status()

        assert status["cycle_state"] == "DAY"
        assert status["sunrise"] == "06:00:00"
        assert status["sunset"] == "18:00:00"
        assert status["boundaries"]["sunrise_start"] == "05:30:00"
        assert status["day_progress"] == 1.0
        assert status["current_configuration"] == {"temperature": 6600.0, "brightness": 1.0}
        assert status["is_temporarily_disabled"] is False

    def test_listener_deduplicates(self, engine):
        listener = Mock()
        engine.add_status_listener(listener)

        engine.update_is_paused()
        engine.update_is_paused()
        assert listener.call_count == 1

        engine.disable()
        engine.update_is_paused()
        assert listener.call_count == 2

    def test_listener_forced_on_save(self, settings_service, engine):
        listener = Mock()
        engine.add_status_listener(listener)
        engine.update_is_paused()

        settings_service.save(make_settings())
        assert listener.call_count == 2

    def test_listener_error_is_contained(self, engine):
        engine.add_status_listener(Mock(side_effect=RuntimeError("boom")))
        engine.update_is_paused()


class TestClose:
    """Tests for engine shutdown."""

    def test_close_cancels_pending_enable(self, engine, scheduler):
        engine.disable_temporarily(timedelta(minutes=10))
        engine.close()
        assert scheduler.last.cancelled is True

    def test_late_callback_ignored_after_close(self, engine, scheduler):
        """Should not re-enable from a callback that raced with close()."""
        engine.disable_temporarily(timedelta(minutes=10))
        action = scheduler.last.action
        engine.close()

        action()
        assert engine.is_enabled is False

    def test_settings_ignored_after_close(self, settings_service, engine, gamma_sink):
        engine.close()
        settings_service.save(make_settings(day_configuration=ColorConfiguration(5000, 0.9)))
        assert gamma_sink.applied == []

    def test_tick_ignored_after_close(self, engine, gamma_sink):
        engine.close()
        tick(engine)
        engine.update_is_paused()
        assert gamma_sink.applied == []

    def test_close_unregisters_hot_keys(self, settings_service, engine, hot_keys):
        settings_service.save(make_settings(hot_keys=HotKeyBindings(toggle="ctrl+t")))
        engine.close()
        assert hot_keys.get_bindings() == []

    def test_close_is_idempotent(self, engine):
        engine.close()
        engine.close()

    def test_context_manager(self, settings_service, gamma_sink, hot_keys, foreground, clock, scheduler):
        with CycleEngine(settings_service, gamma_sink, hot_keys, foreground, clock=clock, scheduler=scheduler) as cycle:
            cycle.disable_temporarily(timedelta(minutes=1))
        assert scheduler.last.cancelled is True


class TestTimers:
    """Runs the real periodic timers briefly."""

    def test_on_view_ready_starts_ticking(self, settings_service, gamma_sink, hot_keys, foreground, clock):
        engine = CycleEngine(
            settings_service,
            gamma_sink,
            hot_keys,
            foreground,
            clock=clock,
            update_interval=0.01,
            pause_check_interval=0.01,
        )
        engine.on_view_ready()
        try:
            deadline = time.monotonic() + 2.0
            while len(gamma_sink.applied) < 3 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            engine.close()

        assert len(gamma_sink.applied) >= 3
        assert gamma_sink.last == DAY

        count = len(gamma_sink.applied)
        time.sleep(0.05)
        assert len(gamma_sink.applied) == count

    def test_close_during_start_stops_timers(self, settings_service, gamma_sink, foreground, clock):
        """Should leave no timer running when close() arrives while starting."""
        closer: list[threading.Thread] = []

        class ClosingRegistrar:
            def register_hot_key(self, binding, action):
                pass

            def unregister_all(self):
                if not closer:
                    closer.append(threading.Thread(target=engine.close))
                    closer[0].start()

        engine = CycleEngine(
            settings_service,
            gamma_sink,
            ClosingRegistrar(),
            foreground,
            clock=clock,
            update_interval=0.01,
            pause_check_interval=0.01,
        )
        engine.on_view_ready()
        closer[0].join(timeout=5.0)

        assert engine._update_timer.is_running is False
        assert engine._pause_timer.is_running is False
