"""
HTTP API for the color cycle.

IMPORTANT:
- Must run with ONE worker (the engine owns the display gamma)
- Needs access to the X display (DISPLAY set) unless MOCK_MODE=true
"""

from fastapi import FastAPI, HTTPException, APIRouter
from pydantic import BaseModel, Field
from typing import Literal, Optional
from contextlib import asynccontextmanager
import asyncio
from datetime import timedelta

from gloaming.color import ColorConfiguration
from gloaming.config import LOG_LEVEL, MOCK_MODE, MQTT_ENABLED
from gloaming.engine import CycleEngine
from gloaming.hotkeys import HotKeyRegistry
from gloaming.logger import logger
from gloaming.mqtt_client import MQTTService
from gloaming.settings import SettingsService, load_settings
from gloaming.solar_time import Location, TimeOfDay

# Conditional imports based on MOCK_MODE
if MOCK_MODE:
    logger.info("🎭 MOCK MODE ENABLED - Using simulated display")
    from gloaming.mock_hardware import MockGammaSink as GammaSink
    from gloaming.mock_hardware import MockForegroundApplication as ForegroundApplication
else:
    from gloaming.gamma import XrandrGammaSink as GammaSink
    from gloaming.foreground import X11ForegroundApplication as ForegroundApplication


# ============================================================================
# Collaborators and engine (engine is created per lifespan)
# ============================================================================

settings_service = SettingsService(load_settings())
hot_keys = HotKeyRegistry()
gamma_sink = GammaSink()
foreground = ForegroundApplication()

engine: Optional[CycleEngine] = None
mqtt_service: Optional[MQTTService] = None

# Global event loop reference (set during lifespan startup)
main_event_loop: Optional[asyncio.AbstractEventLoop] = None


def get_engine() -> CycleEngine:
    if engine is None:
        raise HTTPException(status_code=503, detail="Cycle engine not running")
    return engine


def schedule_async_task(coro):
    """
    Schedule an async coroutine from a synchronous context (e.g., engine thread).

    Uses asyncio.run_coroutine_threadsafe() to schedule the coroutine in the main event loop.
    """
    if main_event_loop and not main_event_loop.is_closed():
        try:
            asyncio.run_coroutine_threadsafe(coro, main_event_loop)
        except Exception as e:
            coro.close()
            logger.error(f"Failed to schedule async task: {e}")
    else:
        coro.close()
        logger.warning("Cannot schedule async task: main event loop not set")


# ============================================================================
# MQTT Command Bridge
# ============================================================================

async def execute_command(command: str):
    """
    Bridge MQTT commands to engine actions.

    Args:
        command: One of gloaming.mqtt_client.COMMANDS
    """
    cycle = get_engine()
    actions = {
        "ON": cycle.enable,
        "OFF": cycle.disable,
        "TOGGLE": cycle.toggle,
        "PREVIEW": cycle.enable_cycle_preview,
        "RESET_OFFSET": cycle.reset_configuration_offset,
        "DISABLE_UNTIL_SUNRISE": cycle.disable_temporarily_until_sunrise,
    }

    action = actions.get(command)
    if action is None:
        logger.warning(f"Unknown command: {command}")
        return

    logger.info(f"MQTT command: {command}")
    await asyncio.to_thread(action)


def _publish_status(status: dict):
    if mqtt_service:
        schedule_async_task(mqtt_service.publish_state(status=status))


# ============================================================================
# FastAPI Lifespan
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Starts the cycle engine (and MQTT service if enabled) on startup,
    stops them and restores neutral gamma on shutdown.
    """
    global engine, mqtt_service, main_event_loop
    main_event_loop = asyncio.get_running_loop()

    logger.info("Gloaming starting up")
    logger.info(f"Configuration: MOCK_MODE={MOCK_MODE}, LOG_LEVEL={LOG_LEVEL}, MQTT_ENABLED={MQTT_ENABLED}")

    engine = CycleEngine(
        settings_service=settings_service,
        gamma_sink=gamma_sink,
        hot_key_registrar=hot_keys,
        foreground=foreground,
    )
    engine.on_view_ready()

    mqtt_task = None
    if MQTT_ENABLED:
        mqtt_service = MQTTService(execute_command, engine.get_status)
        engine.add_status_listener(_publish_status)
        mqtt_task = asyncio.create_task(mqtt_service.start())
        logger.info("MQTT service started as background task")

    yield

    logger.info("Starting graceful shutdown...")

    if mqtt_task:
        logger.info("Stopping MQTT service...")
        await mqtt_service.stop()
        mqtt_task.cancel()
        try:
            await mqtt_task
        except asyncio.CancelledError:
            logger.info("MQTT service stopped")
        mqtt_service = None

    engine.close()
    engine = None

    try:
        logger.info("Restoring neutral gamma")
        gamma_sink.reset()
    except Exception:
        logger.error("Failed to restore gamma during shutdown", exc_info=True)

    logger.info("Shutdown complete")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Gloaming API",
    lifespan=lifespan,
    redoc_url=None,
    docs_url="/docs"
)

cycle_router = APIRouter(
    prefix="/cycle",
    tags=["Color Cycle"]
)


# ------------------------------------------------------------------

class DisableTemporarilyRequest(BaseModel):
    minutes: float = Field(..., gt=0, le=24 * 60, description="Minutes until the cycle re-enables")


class SettingsUpdateRequest(BaseModel):
    latitude: Optional[float] = Field(None, ge=-90, le=90, description="Latitude (-90 to 90)")
    longitude: Optional[float] = Field(None, ge=-180, le=180, description="Longitude (-180 to 180)")
    is_manual_sunrise_sunset_enabled: Optional[bool] = None
    manual_sunrise: Optional[str] = Field(None, description="HH:MM or HH:MM:SS")
    manual_sunset: Optional[str] = Field(None, description="HH:MM or HH:MM:SS")
    day_temperature: Optional[float] = Field(None, ge=500, le=20000, description="Day temperature (K)")
    day_brightness: Optional[float] = Field(None, ge=0.1, le=1.0, description="Day brightness (0.1-1.0)")
    night_temperature: Optional[float] = Field(None, ge=500, le=20000, description="Night temperature (K)")
    night_brightness: Optional[float] = Field(None, ge=0.1, le=1.0, description="Night brightness (0.1-1.0)")
    transition_duration_minutes: Optional[float] = Field(None, ge=0, le=12 * 60)
    transition_offset_minutes: Optional[float] = Field(None, ge=-12 * 60, le=12 * 60)
    is_smoothing_enabled: Optional[bool] = None
    is_default_to_day_configuration_enabled: Optional[bool] = None
    is_pause_when_full_screen_enabled: Optional[bool] = None
    is_application_whitelist_enabled: Optional[bool] = None
    whitelisted_applications: Optional[list[str]] = None


def _parse_time_field(name: str, value: str) -> TimeOfDay:
    try:
        return TimeOfDay.parse(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid {name}: {value!r}")


def _action_result(cycle: CycleEngine) -> dict:
    return {
        "cycle_state": cycle.cycle_state.value,
        "is_enabled": cycle.is_enabled,
        "is_temporarily_disabled": cycle.is_temporarily_disabled,
        "is_cycle_preview_enabled": cycle.is_cycle_preview_enabled,
        "temperature_offset": cycle.temperature_offset,
        "brightness_offset": cycle.brightness_offset,
    }


# ------------------------------------------------------------------
# State
# ------------------------------------------------------------------

@cycle_router.get("/state")
async def get_state():
    """
    Get current cycle state.

    Includes instant, sunrise/sunset, transition boundaries, current/target
    configurations, offsets and activity flags.
    """
    cycle = get_engine()
    try:
        return cycle.get_status()
    except Exception as e:
        logger.error("Failed to get state", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


# ------------------------------------------------------------------
# Enable / disable
# ------------------------------------------------------------------

@cycle_router.post("/enable")
async def enable():
    cycle = get_engine()
    await asyncio.to_thread(cycle.enable)
    return _action_result(cycle)


@cycle_router.post("/disable")
async def disable():
    cycle = get_engine()
    await asyncio.to_thread(cycle.disable)
    return _action_result(cycle)


@cycle_router.post("/toggle")
async def toggle():
    cycle = get_engine()
    await asyncio.to_thread(cycle.toggle)
    return _action_result(cycle)


@cycle_router.post("/disable-temporarily")
async def disable_temporarily(req: DisableTemporarilyRequest):
    """Disable the cycle and re-enable it automatically after req.minutes."""
    cycle = get_engine()
    await asyncio.to_thread(cycle.disable_temporarily, timedelta(minutes=req.minutes))
    return _action_result(cycle)


@cycle_router.post("/disable-until-sunrise")
async def disable_until_sunrise():
    cycle = get_engine()
    await asyncio.to_thread(cycle.disable_temporarily_until_sunrise)
    return _action_result(cycle)


# ------------------------------------------------------------------
# Cycle preview
# ------------------------------------------------------------------

@cycle_router.post("/preview/enable")
async def enable_preview():
    cycle = get_engine()
    await asyncio.to_thread(cycle.enable_cycle_preview)
    return _action_result(cycle)


@cycle_router.post("/preview/disable")
async def disable_preview():
    cycle = get_engine()
    await asyncio.to_thread(cycle.disable_cycle_preview)
    return _action_result(cycle)


# ------------------------------------------------------------------
# Offsets
# ------------------------------------------------------------------

@cycle_router.post("/offset/reset")
async def reset_offset():
    cycle = get_engine()
    await asyncio.to_thread(cycle.reset_configuration_offset)
    return _action_result(cycle)


@cycle_router.post("/offset/{field}/{direction}")
async def adjust_offset(
    field: Literal["temperature", "brightness"],
    direction: Literal["increase", "decrease"],
):
    """
    Nudge the temperature or brightness offset by one step.

    Returns "changed": false when the target is already at its range limit.
    """
    cycle = get_engine()
    action = getattr(cycle, f"{direction}_{field}_offset")
    changed = await asyncio.to_thread(action)
    return {"changed": changed, **_action_result(cycle)}


# ------------------------------------------------------------------
# Hotkeys
# ------------------------------------------------------------------

@cycle_router.get("/hotkeys")
async def list_hotkeys():
    return {"bindings": hot_keys.get_bindings()}


@cycle_router.post("/hotkeys/{binding}")
async def trigger_hotkey(binding: str):
    """Fire the action bound to a key combination (e.g. 'ctrl+alt+l')."""
    get_engine()
    triggered = await asyncio.to_thread(hot_keys.trigger, binding)
    if not triggered:
        raise HTTPException(status_code=404, detail=f"No action bound to '{binding}'")
    return {"binding": binding, "triggered": True}


# ------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------

@cycle_router.put("/settings")
async def update_settings(req: SettingsUpdateRequest):
    """
    Update settings in memory and notify the engine.

    Only fields present in the request are changed.
    """
    current = settings_service.settings
    changes = {}

    if (req.latitude is None) != (req.longitude is None):
        raise HTTPException(status_code=422, detail="latitude and longitude must be set together")
    if req.latitude is not None:
        changes["location"] = Location(latitude=req.latitude, longitude=req.longitude)

    if req.manual_sunrise is not None:
        changes["manual_sunrise"] = _parse_time_field("manual_sunrise", req.manual_sunrise)
    if req.manual_sunset is not None:
        changes["manual_sunset"] = _parse_time_field("manual_sunset", req.manual_sunset)

    if req.day_temperature is not None or req.day_brightness is not None:
        changes["day_configuration"] = ColorConfiguration(
            temperature=req.day_temperature if req.day_temperature is not None else current.day_configuration.temperature,
            brightness=req.day_brightness if req.day_brightness is not None else current.day_configuration.brightness,
        )
    if req.night_temperature is not None or req.night_brightness is not None:
        changes["night_configuration"] = ColorConfiguration(
            temperature=req.night_temperature if req.night_temperature is not None else current.night_configuration.temperature,
            brightness=req.night_brightness if req.night_brightness is not None else current.night_configuration.brightness,
        )

    if req.transition_duration_minutes is not None:
        changes["transition_duration"] = timedelta(minutes=req.transition_duration_minutes)
    if req.transition_offset_minutes is not None:
        changes["transition_offset"] = timedelta(minutes=req.transition_offset_minutes)

    for name in (
        "is_manual_sunrise_sunset_enabled",
        "is_smoothing_enabled",
        "is_default_to_day_configuration_enabled",
        "is_pause_when_full_screen_enabled",
        "is_application_whitelist_enabled",
    ):
        value = getattr(req, name)
        if value is not None:
            changes[name] = value

    if req.whitelisted_applications is not None:
        names = frozenset(name.strip().lower() for name in req.whitelisted_applications if name.strip())
        changes["whitelisted_applications"] = names or None

    try:
        await asyncio.to_thread(settings_service.save, current.updated(**changes))
    except Exception as e:
        logger.error("Failed to apply settings", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return {"updated": sorted(changes)}


# ============================================================================
# Register Routers
# ============================================================================

app.include_router(cycle_router)
