"""
Home Assistant bridge over MQTT.

Announces a switch (cycle enabled) and a sensor (cycle state, full status
as attributes) through MQTT discovery, accepts plain-text commands on the
command topic and publishes the engine status whenever it changes.
Availability is tracked with a retained "online" message and an "offline"
last will. Lost connections are retried with exponential backoff.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import aiomqtt
from gloaming.config import (
    MQTT_ENABLED,
    MQTT_BROKER,
    MQTT_PORT,
    MQTT_USERNAME,
    MQTT_PASSWORD,
    MQTT_CLIENT_ID,
)
from gloaming.logger import logger


# Topics are namespaced by MQTT_CLIENT_ID so several machines can share a broker
TOPIC_SWITCH_CONFIG = f"homeassistant/switch/{MQTT_CLIENT_ID}/config"
TOPIC_SENSOR_CONFIG = f"homeassistant/sensor/{MQTT_CLIENT_ID}/config"

TOPIC_STATE = f"gloaming/{MQTT_CLIENT_ID}/state"
TOPIC_COMMAND = f"gloaming/{MQTT_CLIENT_ID}/command"
TOPIC_AVAILABILITY = f"gloaming/{MQTT_CLIENT_ID}/availability"

COMMANDS = ("ON", "OFF", "TOGGLE", "PREVIEW", "RESET_OFFSET", "DISABLE_UNTIL_SUNRISE")

RECONNECT_MIN_SECONDS = 5
RECONNECT_MAX_SECONDS = 60


def _device_info() -> dict:
    label = MQTT_CLIENT_ID.replace("-", " ").replace("_", " ").title()
    return {
        "identifiers": [f"gloaming_{MQTT_CLIENT_ID}"],
        "name": f"Gloaming ({label})",
    }


def get_switch_discovery_config() -> dict:
    """
    Switch entity mirroring is_enabled.

    Docs: https://www.home-assistant.io/integrations/switch.mqtt/
    """
    return {
        "name": "Color Cycle",
        "unique_id": f"gloaming_{MQTT_CLIENT_ID}_enabled",
        "state_topic": TOPIC_STATE,
        "command_topic": TOPIC_COMMAND,
        "availability_topic": TOPIC_AVAILABILITY,
        "value_template": "{{ 'ON' if value_json.is_enabled else 'OFF' }}",
        "payload_on": "ON",
        "payload_off": "OFF",
        "state_on": "ON",
        "state_off": "OFF",
        "device": _device_info(),
        "qos": 1,
        "retain": True,
    }


def get_sensor_discovery_config() -> dict:
    return {
        "name": "Cycle State",
        "unique_id": f"gloaming_{MQTT_CLIENT_ID}_cycle_state",
        "state_topic": TOPIC_STATE,
        "availability_topic": TOPIC_AVAILABILITY,
        "value_template": "{{ value_json.cycle_state }}",
        "json_attributes_topic": TOPIC_STATE,
        "device": _device_info(),
        "qos": 1,
    }


def parse_command(message: aiomqtt.Message) -> Optional[str]:
    """Command carried by message, or None if it isn't one we accept."""
    topic = str(message.topic)
    if topic != TOPIC_COMMAND:
        logger.warning(f"Ignoring message on unexpected topic {topic}")
        return None

    command = message.payload.decode().strip().upper()
    if command not in COMMANDS:
        logger.warning(f"Ignoring unknown MQTT command {command!r}")
        return None

    return command


class MQTTService:
    """
    Broker session manager, run as a background task of the FastAPI lifespan.

    start() keeps reconnecting until stop() is called or the task is cancelled.
    """

    def __init__(
        self,
        execute_command_callback: Callable[[str], Awaitable[None]],
        status_provider: Callable[[], dict[str, Any]],
    ):
        """
        Args:
            execute_command_callback: async def(command) running one of COMMANDS
            status_provider: Returns the engine status dict to publish
        """
        self.execute_command = execute_command_callback
        self.status_provider = status_provider
        self.client: Optional[aiomqtt.Client] = None
        self.running = False
        self._last_published_state: Optional[dict] = None
        self._publish_lock = asyncio.Lock()

    def _create_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=MQTT_BROKER,
            port=MQTT_PORT,
            username=MQTT_USERNAME,
            password=MQTT_PASSWORD,
            identifier=MQTT_CLIENT_ID,
            will=aiomqtt.Will(topic=TOPIC_AVAILABILITY, payload="offline", qos=1, retain=True),
        )

    async def start(self):
        if not MQTT_ENABLED:
            logger.info("MQTT bridge disabled (MQTT_ENABLED=false)")
            return

        self.running = True
        retry_delay = RECONNECT_MIN_SECONDS
        logger.info(f"MQTT bridge connecting to {MQTT_BROKER}:{MQTT_PORT} as {MQTT_CLIENT_ID}")

        while self.running:
            try:
                await self._run_session()
                retry_delay = RECONNECT_MIN_SECONDS
            except aiomqtt.MqttError as e:
                logger.error(f"MQTT connection lost: {e}")
                if self.running:
                    logger.info(f"Retrying MQTT connection in {retry_delay}s")
                    await asyncio.sleep(retry_delay)
                    retry_delay = min(retry_delay * 2, RECONNECT_MAX_SECONDS)
            except asyncio.CancelledError:
                logger.info("MQTT bridge task cancelled")
                break
            except Exception as e:
                logger.error(f"MQTT bridge failed: {e}", exc_info=True)
                if self.running:
                    await asyncio.sleep(retry_delay)

        self.client = None
        logger.info("MQTT bridge stopped")

    async def _run_session(self):
        """One broker connection: announce, subscribe, then serve commands until it drops."""
        self.client = self._create_client()
        async with self.client:
            logger.info("MQTT broker connected")

            await self.client.publish(TOPIC_AVAILABILITY, payload="online", qos=1, retain=True)
            await self._publish_ha_discovery()
            await self.client.subscribe(TOPIC_COMMAND, qos=1)
            await self.publish_state(force=True)

            async for message in self.client.messages:
                await self._handle_message(message)

    async def stop(self):
        logger.info("Stopping MQTT bridge")
        self.running = False

    async def _publish_ha_discovery(self):
        entities = (
            (TOPIC_SWITCH_CONFIG, get_switch_discovery_config()),
            (TOPIC_SENSOR_CONFIG, get_sensor_discovery_config()),
        )
        try:
            for topic, config in entities:
                await self.client.publish(topic, payload=json.dumps(config), qos=1, retain=True)
            logger.info("Home Assistant discovery published")
        except Exception as e:
            logger.error(f"Home Assistant discovery failed: {e}", exc_info=True)

    async def _handle_message(self, message: aiomqtt.Message):
        try:
            command = parse_command(message)
            if command is None:
                return

            logger.debug(f"MQTT command received: {command}")
            await self.execute_command(command)
            await self.publish_state()
        except Exception as e:
            logger.error(f"MQTT command failed: {e}", exc_info=True)

    async def publish_state(self, force: bool = False, status: Optional[dict[str, Any]] = None):
        """
        Publish the engine status (retained) to TOPIC_STATE.

        Args:
            force: Publish even when identical to the last published status
            status: Status dict to send; status_provider() is used when omitted
        """
        if not self.client:
            return

        async with self._publish_lock:
            try:
                payload = status if status is not None else self.status_provider()
                if not force and payload == self._last_published_state:
                    return

                await self.client.publish(TOPIC_STATE, payload=json.dumps(payload), qos=1, retain=True)
                self._last_published_state = payload
                logger.debug(f"MQTT state published ({payload['cycle_state']})")
            except Exception as e:
                logger.error(f"MQTT state publish failed: {e}", exc_info=True)
