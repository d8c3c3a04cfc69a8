"""
Device state messages over MQTT.

Sensing devices publish ``{"mac": "...", "state": "move|static|someone"}`` on
a single topic. Each valid message runs through :class:`SensingPipeline`:
optional sample capture, system triggers, alert rule evaluation and the
in-memory event log. Anything that is not valid JSON, or lacks ``mac`` or a
known ``state``, is dropped and logged.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import aiomqtt

from presence_monitor.config.settings import Settings
from presence_monitor.core.models import SensorState
from presence_monitor.core.rules import describe_state, evaluate, format_clock
from presence_monitor.sensing.event_log import EventLog, StateEvent
from presence_monitor.sensing.rule_store import RuleStore
from presence_monitor.services.alert_service import AlertService
from presence_monitor.services.metrics_service import MetricsService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateMessage:
    mac: str
    state: SensorState
    payload: Dict[str, Any] = field(default_factory=dict)


def parse_state_message(payload: Union[bytes, bytearray, str]) -> Optional[StateMessage]:
    """Parse a transport payload; returns None for anything malformed."""
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Dropping message that is not valid JSON: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning("Dropping message that is not a JSON object")
        return None

    mac = data.get("mac")
    if not isinstance(mac, str) or not mac.strip():
        logger.warning(f"Dropping message without mac: {data!r}")
        return None

    try:
        state = SensorState(data.get("state"))
    except ValueError:
        logger.warning(f"Dropping message with unknown state {data.get('state')!r} from {mac}")
        return None

    return StateMessage(mac=mac.strip(), state=state, payload=data)


class SensingPipeline:
    """Processes one parsed state message at a time."""

    def __init__(
        self,
        settings: Settings,
        metrics_service: MetricsService,
        alert_service: AlertService,
        rule_store: RuleStore,
        event_log: EventLog,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.metrics_service = metrics_service
        self.alert_service = alert_service
        self.rule_store = rule_store
        self.event_log = event_log
        self.clock = clock or datetime.now

    async def handle(self, message: StateMessage) -> StateEvent:
        """Capture, run triggers, evaluate rules and record the event."""
        now = self.clock()

        if self.settings.mqtt_persist_samples:
            sample = await self.metrics_service.capture(
                message.mac,
                {"presence_detected": message.state.implies_presence},
                raw_data=message.payload,
            )
            try:
                await self.alert_service.check_triggers(message.mac, sample)
            except Exception as e:
                logger.error(f"Trigger evaluation failed for {message.mac}: {e}", exc_info=True)

        matched = evaluate(self.rule_store.rules, message.mac, message.state, format_clock(now))
        for rule in matched:
            logger.info(f"Rule '{rule.name}' matched {message.mac} ({message.state.value})")

        event = StateEvent(
            timestamp=now,
            mac=message.mac,
            state=message.state,
            message=describe_state(message.state, message.mac),
            matched_rules=[rule.id for rule in matched],
        )
        self.event_log.record(event)
        return event


class MqttSampleListener:
    """
    Subscribes to the device topic and feeds the pipeline.

    Uses a clean session and reconnects at a fixed interval; messages sent
    while disconnected are not replayed.
    """

    def __init__(self, settings: Settings, pipeline: SensingPipeline):
        self.settings = settings
        self.pipeline = pipeline
        self.client_id = f"{settings.mqtt_client_id_prefix}{uuid.uuid4().hex[:8]}"

        self.is_running = False
        self.connected = False
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "messages_received": 0,
            "messages_dropped": 0,
            "messages_processed": 0,
            "processing_failures": 0,
            "connections": 0,
        }

    def _client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            hostname=self.settings.mqtt_host,
            port=self.settings.mqtt_port,
            username=self.settings.mqtt_username,
            password=self.settings.mqtt_password,
            identifier=self.client_id,
            clean_session=True,
        )

    async def dispatch(self, payload: Union[bytes, bytearray, str]) -> Optional[StateEvent]:
        """Parse and process a single payload; never raises."""
        self.stats["messages_received"] += 1
        message = parse_state_message(payload)
        if message is None:
            self.stats["messages_dropped"] += 1
            return None

        try:
            event = await self.pipeline.handle(message)
        except Exception as e:
            self.stats["processing_failures"] += 1
            logger.error(f"Failed to process message from {message.mac}: {e}", exc_info=True)
            return None

        self.stats["messages_processed"] += 1
        return event

    async def run(self):
        """Listen until stopped, reconnecting after every connection loss."""
        self.is_running = True
        interval = self.settings.mqtt_reconnect_interval

        while self.is_running:
            try:
                async with self._client() as client:
                    self.connected = True
                    self.last_error = None
                    self.stats["connections"] += 1
                    logger.info(f"MQTT connected to {self.settings.mqtt_host}:{self.settings.mqtt_port}")

                    await client.subscribe(self.settings.mqtt_topic)
                    logger.info(f"Subscribed to {self.settings.mqtt_topic}")

                    async for message in client.messages:
                        await self.dispatch(message.payload)
            except aiomqtt.MqttError as e:
                self.last_error = str(e)
                logger.warning(f"MQTT connection lost: {e}, reconnecting in {interval}s")
            finally:
                self.connected = False

            if self.is_running:
                await asyncio.sleep(interval)

    def start(self) -> asyncio.Task:
        """Run the listener as a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="mqtt-listener")
        return self._task

    async def stop(self):
        """Stop listening and wait for the background task to finish."""
        self.is_running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("MQTT listener stopped")

    async def get_status(self) -> Dict[str, Any]:
        """Get listener status."""
        return {
            "status": "healthy" if self.connected else "degraded",
            "running": self.is_running,
            "connected": self.connected,
            "broker": f"{self.settings.mqtt_host}:{self.settings.mqtt_port}",
            "topic": self.settings.mqtt_topic,
            "last_error": self.last_error,
            "statistics": self.stats.copy(),
        }
