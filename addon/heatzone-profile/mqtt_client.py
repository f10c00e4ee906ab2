#!/usr/bin/env python3
"""
MQTT transport for one heating profile.

Subscribes to the profile's field topics, hands inbound messages to a single
callback and publishes outbound fields as retained JSON. No offline queue:
a publish while disconnected is reported and dropped.
"""

import asyncio
import json
import logging
import secrets
import time
from typing import Any, Callable, Iterable

from backoff import ReconnectBackoff
from config import (
    MQTT_AVAILABLE,
    MQTT_CONNECT_TIMEOUT,
    MQTT_HEALTH_CHECK_INTERVAL,
    MQTT_KEEPALIVE,
    MQTT_PUBLISH_QOS,
    MQTT_RECONNECT_MAX_BACKOFF,
    MQTT_RETAIN,
)
from credentials import MQTTSettings
from models import FIELD_NAMES

if MQTT_AVAILABLE:
    import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, str], Any]


class ProfileMQTTClient:
    """paho-mqtt adapter: connect, subscribe, publish, disconnect."""

    # MQTT return codes
    RC_CODES = {
        0: "Connection successful",
        1: "Incorrect protocol version",
        2: "Invalid client identifier",
        3: "Server unavailable",
        4: "Bad username or password",
        5: "Not authorized",
    }

    CONNECT_TIMEOUT = MQTT_CONNECT_TIMEOUT
    HEALTH_CHECK_INTERVAL = MQTT_HEALTH_CHECK_INTERVAL

    def __init__(
        self,
        settings: MQTTSettings,
        topic_prefix: str,
        on_message: MessageCallback | None = None,
    ):
        self.settings = settings
        self.topic_prefix = topic_prefix.lower()
        self.on_message = on_message
        self.client: Any = None
        self.connected = False
        self.client_id = f"ha-heating-{secrets.token_hex(4)}"
        self.subscribed_topics: list[str] = []
        self._wanted_subtopics: list[str] = []
        self._loop: asyncio.AbstractEventLoop | None = None

        # Statistics
        self.publish_count = 0
        self.publish_failed = 0
        self.messages_received = 0
        self.last_error_time: float = 0
        self.last_error_msg: str = ""
        self.reconnect_attempts = 0

        # Health check
        self._backoff = ReconnectBackoff(
            base_delay_s=float(self.HEALTH_CHECK_INTERVAL),
            max_delay_s=MQTT_RECONNECT_MAX_BACKOFF,
        )
        self._health_check_task: asyncio.Task[Any] | None = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Inbound messages are then delivered on `loop`."""
        self._loop = loop

    def topic_for(self, subtopic: str) -> str:
        return f"{self.topic_prefix}/{subtopic}"

    # -----------------------------------------------------------------
    # Connection
    # -----------------------------------------------------------------

    def connect(self, timeout: float | None = None) -> bool:
        """Connects to the broker, waiting up to `timeout` for CONNACK."""
        if not MQTT_AVAILABLE:
            logger.error("MQTT: paho-mqtt is not installed")
            return False

        timeout = timeout if timeout is not None else self.CONNECT_TIMEOUT
        host, port = self.settings.host, self.settings.port

        try:
            self.client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION1,
                client_id=self.client_id,
                protocol=mqtt.MQTTv311,
                transport=self.settings.transport,
            )
            if self.settings.username:
                self.client.username_pw_set(
                    self.settings.username, self.settings.password
                )

            self.client.on_connect = self._on_connect
            self.client.on_disconnect = self._on_disconnect
            self.client.on_message = self._on_message

            logger.info(
                f"MQTT: Connecting to {host}:{port} "
                f"({self.settings.transport}, timeout {timeout}s)"
            )

            self.client.connect(host, port, MQTT_KEEPALIVE)
            self.client.loop_start()

            start = time.time()
            while not self.connected and (time.time() - start) < timeout:
                time.sleep(0.1)

            if self.connected:
                logger.info(f"MQTT: ✅ Connected to {host}:{port}")
                self.reconnect_attempts = 0
                self._backoff.reset()
                return True

            logger.error(f"MQTT: ❌ Connection timeout after {timeout}s")
            self._cleanup_client()
            return False

        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error(f"MQTT: ❌ Connection failed: {e}")
            self.last_error_time = time.time()
            self.last_error_msg = str(e)
            self._cleanup_client()
            return False

    def _cleanup_client(self) -> None:
        if self.client:
            try:
                self.client.loop_stop()
                self.client.disconnect()
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.debug(f"MQTT: Client cleanup failed: {e}")
            self.client = None
        self.connected = False

    def _on_connect(
        self, client: Any, userdata: Any, flags: Any, rc: int
    ) -> None:
        rc_msg = self.RC_CODES.get(rc, f"Unknown error ({rc})")

        if rc == 0:
            logger.info(f"MQTT: Connected (flags={flags})")
            self.connected = True
            self.reconnect_attempts = 0
            # Broker forgets subscriptions on a clean session
            if self._wanted_subtopics:
                self._subscribe_all(client)
        else:
            logger.error(f"MQTT: ❌ Connection refused: {rc_msg}")
            self.connected = False
            self.last_error_time = time.time()
            self.last_error_msg = rc_msg

    def _on_disconnect(self, client: Any, userdata: Any, rc: int) -> None:
        self.connected = False
        if rc == 0:
            logger.info("MQTT: Disconnected (clean)")
        else:
            logger.warning(f"MQTT: ⚠️ Connection lost (rc={rc})")
            self.last_error_time = time.time()
            self.last_error_msg = f"Unexpected disconnect (rc={rc})"

    def is_ready(self) -> bool:
        return self.client is not None and self.connected

    # -----------------------------------------------------------------
    # Subscriptions
    # -----------------------------------------------------------------

    def subscribe(self, subtopics: Iterable[str] = FIELD_NAMES) -> list[str]:
        """Subscribes to the given field suffixes under the profile prefix."""
        self._wanted_subtopics = list(subtopics)
        if not self.is_ready():
            logger.warning("MQTT: Cannot subscribe - client not connected")
            return []
        return self._subscribe_all(self.client)

    def _subscribe_all(self, client: Any) -> list[str]:
        self.subscribed_topics = []
        for subtopic in self._wanted_subtopics:
            full_topic = self.topic_for(subtopic)
            try:
                client.subscribe(full_topic, qos=MQTT_PUBLISH_QOS)
                self.subscribed_topics.append(full_topic)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.warning(f"MQTT: Subscribe failed for {full_topic}: {e}")
        logger.debug(f"MQTT: Subscribed {len(self.subscribed_topics)} topics")
        return list(self.subscribed_topics)

    def unsubscribe_all(self) -> None:
        if not self.is_ready():
            return
        for topic in self.subscribed_topics:
            try:
                self.client.unsubscribe(topic)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.warning(f"MQTT: Unsubscribe failed for {topic}: {e}")
        self.subscribed_topics = []

    # -----------------------------------------------------------------
    # Inbound
    # -----------------------------------------------------------------

    def _on_message(self, client: Any, userdata: Any, msg: Any) -> None:
        """paho network-thread callback."""
        try:
            payload_text = msg.payload.decode("utf-8", errors="strict")
        except UnicodeDecodeError:
            payload_text = msg.payload.decode("utf-8", errors="replace")
        self.messages_received += 1
        logger.debug(f"MQTT: ← {msg.topic} ({len(msg.payload)} B)")

        if self.on_message is None:
            return
        if self._loop is not None:
            self._loop.call_soon_threadsafe(
                self._deliver, msg.topic, payload_text
            )
        else:
            self._deliver(msg.topic, payload_text)

    def _deliver(self, topic: str, payload_text: str) -> None:
        if self.on_message is None:
            return
        try:
            self.on_message(topic, payload_text)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error(
                f"MQTT: Message handler failed for {topic}: {e}",
                exc_info=True,
            )

    # -----------------------------------------------------------------
    # Outbound
    # -----------------------------------------------------------------

    def publish(self, subtopic: str, payload: Any) -> bool:
        """Publishes one field as retained JSON. False when not sent."""
        if not self.is_ready():
            logger.warning("MQTT: Not connected, publish skipped")
            self.publish_failed += 1
            return False

        topic = self.topic_for(subtopic)
        self.publish_count += 1
        try:
            result = self.client.publish(
                topic,
                json.dumps(payload),
                qos=MQTT_PUBLISH_QOS,
                retain=MQTT_RETAIN,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.publish_failed += 1
            self.last_error_time = time.time()
            self.last_error_msg = str(e)
            logger.error(f"MQTT: Publish exception on {topic}: {e}")
            return False

        if result.rc != 0:
            self.publish_failed += 1
            logger.error(f"MQTT: Publish failed on {topic} rc={result.rc}")
            return False

        logger.debug(f"MQTT: → {topic}")
        return True

    # -----------------------------------------------------------------
    # Shutdown / health check
    # -----------------------------------------------------------------

    def disconnect(self) -> None:
        if self.client is not None and self.connected:
            self.unsubscribe_all()
        self._cleanup_client()

    async def health_check_loop(self) -> None:
        """Reconnects with growing delays while the broker is unreachable."""
        logger.info(
            f"MQTT: Health check started "
            f"(interval {self.HEALTH_CHECK_INTERVAL}s)"
        )
        delay = float(self.HEALTH_CHECK_INTERVAL)
        while True:
            await asyncio.sleep(delay)
            if self.is_ready():
                self._backoff.reset()
                delay = float(self.HEALTH_CHECK_INTERVAL)
                continue

            self.reconnect_attempts += 1
            logger.warning(
                f"MQTT: 🔄 Health check - reconnect attempt "
                f"#{self.reconnect_attempts}"
            )
            attempts = self.reconnect_attempts
            self._cleanup_client()
            ok = await asyncio.to_thread(self.connect, self.CONNECT_TIMEOUT)
            if ok:
                logger.info(f"MQTT: ✅ Reconnected after {attempts} attempts")
                delay = float(self.HEALTH_CHECK_INTERVAL)
                continue

            delay = self._backoff.record_failure()
            if self._backoff.exhausted:
                logger.error("MQTT: Max reconnect attempts reached, giving up")
                return
            logger.warning(f"MQTT: ❌ Reconnect failed, next try in {delay}s")

    def start_health_check(self) -> None:
        if self._health_check_task is None or self._health_check_task.done():
            self._health_check_task = asyncio.create_task(
                self.health_check_loop()
            )

    async def stop_health_check(self) -> None:
        task = self._health_check_task
        self._health_check_task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
