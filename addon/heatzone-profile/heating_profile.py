"""HeatingProfile – host shell around one schedule and its MQTT transport.

Wires the profile configuration, the credential input, the transport and the
ScheduleSynchronizer together. Exposes connection/initialization status, the
save action and thread-safe entry points for the control API.
"""

# pylint: disable=too-many-instance-attributes,broad-exception-caught

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from credentials import MQTTSettings, load_private_config
from field_parser import coerce_activated, parse_field_update, split_topic
from models import (
    ACTIVATED_FIELD,
    AWAY_FIELD,
    FIELD_NAMES,
    HOLIDAY_FIELD,
    SETPOINT_FIELDS,
    WEEKDAY_LABELS,
    ProfileConfig,
)
from mqtt_client import ProfileMQTTClient
from schedule_sync import ScheduleSynchronizer

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., ProfileMQTTClient]

CONTROL_API_TIMEOUT_S = 5.0


class HeatingProfile:
    """One weekly heating profile synchronized over MQTT."""

    def __init__(
        self,
        config: ProfileConfig | None = None,
        *,
        synchronizer: ScheduleSynchronizer | None = None,
        client_factory: ClientFactory = ProfileMQTTClient,
    ) -> None:
        self.config = config or ProfileConfig()
        self.sync = synchronizer or ScheduleSynchronizer()
        self._client_factory = client_factory
        self.client: ProfileMQTTClient | None = None
        self.is_initialized = False
        self.init_error: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

        # Statistics
        self.messages_handled = 0
        self.messages_foreign = 0
        self.saves = 0

    @property
    def topic_prefix(self) -> str:
        return self.config.topic_prefix

    @property
    def mqtt_connected(self) -> bool:
        return self.client is not None and self.client.is_ready()

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def initialize(self, private_config_path: str | None = None) -> bool:
        """Loads credentials and connects. Never raises.

        Every exit path leaves `is_initialized` set; `init_error` says why a
        profile stayed offline.
        """
        self._loop = asyncio.get_running_loop()
        try:
            settings = await asyncio.to_thread(
                load_private_config, private_config_path
            )
        except Exception as e:
            logger.error(f"PROFILE: Initialization failed: {e}", exc_info=True)
            return self._fail_init(f"credentials_failed:{type(e).__name__}")

        if settings is None:
            return self._fail_init("credentials_missing")
        return await self.connect(settings)

    def _fail_init(self, reason: str) -> bool:
        self.is_initialized = True
        self.init_error = reason
        logger.warning(f"PROFILE: ⚠️ {self.config.title} stays offline ({reason})")
        return False

    async def connect(self, settings: MQTTSettings) -> bool:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        if settings.topic and not self.config.topic:
            self.config.topic = settings.topic
        if not self.config.topic or not self.config.profile:
            return self._fail_init("topic_missing")

        client = self._client_factory(
            settings, self.topic_prefix, on_message=self.handle_message
        )
        client.attach_loop(self._loop)
        self.client = client
        self.is_initialized = True

        try:
            ok = await asyncio.to_thread(client.connect)
        except Exception as e:
            logger.error(f"PROFILE: MQTT connect raised: {e}", exc_info=True)
            ok = False

        # Subscriptions are replayed on every (re)connect
        client.subscribe(FIELD_NAMES)
        client.start_health_check()

        if not ok:
            self.init_error = "mqtt_connect_failed"
            logger.warning(
                "PROFILE: Initial MQTT connect failed, health check will retry"
            )
            return False

        self.init_error = None
        logger.info(f"PROFILE: ✅ {self.config.title} online ({self.topic_prefix})")
        return True

    async def shutdown(self) -> None:
        client = self.client
        if client is None:
            return
        await client.stop_health_check()
        await asyncio.to_thread(client.disconnect)
        logger.info("PROFILE: Disconnected")

    # -----------------------------------------------------------------
    # Inbound / outbound
    # -----------------------------------------------------------------

    def handle_message(self, topic: str, payload: str | bytes) -> bool:
        """Routes one inbound message into the synchronizer."""
        field = split_topic(topic, self.topic_prefix)
        if field is None:
            self.messages_foreign += 1
            return False
        self.messages_handled += 1
        return self.sync.apply(parse_field_update(field, payload))

    def save(self) -> dict[str, Any]:
        """Publishes all fourteen fields, unconditionally."""
        if not self.mqtt_connected or self.client is None:
            logger.warning("PROFILE: MQTT not connected, save rejected")
            return {"ok": False, "error": "mqtt_not_connected"}

        fields = self.sync.snapshot().fields()
        published: list[str] = []
        failed: list[str] = []
        for name, value in fields.items():
            if self.client.publish(name, value):
                published.append(name)
            else:
                failed.append(name)

        self.saves += 1
        if failed:
            logger.error(f"PROFILE: Save incomplete, failed fields: {failed}")
        else:
            logger.info(f"PROFILE: 💾 Published {len(published)} fields")
        return {"ok": not failed, "published": published, "failed": failed}

    # -----------------------------------------------------------------
    # Local edits (dispatch by wire field name)
    # -----------------------------------------------------------------

    def set_value(self, field: str, value: Any) -> Any:
        """Applies a local settings edit addressed by wire field name."""
        if field in SETPOINT_FIELDS:
            return self.sync.set_setpoint(
                SETPOINT_FIELDS.index(field), float(value)
            )
        if field == AWAY_FIELD:
            return self.sync.set_away_temp(float(value))
        if field == HOLIDAY_FIELD:
            return self.sync.set_holiday_temp(float(value))
        if field == ACTIVATED_FIELD:
            active = coerce_activated(value)
            self.sync.set_active(active)
            return active
        raise ValueError(f"field {field!r} is not editable")

    def paint(self, action: str, day: int | None, slot: int | None) -> bool:
        if action in ("begin", "extend") and (day is None or slot is None):
            raise ValueError(f"{action} needs day and slot")
        if action == "begin":
            self.sync.begin_local_edit(int(day), int(slot))
            return True
        if action == "extend":
            return self.sync.extend_local_edit(int(day), int(slot))
        if action == "end":
            self.sync.end_local_edit()
            return True
        if action == "cancel":
            self.sync.cancel_local_edit()
            return True
        raise ValueError(f"unknown paint action {action!r}")

    def schedule_view(self) -> dict[str, Any]:
        schedule = self.sync.schedule
        return {
            "title": self.config.title,
            "days": list(WEEKDAY_LABELS),
            "fields": self.sync.snapshot().fields(),
            "matrix": [list(row) for row in schedule.matrix],
            "selected_mode": self.sync.selected_mode,
            "draw_state": self.sync.draw_state.value,
        }

    # -----------------------------------------------------------------
    # Control API (called from the HTTP thread)
    # -----------------------------------------------------------------

    def _run_threadsafe(self, func: Callable[[], Any]) -> dict[str, Any]:
        if self._loop is None:
            return {"ok": False, "error": "event_loop_not_ready"}

        async def _call() -> Any:
            return func()

        fut = asyncio.run_coroutine_threadsafe(_call(), self._loop)
        try:
            result = fut.result(timeout=CONTROL_API_TIMEOUT_S)
        except ValueError as e:
            return {"ok": False, "error": "invalid_request", "detail": str(e)}
        except Exception as e:
            return {"ok": False, "error": f"call_failed:{type(e).__name__}"}
        if isinstance(result, dict):
            return result
        return {"ok": True, "result": result}

    def get_control_api_health(self) -> dict[str, Any]:
        return {
            "ok": True,
            "title": self.config.title,
            "topic": self.topic_prefix,
            "initialized": self.is_initialized,
            "mqtt_connected": self.mqtt_connected,
            "init_error": self.init_error,
        }

    def control_api_schedule(self) -> dict[str, Any]:
        return self._run_threadsafe(
            lambda: {"ok": True, **self.schedule_view()}
        )

    def control_api_select_mode(self, mode: int) -> dict[str, Any]:
        return self._run_threadsafe(lambda: self.sync.select_mode(int(mode)))

    def control_api_paint(
        self, *, action: str, day: int | None, slot: int | None
    ) -> dict[str, Any]:
        return self._run_threadsafe(lambda: self.paint(action, day, slot))

    def control_api_set_value(self, *, field: str, value: Any) -> dict[str, Any]:
        return self._run_threadsafe(lambda: self.set_value(field, value))

    def control_api_save(self) -> dict[str, Any]:
        return self._run_threadsafe(self.save)
