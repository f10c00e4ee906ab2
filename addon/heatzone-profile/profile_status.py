"""ProfileStatusReporter – status payload and periodic heartbeat logging."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from config import PROFILE_STATUS_INTERVAL

if TYPE_CHECKING:
    from heating_profile import HeatingProfile

logger = logging.getLogger(__name__)


class ProfileStatusReporter:
    """Builds the status payload and logs connection transitions."""

    def __init__(self, profile: HeatingProfile) -> None:
        self._profile = profile
        self.mqtt_was_ready: bool = False
        self.last_hb_ts: float = 0.0
        self.hb_interval_s: float = max(10.0, float(PROFILE_STATUS_INTERVAL))

    def build_status_payload(self) -> dict[str, Any]:
        p = self._profile
        client = p.client
        schedule = p.sync.schedule
        return {
            "title": p.config.title,
            "topic": p.topic_prefix,
            "initialized": int(p.is_initialized),
            "mqtt_connected": int(p.mqtt_connected),
            "init_error": p.init_error,
            "active": int(schedule.active),
            "draw_state": p.sync.draw_state.value,
            "selected_mode": p.sync.selected_mode,
            "remote_applied": p.sync.remote_applied,
            "remote_ignored": p.sync.remote_ignored,
            "messages_foreign": p.messages_foreign,
            "saves": p.saves,
            "messages_received": client.messages_received if client else 0,
            "publish_count": client.publish_count if client else 0,
            "publish_failed": client.publish_failed if client else 0,
            "last_error": client.last_error_msg if client else "",
        }

    def check_transition(self) -> bool:
        """Logs connected/disconnected changes; True when one happened."""
        ready = self._profile.mqtt_connected
        if ready == self.mqtt_was_ready:
            return False
        self.mqtt_was_ready = ready
        if ready:
            logger.info("STATUS: 🟢 MQTT online")
        else:
            logger.warning("STATUS: 🔴 MQTT offline")
        return True

    def heartbeat(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        if now - self.last_hb_ts < self.hb_interval_s:
            return False
        self.last_hb_ts = now
        logger.info("STATUS: %s", self.build_status_payload())
        return True

    async def status_loop(self, poll_s: float = 5.0) -> None:
        while True:
            self.check_transition()
            self.heartbeat()
            await asyncio.sleep(poll_s)
