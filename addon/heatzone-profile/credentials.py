#!/usr/bin/env python3
"""
MQTT credentials for the profile.

The host's credential service hands over a private config object once, at
startup. Its key names vary between installations, so several aliases are
accepted for each value. Without a private config file the MQTT_* environment
variables are used instead.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from config import (
    MQTT_HOST,
    MQTT_PASSWORD,
    MQTT_PORT,
    MQTT_TRANSPORT,
    MQTT_USERNAME,
    PRIVATE_CONFIG_PATH,
)

logger = logging.getLogger(__name__)

_HOST_KEYS = ("mqtt_host", "host")
_PORT_KEYS = ("mqtt_port", "websocket_port")
_USER_KEYS = ("mqtt_user", "username", "user")
_PASSWORD_KEYS = ("mqtt_password", "password")

TRANSPORTS = ("tcp", "websockets")


@dataclass(frozen=True)
class MQTTSettings:
    """Broker connection settings."""
    host: str
    port: int
    username: str = ""
    password: str = ""
    transport: str = "tcp"
    topic: str | None = None

    def __repr__(self) -> str:
        # Keep passwords out of logs.
        return (
            f"MQTTSettings(host={self.host!r}, port={self.port}, "
            f"username={self.username!r}, transport={self.transport!r}, "
            f"topic={self.topic!r})"
        )


def _first(raw: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def resolve_private_config(raw: dict[str, Any]) -> MQTTSettings | None:
    """Builds settings from a private config object, None if unusable."""
    host = _first(raw, _HOST_KEYS)
    if not host:
        logger.error("CREDENTIALS: Private config has no MQTT host")
        return None

    port_raw = _first(raw, _PORT_KEYS)
    try:
        port = int(port_raw) if port_raw is not None else MQTT_PORT
    except (TypeError, ValueError):
        logger.error(f"CREDENTIALS: Invalid MQTT port {port_raw!r}")
        return None

    transport = str(raw.get("transport") or MQTT_TRANSPORT).lower()
    if transport not in TRANSPORTS:
        logger.warning(
            f"CREDENTIALS: Unknown transport {transport!r}, using tcp"
        )
        transport = "tcp"

    topic = raw.get("topic")
    return MQTTSettings(
        host=str(host),
        port=port,
        username=str(_first(raw, _USER_KEYS) or ""),
        password=str(_first(raw, _PASSWORD_KEYS) or ""),
        transport=transport,
        topic=str(topic) if topic else None,
    )


def settings_from_env() -> MQTTSettings | None:
    """Settings from MQTT_* environment variables, None without a host."""
    if not MQTT_HOST:
        return None
    transport = MQTT_TRANSPORT if MQTT_TRANSPORT in TRANSPORTS else "tcp"
    return MQTTSettings(
        host=MQTT_HOST,
        port=MQTT_PORT,
        username=MQTT_USERNAME,
        password=MQTT_PASSWORD,
        transport=transport,
    )


def load_private_config(path: str | None = None) -> MQTTSettings | None:
    """Loads broker settings from the private config file or environment.

    Returns None (after logging) when no usable settings exist.
    """
    path = path or PRIVATE_CONFIG_PATH
    if not os.path.exists(path):
        settings = settings_from_env()
        if settings is None:
            logger.error(
                f"CREDENTIALS: No private config at {path} and MQTT_HOST unset"
            )
        else:
            logger.info(f"CREDENTIALS: Using environment settings {settings!r}")
        return settings

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"CREDENTIALS: Failed to read private config: {e}")
        return None

    if not isinstance(raw, dict):
        logger.error("CREDENTIALS: Private config is not a JSON object")
        return None

    settings = resolve_private_config(raw)
    if settings is not None:
        logger.info(f"CREDENTIALS: Loaded {settings!r} from {path}")
    return settings
