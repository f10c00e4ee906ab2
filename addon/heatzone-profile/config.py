#!/usr/bin/env python3
"""
Heatzone profile configuration - constants and environment variables.
"""

import os

# ============================================================================
# MQTT Availability Check
# ============================================================================
try:
    import paho.mqtt.client  # noqa: F401
    MQTT_AVAILABLE = True
except ImportError:
    MQTT_AVAILABLE = False

# ============================================================================
# Helpers
# ============================================================================


def _get_int_env(name: str, default: int) -> int:
    """Returns an int env variable with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = str(raw).strip()
    if raw == "" or raw.lower() == "null":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """Returns a float env variable with a safe fallback."""
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = str(raw).strip()
    if raw == "" or raw.lower() == "null":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or str(raw).strip() == "":
        return default
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# Profile Configuration
# ============================================================================
PROFILE_TITLE = os.getenv("PROFILE_TITLE", "Heizungsprofil")
PROFILE_TOPIC = os.getenv("PROFILE_TOPIC", "heatzone/profiles")
PROFILE_NAME = os.getenv("PROFILE_NAME", "default")

# Private config handed over by the host's credential service
DATA_DIR = os.getenv("DATA_DIR", "/data")
PRIVATE_CONFIG_PATH = os.getenv(
    "PRIVATE_CONFIG_PATH",
    os.path.join(DATA_DIR, "private_config.json")
)

# ============================================================================
# MQTT Configuration (fallback when no private config is present)
# ============================================================================
MQTT_HOST = os.getenv("MQTT_HOST", "")
MQTT_PORT = _get_int_env("MQTT_PORT", 1883)
MQTT_USERNAME = os.getenv("MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD", "")
MQTT_TRANSPORT = os.getenv("MQTT_TRANSPORT", "tcp").lower()
MQTT_PUBLISH_QOS = _get_int_env("MQTT_PUBLISH_QOS", 1)
MQTT_RETAIN = _get_bool_env("MQTT_RETAIN", True)
MQTT_KEEPALIVE = _get_int_env("MQTT_KEEPALIVE", 60)

# ============================================================================
# MQTT Client Configuration
# ============================================================================
MQTT_CONNECT_TIMEOUT = _get_float_env("MQTT_CONNECT_TIMEOUT", 10.0)
MQTT_HEALTH_CHECK_INTERVAL = _get_int_env("MQTT_HEALTH_CHECK_INTERVAL", 30)
MQTT_RECONNECT_MAX_BACKOFF = _get_float_env("MQTT_RECONNECT_MAX_BACKOFF", 300.0)

# ============================================================================
# Control API / Status
# ============================================================================
CONTROL_API_HOST = os.getenv("CONTROL_API_HOST", "127.0.0.1")
CONTROL_API_PORT = _get_int_env("CONTROL_API_PORT", 0)  # 0 disables the API
PROFILE_STATUS_INTERVAL = _get_int_env("PROFILE_STATUS_INTERVAL", 60)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
