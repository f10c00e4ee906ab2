#!/usr/bin/env python3
"""
Heatzone profile - application entry point.
"""

import asyncio
import logging
import sys
from contextlib import suppress

from config import (
    CONTROL_API_HOST,
    CONTROL_API_PORT,
    LOG_LEVEL,
    MQTT_AVAILABLE,
    PRIVATE_CONFIG_PATH,
)
from control_api import ControlAPIServer
from heating_profile import HeatingProfile
from models import ProfileConfig
from profile_status import ProfileStatusReporter

# Logging setup
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)

logger = logging.getLogger(__name__)


def check_requirements():
    """Warns about missing optional runtime pieces."""
    if not MQTT_AVAILABLE:
        logger.warning(
            "⚠️ paho-mqtt is not installed. "
            "The profile will stay offline."
        )


async def main(stop_event: asyncio.Event | None = None):
    """Runs one profile until `stop_event` is set (or forever)."""
    logger.info("=" * 60)
    logger.info("Heatzone Profile - weekly heating schedule over MQTT")
    logger.info("=" * 60)

    check_requirements()

    config = ProfileConfig()
    logger.info("📋 Configuration:")
    logger.info(f"   Title: {config.title}")
    logger.info(f"   Topic: {config.topic_prefix}")
    logger.info(f"   Private config: {PRIVATE_CONFIG_PATH}")
    logger.info(f"   Log level: {LOG_LEVEL}")

    profile = HeatingProfile(config)
    reporter = ProfileStatusReporter(profile)
    control_api: ControlAPIServer | None = None
    status_task: asyncio.Task | None = None
    stop_event = stop_event or asyncio.Event()

    try:
        await profile.initialize()

        if CONTROL_API_PORT and CONTROL_API_PORT > 0:
            try:
                control_api = ControlAPIServer(
                    host=CONTROL_API_HOST,
                    port=CONTROL_API_PORT,
                    profile=profile,
                )
                control_api.start()
                logger.info(
                    f"🧪 Control API listening on "
                    f"http://{CONTROL_API_HOST}:{CONTROL_API_PORT}"
                )
            except OSError as e:
                logger.error(f"Control API start failed: {e}")
                control_api = None

        status_task = asyncio.create_task(reporter.status_loop())
        await stop_event.wait()
    finally:
        if status_task is not None:
            status_task.cancel()
            with suppress(asyncio.CancelledError):
                await status_task
        if control_api is not None:
            control_api.stop()
        await profile.shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)
