"""Startup wiring — logging setup and the single HealthFacade instance.

The host application calls these once at startup:

    configure_logging()
    facade = create_health_facade(platform_store, platform_sensor, loop=main_loop)
"""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace

from stepwise.config import Settings, get_settings
from stepwise.health.base import HealthStore, MotionSensor
from stepwise.health.config_loader import get_health_config, load_health_config
from stepwise.health.dispatch import Dispatcher, InlineDispatcher, LoopDispatcher
from stepwise.health.facade import HealthFacade

logger = logging.getLogger("stepwise")


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=settings.log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def create_health_facade(
    store: HealthStore,
    sensor: MotionSensor,
    settings: Settings | None = None,
    loop: asyncio.AbstractEventLoop | None = None,
) -> HealthFacade:
    """Build the facade with its collaborators injected once.

    Args:
        store:    Platform health store binding.
        sensor:   Platform motion sensor binding.
        settings: App settings (loaded from the environment if None).
        loop:     Loop that completions are delivered on; inline delivery if None.
    """
    settings = settings or get_settings()
    if settings.health_config_path is not None:
        config = load_health_config(settings.health_config_path)
    else:
        config = get_health_config()
    if settings.timezone:
        config = replace(config, timezone=settings.timezone)

    dispatcher: Dispatcher = LoopDispatcher(loop) if loop is not None else InlineDispatcher()
    logger.info(
        "Starting %s health engine [%s] config v%s, timezone=%s",
        settings.app_name, settings.environment, config.version, config.timezone,
    )
    return HealthFacade(store, sensor, dispatcher=dispatcher, config=config)
