"""stepwise health engine.

Resolves symbolic periods to concrete windows, filters store data by
originating source, and aggregates steps, distance and energy from the
external health store and the on-device motion sensor.

Subpackages:
    stores/ — In-memory HealthStore and MotionSensor implementations

Core modules:
    base          — Data model, collaborator ABCs, error hierarchy
    periods       — Period → instant resolution and derived windows
    sources       — Trusted-source filter
    aggregator    — Sum / hourly / daily / most-recent queries
    calories      — Body-profile calorie estimate
    dispatch      — Completion delivery onto a designated context
    facade        — Public retrieval and write API
    config_loader — Load/validate/hot-reload health_config.yaml
"""

from stepwise.health.base import (
    BiologicalSex,
    HealthStore,
    MetricType,
    MotionSensor,
    Period,
    TimeWindow,
    UserProfile,
)
from stepwise.health.config_loader import HealthConfig, get_health_config
from stepwise.health.dispatch import Dispatcher, InlineDispatcher, LoopDispatcher
from stepwise.health.facade import HealthFacade

__all__ = [
    "BiologicalSex",
    "HealthStore",
    "MetricType",
    "MotionSensor",
    "Period",
    "TimeWindow",
    "UserProfile",
    "HealthConfig",
    "get_health_config",
    "Dispatcher",
    "InlineDispatcher",
    "LoopDispatcher",
    "HealthFacade",
]
