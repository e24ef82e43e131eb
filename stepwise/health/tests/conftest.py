"""Shared fixtures for health engine tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from stepwise.health.aggregator import MetricAggregator
from stepwise.health.base import (
    MetricType,
    Quantity,
    QuantitySample,
    Source,
    unit_for,
)
from stepwise.health.config_loader import HealthConfig, load_health_config
from stepwise.health.dispatch import InlineDispatcher
from stepwise.health.facade import HealthFacade
from stepwise.health.periods import Calendar
from stepwise.health.sources import SourceFilter
from stepwise.health.stores.memory import InMemoryHealthStore, InMemoryMotionSensor

# Wednesday afternoon, UTC
NOW = datetime(2026, 2, 25, 14, 30, 15, tzinfo=timezone.utc)

TRUSTED = Source(name="Health", bundle_identifier="com.apple.health.81F3C2A0")
WATCH = Source(name="Apple Watch", bundle_identifier="com.apple.health.5D1E7B44")
THIRD_PARTY = Source(name="Pacer", bundle_identifier="cc.pacer.ios")


def make_sample(
    metric: MetricType,
    value: float,
    start: datetime,
    source: Source | None = TRUSTED,
    minutes: int = 1,
) -> QuantitySample:
    """A sample of ``value`` in the metric's own unit lasting ``minutes``."""
    return QuantitySample(
        metric=metric,
        quantity=Quantity(value, unit_for(metric)),
        start=start,
        end=start + timedelta(minutes=minutes),
        source=source,
    )


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def bundled_config() -> HealthConfig:
    """The real health_config.yaml shipped with the package."""
    return load_health_config()


@pytest.fixture
def health_config() -> HealthConfig:
    """Deterministic config: UTC, Sunday-first weeks, default trusted prefix."""
    return HealthConfig(
        version="test",
        trusted_source_prefixes=("com.apple.health",),
        fallback_rate=0.01983,
        first_weekday=6,
        timezone="UTC",
    )


@pytest.fixture
def calendar() -> Calendar:
    return Calendar(tz=timezone.utc, first_weekday=6)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryHealthStore:
    return InMemoryHealthStore()


@pytest.fixture
def sensor() -> InMemoryMotionSensor:
    return InMemoryMotionSensor()


@pytest.fixture
def source_filter(store: InMemoryHealthStore, health_config: HealthConfig) -> SourceFilter:
    return SourceFilter(store, health_config)


@pytest.fixture
def aggregator(
    store: InMemoryHealthStore, source_filter: SourceFilter, calendar: Calendar
) -> MetricAggregator:
    return MetricAggregator(store, source_filter, calendar)


@pytest.fixture
def facade(
    store: InMemoryHealthStore,
    sensor: InMemoryMotionSensor,
    health_config: HealthConfig,
) -> HealthFacade:
    """Facade frozen at NOW with inline completion delivery."""
    return HealthFacade(
        store,
        sensor,
        dispatcher=InlineDispatcher(),
        config=health_config,
        clock=lambda: NOW,
    )
