"""Concrete collaborator implementations.

Modules:
    memory — In-memory HealthStore and MotionSensor (tests, hosts without a platform store)
"""

from stepwise.health.stores.memory import (
    APP_SOURCE,
    InMemoryHealthStore,
    InMemoryMotionSensor,
    PedometerEvent,
)

__all__ = [
    "APP_SOURCE",
    "InMemoryHealthStore",
    "InMemoryMotionSensor",
    "PedometerEvent",
]
