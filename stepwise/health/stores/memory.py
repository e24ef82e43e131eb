"""In-memory HealthStore and MotionSensor.

Used by the test suite and by hosts without a platform health store.  The
store keeps samples in a list and answers statistics queries by attributing
each matching sample to the interval bucket containing its start, counted
from the anchor in whole intervals.  Saves are asynchronous and may be
delayed (``write_delay``) so callers can exercise eventual consistency.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from stepwise.health.base import (
    AuthorizationError,
    AuthorizationRequest,
    BiologicalSex,
    HealthStore,
    HealthStoreError,
    MetricType,
    MotionSensor,
    MotionSensorError,
    PedometerData,
    Quantity,
    QuantitySample,
    SamplePredicate,
    Source,
    Statistic,
    Unit,
)

logger = logging.getLogger("stepwise.health.stores.memory")

APP_SOURCE = Source(name="stepwise", bundle_identifier="org.stepwise.app")


class InMemoryHealthStore(HealthStore):
    """A HealthStore backed by a Python list.

    Attributes:
        calls:                  Operation name → number of invocations.
        authorization_requests: Every request passed to request_authorization().
    """

    def __init__(
        self,
        samples: list[QuantitySample] | None = None,
        *,
        available: bool = True,
        authorization_error: str | None = None,
        date_of_birth: date | None = None,
        biological_sex: BiologicalSex = BiologicalSex.UNKNOWN,
        app_source: Source = APP_SOURCE,
        write_delay: float = 0.0,
    ) -> None:
        self._samples: list[QuantitySample] = list(samples or [])
        self._available = available
        self._authorization_error = authorization_error
        self._date_of_birth = date_of_birth
        self._biological_sex = biological_sex
        self._app_source = app_source
        self._write_delay = write_delay
        self._granted: AuthorizationRequest | None = None
        self.calls: Counter[str] = Counter()
        self.authorization_requests: list[AuthorizationRequest] = []

    def add(self, *samples: QuantitySample) -> None:
        """Seed samples synchronously (bypasses authorization)."""
        self._samples.extend(samples)

    @property
    def stored(self) -> list[QuantitySample]:
        return list(self._samples)

    # ------------------------------------------------------------------
    # HealthStore
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        return self._available

    async def request_authorization(self, request: AuthorizationRequest) -> None:
        self.calls["request_authorization"] += 1
        self.authorization_requests.append(request)
        if self._authorization_error:
            raise AuthorizationError(self._authorization_error)
        self._granted = request

    async def save(self, sample: QuantitySample) -> None:
        self.calls["save"] += 1
        if self._granted is not None and sample.metric not in self._granted.share:
            raise HealthStoreError(f"Not authorized to share {sample.metric.name}")
        if self._write_delay:
            await asyncio.sleep(self._write_delay)
        if sample.source is None:
            sample = replace(sample, source=self._app_source)
        self._samples.append(sample)
        logger.debug("Stored %s %s", sample.metric.name, sample.quantity)

    async def statistics_collection(
        self,
        metric: MetricType,
        predicate: SamplePredicate,
        anchor: datetime,
        interval: timedelta,
        unit: Unit,
    ) -> list[Statistic]:
        self.calls["statistics_collection"] += 1
        if interval <= timedelta(0):
            raise HealthStoreError(f"Invalid statistics interval {interval}")

        totals: dict[int, float] = defaultdict(float)
        for sample in self._samples:
            if sample.metric is not metric or not predicate.matches(sample):
                continue
            index = (sample.start - anchor) // interval
            try:
                totals[index] += sample.quantity.value_in(unit)
            except ValueError as exc:
                raise HealthStoreError(str(exc)) from exc

        return [
            Statistic(
                start=anchor + index * interval,
                end=anchor + (index + 1) * interval,
                sum=Quantity(totals[index], unit),
            )
            for index in sorted(totals)
        ]

    async def samples(
        self,
        metric: MetricType,
        predicate: SamplePredicate,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[QuantitySample]:
        self.calls["samples"] += 1
        matched = sorted(
            (s for s in self._samples if s.metric is metric and predicate.matches(s)),
            key=lambda s: s.start,
            reverse=newest_first,
        )
        return matched[:limit] if limit is not None else matched

    async def sources(self, metric: MetricType) -> set[Source]:
        self.calls["sources"] += 1
        return {s.source for s in self._samples if s.metric is metric and s.source is not None}

    async def date_of_birth(self) -> date | None:
        self.calls["date_of_birth"] += 1
        return self._date_of_birth

    async def biological_sex(self) -> BiologicalSex:
        self.calls["biological_sex"] += 1
        return self._biological_sex


@dataclass(frozen=True)
class PedometerEvent:
    timestamp: datetime
    steps: float
    distance_m: float = 0.0


class InMemoryMotionSensor(MotionSensor):
    """A MotionSensor that sums recorded pedometer events."""

    def __init__(self, events: list[PedometerEvent] | None = None, *, available: bool = True) -> None:
        self._events: list[PedometerEvent] = list(events or [])
        self._available = available

    def record(self, timestamp: datetime, steps: float, distance_m: float = 0.0) -> None:
        self._events.append(PedometerEvent(timestamp, steps, distance_m))

    async def query(self, start: datetime, end: datetime) -> PedometerData:
        if not self._available:
            raise MotionSensorError("Step counting is not available on this device")
        hits = [e for e in self._events if start <= e.timestamp <= end]
        return PedometerData(
            step_count=float(sum(e.steps for e in hits)),
            distance_m=float(sum(e.distance_m for e in hits)),
        )
