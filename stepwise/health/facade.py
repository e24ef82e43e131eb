"""Health facade — the public metric retrieval and write API.

Orchestrates period resolution, source filtering, aggregation and the calorie
fallback, and delivers every result on one completion channel.

Each retrieval coroutine returns its value and, if a ``completion`` callable
is passed, also hands the value to the injected Dispatcher so the callback
runs on the designated context.  Nothing here raises for data-path failures:
every error collapses to 0, an empty collection, or False.

Step and distance totals for TODAY are read from the on-device motion
sensor, since the store can lag the current day.  Writes are fire-and-forget.

Usage::

    facade = HealthFacade(store, sensor, LoopDispatcher(loop))
    if await facade.initialize():
        steps = await facade.total_steps(Period.PAST_WEEK)
        await facade.total_energy(Period.TODAY, completion=label.set_kcal)
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from datetime import datetime
from typing import Any, Callable, Union

from stepwise.health.aggregator import MetricAggregator
from stepwise.health.base import (
    AuthorizationRequest,
    BiologicalSex,
    HealthStore,
    MetricType,
    MotionSensor,
    PedometerData,
    Period,
    Quantity,
    QuantitySample,
    TimeWindow,
    UserProfile,
    unit_for,
)
from stepwise.health.calories import CalorieEstimator
from stepwise.health.config_loader import HealthConfig, get_health_config
from stepwise.health.dispatch import Dispatcher, InlineDispatcher, LoopDispatcher
from stepwise.health.periods import hour_window, resolve
from stepwise.health.sources import SourceFilter

logger = logging.getLogger("stepwise.health.facade")

Completion = Callable[..., Any]
WriteHandle = Union[asyncio.Future, concurrent.futures.Future]


class HealthFacade:
    """Entry point for reading and writing health metrics.

    The store and sensor handles are injected once and reused for the
    lifetime of the facade.
    """

    def __init__(
        self,
        store: HealthStore,
        sensor: MotionSensor,
        dispatcher: Dispatcher | None = None,
        config: HealthConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or get_health_config()
        self._calendar = self._config.calendar()
        self._store = store
        self._sensor = sensor
        self._dispatcher = dispatcher or InlineDispatcher()
        self._clock = clock or self._calendar.now

        self._source_filter = SourceFilter(store, self._config)
        self._aggregator = MetricAggregator(store, self._source_filter, self._calendar)
        self._estimator = CalorieEstimator(
            self._aggregator, store, self._config, self._calendar
        )
        self._pending_writes: set[WriteHandle] = set()

    @property
    def aggregator(self) -> MetricAggregator:
        return self._aggregator

    @property
    def estimator(self) -> CalorieEstimator:
        return self._estimator

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _complete(self, completion: Completion | None, *values: Any) -> None:
        if completion is not None:
            self._dispatcher.dispatch(completion, *values)

    def _window(self, period: Period, now: datetime) -> TimeWindow:
        start = resolve(period, now, self._calendar)
        try:
            return TimeWindow(start=start, end=now)
        except ValueError:
            logger.debug("%s resolved after now (%s); using an empty window", period.name, start)
            return TimeWindow(start=now, end=now)

    async def _pedometer(self, start: datetime, end: datetime) -> PedometerData:
        try:
            return await self._sensor.query(start, end)
        except Exception as exc:
            logger.warning("Pedometer query %s → %s failed: %s", start, end, exc)
            return PedometerData(step_count=0.0, distance_m=0.0)

    async def _today_pedometer(self) -> PedometerData:
        now = self._clock()
        return await self._pedometer(resolve(Period.TODAY, now, self._calendar), now)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    async def initialize(self, completion: Completion | None = None) -> bool:
        """Request read/write access for the fixed capability set.

        Returns False if the device has no store or the request errors; True
        otherwise, even if the user declined individual types.
        """
        if not self._store.is_available():
            logger.warning("Health data is not available on this device")
            self._complete(completion, False)
            return False

        try:
            await self._store.request_authorization(AuthorizationRequest())
        except Exception as exc:
            logger.error("Health authorization request failed: %s", exc)
            self._complete(completion, False)
            return False

        logger.info("Health authorization requested")
        self._complete(completion, True)
        return True

    # ------------------------------------------------------------------
    # Pedometer-backed reads
    # ------------------------------------------------------------------

    async def current_steps_and_distance(
        self, completion: Completion | None = None
    ) -> tuple[int, float]:
        """Today's steps and distance (meters) from the motion sensor."""
        data = await self._today_pedometer()
        steps, distance = int(data.step_count or 0), float(data.distance_m or 0.0)
        self._complete(completion, steps, distance)
        return steps, distance

    async def steps_at_hour(self, hour: int, completion: Completion | None = None) -> int:
        """Steps recorded during ``hour`` (0–23) of today, from the motion sensor."""
        try:
            window = hour_window(hour, self._clock(), self._calendar)
        except ValueError as exc:
            logger.warning("Invalid hour %r: %s", hour, exc)
            steps = 0
        else:
            data = await self._pedometer(window.start, window.end)
            steps = int(data.step_count or 0)
        self._complete(completion, steps)
        return steps

    # ------------------------------------------------------------------
    # Store-backed series
    # ------------------------------------------------------------------

    async def hourly_steps(
        self, period: Period, completion: Completion | None = None
    ) -> dict[int, float]:
        now = self._clock()
        values = await self._aggregator.hourly_buckets(
            MetricType.STEP_COUNT, self._window(period, now)
        )
        self._complete(completion, values)
        return values

    async def daily_step_series(
        self, since: datetime, completion: Completion | None = None
    ) -> list[tuple[datetime, float]]:
        series = await self._aggregator.daily_series(MetricType.STEP_COUNT, since, self._clock())
        self._complete(completion, series)
        return series

    async def daily_step_statistics(
        self, period: Period, completion: Completion | None = None
    ) -> dict[datetime, int]:
        now = self._clock()
        values = await self._aggregator.daily_statistics(
            MetricType.STEP_COUNT, resolve(period, now, self._calendar), now
        )
        self._complete(completion, values)
        return values

    # ------------------------------------------------------------------
    # Totals
    # ------------------------------------------------------------------

    async def total_steps(self, period: Period, completion: Completion | None = None) -> float:
        if period is Period.TODAY:
            total = float((await self._today_pedometer()).step_count or 0.0)
        else:
            now = self._clock()
            total = await self._aggregator.sum(MetricType.STEP_COUNT, self._window(period, now))
        self._complete(completion, total)
        return total

    async def total_distance(
        self, period: Period, completion: Completion | None = None
    ) -> float:
        if period is Period.TODAY:
            total = float((await self._today_pedometer()).distance_m or 0.0)
        else:
            now = self._clock()
            total = await self._aggregator.sum(MetricType.DISTANCE, self._window(period, now))
        self._complete(completion, total)
        return total

    async def total_energy(self, period: Period, completion: Completion | None = None) -> float:
        """Active kcal for ``period``; estimated from the body profile if the store has none."""
        now = self._clock()
        window = self._window(period, now)
        total = await self._aggregator.sum(MetricType.ACTIVE_ENERGY, window)
        if total == 0.0:
            total = await self._estimator.estimate(window.start, now)
        self._complete(completion, total)
        return total

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    async def height(self, completion: Completion | None = None) -> float:
        value = await self._estimator.height(self._clock())
        self._complete(completion, value)
        return value

    async def weight(self, completion: Completion | None = None) -> float:
        value = await self._estimator.weight(self._clock())
        self._complete(completion, value)
        return value

    async def age(self, completion: Completion | None = None) -> int:
        value = await self._estimator.age(self._clock())
        self._complete(completion, value)
        return value

    async def gender(self, completion: Completion | None = None) -> BiologicalSex:
        value = await self._estimator.sex()
        self._complete(completion, value)
        return value

    async def user_profile(self, completion: Completion | None = None) -> UserProfile:
        profile = await self._estimator.fetch_profile(self._clock())
        self._complete(completion, profile)
        return profile

    # ------------------------------------------------------------------
    # Fire-and-forget writes
    # ------------------------------------------------------------------

    async def _save_sample(self, sample: QuantitySample) -> None:
        try:
            await self._store.save(sample)
        except Exception as exc:
            logger.error("Failed to save %s sample (%s): %s",
                         sample.metric.name, sample.quantity, exc)
        else:
            logger.debug("Saved %s sample %s", sample.metric.name, sample.quantity)

    def _record(self, metric: MetricType, value: float) -> WriteHandle | None:
        """Schedule a save and return without waiting.

        From a coroutine the save runs as a task on the running loop.  From
        synchronous code it is handed to the dispatcher's loop; with no loop
        to run on, the write is logged and dropped.
        """
        now = self._clock()
        sample = QuantitySample(
            metric=metric,
            quantity=Quantity(float(value), unit_for(metric)),
            start=now,
            end=now,
        )
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            handle = self._record_threadsafe(sample)
        else:
            handle = loop.create_task(self._save_sample(sample))
        if handle is not None:
            self._pending_writes.add(handle)
            handle.add_done_callback(self._pending_writes.discard)
        return handle

    def _record_threadsafe(self, sample: QuantitySample) -> WriteHandle | None:
        loop = self._dispatcher.loop if isinstance(self._dispatcher, LoopDispatcher) else None
        if loop is None or loop.is_closed():
            logger.error("Dropping %s write of %s: no event loop to run it on",
                         sample.metric.name, sample.quantity)
            return None
        return asyncio.run_coroutine_threadsafe(self._save_sample(sample), loop)

    def record_height(self, centimeters: float) -> WriteHandle | None:
        return self._record(MetricType.HEIGHT, centimeters)

    def record_weight(self, kilograms: float) -> WriteHandle | None:
        return self._record(MetricType.BODY_MASS, kilograms)

    def record_steps(self, steps: float) -> WriteHandle | None:
        return self._record(MetricType.STEP_COUNT, steps)

    def record_distance(self, meters: float) -> WriteHandle | None:
        return self._record(MetricType.DISTANCE, meters)

    def record_energy(self, kilocalories: float) -> WriteHandle | None:
        return self._record(MetricType.ACTIVE_ENERGY, kilocalories)
