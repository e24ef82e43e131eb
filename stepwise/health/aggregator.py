"""Metric aggregator — windowed store queries reduced to scalars and series.

Query shapes:

    sum               cumulative sum over a window, day buckets re-summed
    hourly_buckets    24 hour-of-day keys, zero-filled
    daily_series      day buckets keyed by their last covered second
    daily_statistics  day buckets keyed by their start, truncated to int
    most_recent_sample newest single sample over all time

Each query first asks the SourceFilter for the trusted source set and ANDs it
with the window.  Store failures never propagate: they are logged and the
query yields its zero value (0.0, zero-filled buckets, or an empty
collection), so callers cannot tell "no data" from "query failed".
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from stepwise.health.base import (
    HealthStore,
    MetricType,
    Period,
    SamplePredicate,
    Statistic,
    TimeWindow,
    unit_for,
)
from stepwise.health.periods import DISTANT_PAST, Calendar, end_of_today, resolve
from stepwise.health.sources import SourceFilter

logger = logging.getLogger("stepwise.health.aggregator")

ONE_DAY = timedelta(days=1)
ONE_HOUR = timedelta(hours=1)
ONE_SECOND = timedelta(seconds=1)


def _bucket_values(metric: MetricType, stats: list[Statistic]) -> list[tuple[Statistic, float]]:
    """Pair each statistic that has a sum with its value in the metric's unit."""
    unit = unit_for(metric)
    return [(s, s.sum.value_in(unit)) for s in stats if s.sum is not None]


class MetricAggregator:
    """Issue statistics and sample queries against a HealthStore.

    Usage::

        aggregator = MetricAggregator(store, SourceFilter(store), calendar)
        steps = await aggregator.sum(MetricType.STEP_COUNT, window)
    """

    def __init__(
        self,
        store: HealthStore,
        source_filter: SourceFilter,
        calendar: Calendar | None = None,
    ) -> None:
        self._store = store
        self._source_filter = source_filter
        self._calendar = calendar or Calendar()

    async def _predicate(self, metric: MetricType, window: TimeWindow) -> SamplePredicate:
        sources = await self._source_filter.build_predicate(metric)
        return SamplePredicate(window=window, sources=sources)

    async def _collect(
        self,
        metric: MetricType,
        window: TimeWindow,
        anchor: datetime,
        interval: timedelta,
    ) -> list[tuple[Statistic, float]]:
        predicate = await self._predicate(metric, window)
        stats = await self._store.statistics_collection(
            metric, predicate, anchor, interval, unit_for(metric)
        )
        return _bucket_values(metric, stats)

    # ------------------------------------------------------------------
    # Query shapes
    # ------------------------------------------------------------------

    async def sum(self, metric: MetricType, window: TimeWindow) -> float:
        """Cumulative sum of ``metric`` over ``window`` (0.0 on error or no data)."""
        try:
            buckets = await self._collect(metric, window, window.end, ONE_DAY)
        except Exception as exc:
            logger.warning("Sum query for %s failed: %s", metric.name, exc)
            return 0.0
        return float(sum(value for _, value in buckets))

    async def hourly_buckets(self, metric: MetricType, window: TimeWindow) -> dict[int, float]:
        """Hour-of-day → value, always with all 24 keys present."""
        values: dict[int, float] = {h: 0.0 for h in range(24)}
        try:
            buckets = await self._collect(metric, window, window.end, ONE_HOUR)
        except Exception as exc:
            logger.warning("Hourly query for %s failed: %s", metric.name, exc)
            return values

        # Keyed by the hour the bucket ends in; later buckets win.
        for stat, value in buckets:
            values[self._calendar.hour(stat.end)] = value
        return values

    async def daily_series(
        self, metric: MetricType, start: datetime, now: datetime
    ) -> list[tuple[datetime, float]]:
        """Day buckets from ``start`` up to the YESTERDAY boundary, sorted ascending.

        Each key is the bucket end minus one second.  Days without data are omitted.
        """
        end = resolve(Period.YESTERDAY, now, self._calendar)
        try:
            window = TimeWindow(start=start, end=end)
        except ValueError as exc:
            logger.debug("Empty daily series for %s: %s", metric.name, exc)
            return []

        try:
            buckets = await self._collect(metric, window, end, ONE_DAY)
        except Exception as exc:
            logger.warning("Daily series query for %s failed: %s", metric.name, exc)
            return []

        series = {stat.end - ONE_SECOND: value for stat, value in buckets}
        return sorted(series.items())

    async def daily_statistics(
        self, metric: MetricType, start: datetime, now: datetime
    ) -> dict[datetime, int]:
        """Day bucket start → whole-unit total, from ``start`` to the end of today."""
        end = end_of_today(now, self._calendar)
        try:
            window = TimeWindow(start=start, end=end)
        except ValueError as exc:
            logger.debug("Empty daily statistics for %s: %s", metric.name, exc)
            return {}

        try:
            buckets = await self._collect(metric, window, end, ONE_DAY)
        except Exception as exc:
            logger.warning("Daily statistics query for %s failed: %s", metric.name, exc)
            return {}

        return {stat.start: int(value) for stat, value in buckets}

    async def most_recent_sample(self, metric: MetricType, now: datetime) -> float:
        """Value of the newest ``metric`` sample (0.0 if none or on error)."""
        try:
            predicate = await self._predicate(metric, TimeWindow(start=DISTANT_PAST, end=now))
            samples = await self._store.samples(metric, predicate, limit=1, newest_first=True)
            if not samples:
                return 0.0
            return samples[0].quantity.value_in(unit_for(metric))
        except Exception as exc:
            logger.warning("Most-recent %s query failed: %s", metric.name, exc)
            return 0.0
