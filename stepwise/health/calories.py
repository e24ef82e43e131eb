"""Calorie estimator — approximate energy expenditure from body metrics.

Used only when the store's active-energy sum for a window is exactly zero.
The body profile is gathered from four independent lookups (height, weight,
age, sex) that run concurrently and are joined before the estimate is made.

Rate formula (Mifflin-St Jeor resting energy, kcal/day → kcal/s)::

    rate = (10·weight_kg + 6.25·height_cm − 5·age + s) / 86400
    s    = +5 (male) | −161 (female)

With any profile field missing or zero the configured flat fallback rate
(0.01983 kcal/s by default) is used instead.  The estimate is the rate times
the whole seconds between the window start and now.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime

from stepwise.health.aggregator import MetricAggregator
from stepwise.health.base import BiologicalSex, HealthStore, MetricType, UserProfile
from stepwise.health.config_loader import HealthConfig, get_health_config
from stepwise.health.periods import ONE_DAY_SECONDS, Calendar

logger = logging.getLogger("stepwise.health.calories")

_SEX_OFFSET_KCAL: dict[BiologicalSex, float] = {
    BiologicalSex.MALE: 5.0,
    BiologicalSex.FEMALE: -161.0,
}


def age_in_years(born: date, today: date) -> int:
    """Whole calendar years between ``born`` and ``today``."""
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return max(years, 0)


def basal_rate(profile: UserProfile) -> float | None:
    """Resting kcal per second for a complete profile, else None."""
    if not profile.is_complete:
        return None
    per_day = (
        profile.weight_kg * 10
        + 6.25 * profile.height_cm
        - 5 * profile.age_years
        + _SEX_OFFSET_KCAL[profile.sex]
    )
    return per_day / ONE_DAY_SECONDS


class CalorieEstimator:
    """Estimate kcal burned since a window start from the user's body profile."""

    def __init__(
        self,
        aggregator: MetricAggregator,
        store: HealthStore,
        config: HealthConfig | None = None,
        calendar: Calendar | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._store = store
        self._config = config or get_health_config()
        self._calendar = calendar or Calendar()

    # ------------------------------------------------------------------
    # Profile lookups (each fail-soft on its own)
    # ------------------------------------------------------------------

    async def height(self, now: datetime) -> float:
        return await self._aggregator.most_recent_sample(MetricType.HEIGHT, now)

    async def weight(self, now: datetime) -> float:
        return await self._aggregator.most_recent_sample(MetricType.BODY_MASS, now)

    async def age(self, now: datetime) -> int:
        try:
            born = await self._store.date_of_birth()
        except Exception as exc:
            logger.warning("Date of birth lookup failed: %s", exc)
            return 0
        if born is None:
            return 0
        return age_in_years(born, self._calendar.local(now).date())

    async def sex(self) -> BiologicalSex:
        try:
            return await self._store.biological_sex()
        except Exception as exc:
            logger.warning("Biological sex lookup failed: %s", exc)
            return BiologicalSex.UNKNOWN

    async def fetch_profile(self, now: datetime) -> UserProfile:
        """Run all four lookups concurrently and join on every one of them."""
        height, weight, age, sex = await asyncio.gather(
            self.height(now),
            self.weight(now),
            self.age(now),
            self.sex(),
        )
        return UserProfile(height_cm=height, weight_kg=weight, age_years=age, sex=sex)

    # ------------------------------------------------------------------
    # Estimate
    # ------------------------------------------------------------------

    def rate_for(self, profile: UserProfile) -> float:
        """kcal/s for ``profile``, or the flat fallback when it is incomplete."""
        rate = basal_rate(profile)
        if rate is None:
            logger.debug("Incomplete profile %s; using fallback rate", profile)
            return self._config.fallback_rate
        return rate

    async def estimate(self, start: datetime, now: datetime) -> float:
        """Estimated kcal burned between ``start`` and ``now``.

        The elapsed time is absolute, so a start slightly after ``now`` does
        not flip the sign.
        """
        profile = await self.fetch_profile(now)
        seconds = int(abs((now - start).total_seconds()))
        kcal = self.rate_for(profile) * seconds
        logger.info("Estimated %.1f kcal over %d s (complete profile=%s)",
                    kcal, seconds, profile.is_complete)
        return kcal
