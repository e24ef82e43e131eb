"""Tests for the calorie estimator: profile join, formula, and flat fallback."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from stepwise.health.aggregator import MetricAggregator
from stepwise.health.base import BiologicalSex, HealthStoreError, MetricType, UserProfile
from stepwise.health.calories import CalorieEstimator, age_in_years, basal_rate
from stepwise.health.config_loader import HealthConfig
from stepwise.health.periods import Calendar
from stepwise.health.stores.memory import InMemoryHealthStore
from stepwise.health.tests.conftest import NOW, make_sample

UTC = timezone.utc
ONE_HOUR_AGO = NOW - timedelta(seconds=3600)


@pytest.fixture
def estimator(
    store: InMemoryHealthStore,
    aggregator: MetricAggregator,
    health_config: HealthConfig,
    calendar: Calendar,
) -> CalorieEstimator:
    return CalorieEstimator(aggregator, store, health_config, calendar)


@pytest.fixture
def profiled_store(store: InMemoryHealthStore) -> InMemoryHealthStore:
    """70 kg, 175 cm, 30 years old, male."""
    store.add(
        make_sample(MetricType.HEIGHT, 175, datetime(2025, 6, 1, tzinfo=UTC)),
        make_sample(MetricType.BODY_MASS, 70, datetime(2026, 2, 1, tzinfo=UTC)),
    )
    store._date_of_birth = date(1995, 7, 14)
    store._biological_sex = BiologicalSex.MALE
    return store


class TestAgeInYears:
    def test_birthday_passed(self) -> None:
        assert age_in_years(date(1990, 1, 10), date(2026, 2, 25)) == 36

    def test_birthday_not_yet_reached(self) -> None:
        assert age_in_years(date(1990, 6, 15), date(2026, 2, 25)) == 35

    def test_on_birthday(self) -> None:
        assert age_in_years(date(2000, 2, 25), date(2026, 2, 25)) == 26

    def test_future_birth_date_is_zero(self) -> None:
        assert age_in_years(date(2030, 1, 1), date(2026, 2, 25)) == 0


class TestBasalRate:
    def test_male_formula(self) -> None:
        profile = UserProfile(height_cm=175, weight_kg=70, age_years=30, sex=BiologicalSex.MALE)
        expected = (70 * 10 + 6.25 * 175 - 5 * 30 + 5) / 86400
        assert basal_rate(profile) == pytest.approx(expected)

    def test_female_formula(self) -> None:
        profile = UserProfile(height_cm=165, weight_kg=60, age_years=40, sex=BiologicalSex.FEMALE)
        expected = (60 * 10 + 6.25 * 165 - 5 * 40 - 161) / 86400
        assert basal_rate(profile) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "profile",
        [
            UserProfile(height_cm=0, weight_kg=70, age_years=30, sex=BiologicalSex.MALE),
            UserProfile(height_cm=175, weight_kg=0, age_years=30, sex=BiologicalSex.MALE),
            UserProfile(height_cm=175, weight_kg=70, age_years=0, sex=BiologicalSex.MALE),
            UserProfile(height_cm=175, weight_kg=70, age_years=30, sex=BiologicalSex.UNKNOWN),
        ],
    )
    def test_incomplete_profile_has_no_rate(self, profile: UserProfile) -> None:
        assert not profile.is_complete
        assert basal_rate(profile) is None


class TestEstimate:
    @pytest.mark.asyncio
    async def test_complete_profile_one_hour(
        self, profiled_store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        kcal = await estimator.estimate(ONE_HOUR_AGO, NOW)
        expected = (70 * 10 + 6.25 * 175 - 150 + 5) / 86400 * 3600
        assert kcal == pytest.approx(expected)
        assert kcal == pytest.approx(68.6979, rel=1e-4)

    @pytest.mark.asyncio
    async def test_empty_profile_uses_flat_rate(self, estimator: CalorieEstimator) -> None:
        kcal = await estimator.estimate(ONE_HOUR_AGO, NOW)
        assert kcal == pytest.approx(0.01983 * 3600)

    @pytest.mark.asyncio
    async def test_missing_sex_uses_flat_rate(
        self, profiled_store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        profiled_store._biological_sex = BiologicalSex.UNKNOWN
        kcal = await estimator.estimate(ONE_HOUR_AGO, NOW)
        assert kcal == pytest.approx(0.01983 * 3600)

    @pytest.mark.asyncio
    async def test_start_after_now_is_not_negative(self, estimator: CalorieEstimator) -> None:
        kcal = await estimator.estimate(NOW + timedelta(seconds=120), NOW)
        assert kcal == pytest.approx(0.01983 * 120)

    @pytest.mark.asyncio
    async def test_elapsed_truncated_to_whole_seconds(self, estimator: CalorieEstimator) -> None:
        kcal = await estimator.estimate(NOW - timedelta(seconds=10, milliseconds=900), NOW)
        assert kcal == pytest.approx(0.01983 * 10)

    @pytest.mark.asyncio
    async def test_custom_fallback_rate(
        self,
        store: InMemoryHealthStore,
        aggregator: MetricAggregator,
        calendar: Calendar,
    ) -> None:
        config = HealthConfig(version="t", trusted_source_prefixes=(), fallback_rate=0.5, timezone="UTC")
        estimator = CalorieEstimator(aggregator, store, config, calendar)
        assert await estimator.estimate(NOW - timedelta(seconds=100), NOW) == pytest.approx(50.0)


class TestFetchProfile:
    @pytest.mark.asyncio
    async def test_joins_all_four_lookups(
        self, profiled_store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        profile = await estimator.fetch_profile(NOW)
        assert profile == UserProfile(
            height_cm=175.0, weight_kg=70.0, age_years=30, sex=BiologicalSex.MALE
        )
        assert profile.is_complete

    @pytest.mark.asyncio
    async def test_waits_for_slowest_lookup(
        self, profiled_store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        async def slow_sex() -> BiologicalSex:
            await asyncio.sleep(0.05)
            return BiologicalSex.FEMALE

        profiled_store.biological_sex = slow_sex
        profile = await estimator.fetch_profile(NOW)
        assert profile.sex is BiologicalSex.FEMALE
        assert profile.weight_kg == pytest.approx(70.0)

    @pytest.mark.asyncio
    async def test_failed_lookup_yields_default_field(
        self, profiled_store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        profiled_store.date_of_birth = AsyncMock(side_effect=HealthStoreError("not set"))
        profile = await estimator.fetch_profile(NOW)
        assert profile.age_years == 0
        assert profile.height_cm == pytest.approx(175.0)
        assert not profile.is_complete

    @pytest.mark.asyncio
    async def test_sex_lookup_error_is_unknown(
        self, store: InMemoryHealthStore, estimator: CalorieEstimator
    ) -> None:
        store.biological_sex = AsyncMock(side_effect=HealthStoreError("denied"))
        assert await estimator.sex() is BiologicalSex.UNKNOWN
