"""Base classes and canonical data models for the stepwise health engine.

The health store and the motion sensor are external collaborators.  They are
modelled here as abstract async interfaces (``HealthStore`` and
``MotionSensor``) so the engine can be driven by a platform binding, the
bundled in-memory stores, or a mock.  Every type the resolver, aggregator,
estimator and facade exchange is defined in this module.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum, IntEnum

logger = logging.getLogger("stepwise.health")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class HealthError(Exception):
    """Base class for collaborator failures."""


class HealthStoreError(HealthError):
    """Raised by a HealthStore when a query, write or lookup fails."""


class HealthStoreUnavailableError(HealthStoreError):
    """The device has no health store."""


class AuthorizationError(HealthStoreError):
    """The authorization request itself failed."""


class MotionSensorError(HealthError):
    """Raised by a MotionSensor when a pedometer query fails."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Period(IntEnum):
    """Symbolic request period, resolved to a concrete start instant."""

    TODAY = 0
    PAST_DAY = 1
    PAST_WEEK = 2
    CURRENT_WEEK = 3
    PAST_MONTH = 4
    CURRENT_MONTH = 5
    PAST_YEAR = 6
    CURRENT_YEAR = 7
    ALL_TIME = 8
    YESTERDAY = 9


class MetricType(str, Enum):
    """Quantity types the engine reads and writes."""

    STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
    DISTANCE = "HKQuantityTypeIdentifierDistanceWalkingRunning"
    ACTIVE_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
    BASAL_ENERGY = "HKQuantityTypeIdentifierBasalEnergyBurned"
    DIETARY_ENERGY = "HKQuantityTypeIdentifierDietaryEnergyConsumed"
    HEIGHT = "HKQuantityTypeIdentifierHeight"
    BODY_MASS = "HKQuantityTypeIdentifierBodyMass"


class Characteristic(str, Enum):
    """Read-only profile characteristics."""

    DATE_OF_BIRTH = "HKCharacteristicTypeIdentifierDateOfBirth"
    BIOLOGICAL_SEX = "HKCharacteristicTypeIdentifierBiologicalSex"


class BiologicalSex(IntEnum):
    UNKNOWN = 0
    MALE = 1
    FEMALE = 2


class Unit(str, Enum):
    """The fixed set of measurement units the engine handles."""

    COUNT = "count"
    METER = "m"
    CENTIMETER = "cm"
    KILOGRAM = "kg"
    KILOCALORIE = "kcal"

    @property
    def dimension(self) -> str:
        return _UNIT_DIMENSIONS[self][0]

    @property
    def factor(self) -> float:
        """Multiplier to the dimension's base unit."""
        return _UNIT_DIMENSIONS[self][1]


_UNIT_DIMENSIONS: dict[Unit, tuple[str, float]] = {
    Unit.COUNT: ("count", 1.0),
    Unit.METER: ("length", 1.0),
    Unit.CENTIMETER: ("length", 0.01),
    Unit.KILOGRAM: ("mass", 1.0),
    Unit.KILOCALORIE: ("energy", 1.0),
}

# Exhaustive: every MetricType has exactly one unit, no default branch.
METRIC_UNITS: dict[MetricType, Unit] = {
    MetricType.STEP_COUNT: Unit.COUNT,
    MetricType.DISTANCE: Unit.METER,
    MetricType.ACTIVE_ENERGY: Unit.KILOCALORIE,
    MetricType.BASAL_ENERGY: Unit.KILOCALORIE,
    MetricType.DIETARY_ENERGY: Unit.KILOCALORIE,
    MetricType.HEIGHT: Unit.CENTIMETER,
    MetricType.BODY_MASS: Unit.KILOGRAM,
}


def unit_for(metric: MetricType) -> Unit:
    """Return the measurement unit results for ``metric`` are expressed in."""
    return METRIC_UNITS[metric]


# Authorization scopes.  Dietary/basal energy and the characteristics are read-only.
WRITE_TYPES: frozenset[MetricType] = frozenset({
    MetricType.STEP_COUNT,
    MetricType.DISTANCE,
    MetricType.ACTIVE_ENERGY,
    MetricType.HEIGHT,
    MetricType.BODY_MASS,
})
READ_TYPES: frozenset[MetricType | Characteristic] = frozenset(MetricType) | frozenset(
    Characteristic
)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Quantity:
    """A numeric value in one of the handled units."""

    value: float
    unit: Unit

    def value_in(self, unit: Unit) -> float:
        """Convert to ``unit``.

        Raises:
            ValueError: If ``unit`` belongs to another dimension.
        """
        if unit is self.unit:
            return self.value
        if unit.dimension != self.unit.dimension:
            raise ValueError(
                f"Cannot convert {self.unit.value} to {unit.value}: "
                f"{self.unit.dimension} vs {unit.dimension}"
            )
        return self.value * self.unit.factor / unit.factor


@dataclass(frozen=True)
class TimeWindow:
    """A concrete query window.  ``start`` never lies after ``end``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class Source:
    """An application or device that wrote samples to the store.

    Attributes:
        name:              Human-readable source name.
        bundle_identifier: Reverse-DNS origin id (e.g. 'com.apple.health.<uuid>').
    """

    name: str
    bundle_identifier: str


@dataclass(frozen=True)
class QuantitySample:
    """One stored measurement.

    Attributes:
        metric:   Quantity type of the sample.
        quantity: Value and unit.
        start:    Start of the measured interval.
        end:      End of the measured interval.
        source:   Origin of the sample; None for samples written by this app.
    """

    metric: MetricType
    quantity: Quantity
    start: datetime
    end: datetime
    source: Source | None = None


@dataclass(frozen=True)
class Statistic:
    """One bucket of a cumulative-sum statistics collection."""

    start: datetime
    end: datetime
    sum: Quantity | None = None


@dataclass(frozen=True)
class SamplePredicate:
    """Time-window predicate, ANDed with an optional source set.

    ``sources=None`` accepts every source; an empty set accepts none.
    """

    window: TimeWindow
    sources: frozenset[Source] | None = None

    def matches(self, sample: QuantitySample) -> bool:
        if sample.start < self.window.start or sample.end > self.window.end:
            return False
        if self.sources is not None and sample.source not in self.sources:
            return False
        return True


@dataclass(frozen=True)
class PedometerData:
    step_count: float = 0.0
    distance_m: float | None = None


@dataclass
class UserProfile:
    """Body metrics gathered for the calorie estimate.  Never persisted.

    Attributes:
        height_cm: Most recent height sample (0.0 if none).
        weight_kg: Most recent body-mass sample (0.0 if none).
        age_years: Whole years since date of birth (0 if unknown).
        sex:       Biological sex characteristic.
    """

    height_cm: float = 0.0
    weight_kg: float = 0.0
    age_years: int = 0
    sex: BiologicalSex = BiologicalSex.UNKNOWN

    @property
    def is_complete(self) -> bool:
        return (
            self.weight_kg != 0
            and self.height_cm != 0
            and self.age_years != 0
            and self.sex is not BiologicalSex.UNKNOWN
        )


@dataclass
class AuthorizationRequest:
    """Scopes passed to ``HealthStore.request_authorization``."""

    share: frozenset[MetricType] = field(default_factory=lambda: WRITE_TYPES)
    read: frozenset[MetricType | Characteristic] = field(default_factory=lambda: READ_TYPES)


# ---------------------------------------------------------------------------
# Collaborator interfaces
# ---------------------------------------------------------------------------


class HealthStore(ABC):
    """Abstract external health-record store.

    Implementations raise ``HealthStoreError`` (or a subclass) on failure.
    The engine catches and degrades; implementations should not swallow.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the device has a health store at all."""

    @abstractmethod
    async def request_authorization(self, request: AuthorizationRequest) -> None:
        """Ask the user for read/write access.

        Returns normally even if the user denies individual types; the
        platform does not reveal per-type denial.

        Raises:
            AuthorizationError: If the request could not be made.
        """

    @abstractmethod
    async def save(self, sample: QuantitySample) -> None:
        """Persist one sample."""

    @abstractmethod
    async def statistics_collection(
        self,
        metric: MetricType,
        predicate: SamplePredicate,
        anchor: datetime,
        interval: timedelta,
        unit: Unit,
    ) -> list[Statistic]:
        """Cumulative-sum statistics over interval buckets aligned to ``anchor``.

        Only buckets containing matching samples are returned, ordered by start.
        """

    @abstractmethod
    async def samples(
        self,
        metric: MetricType,
        predicate: SamplePredicate,
        limit: int | None = None,
        newest_first: bool = True,
    ) -> list[QuantitySample]:
        """Matching samples sorted by start time."""

    @abstractmethod
    async def sources(self, metric: MetricType) -> set[Source]:
        """Enumerate every source that wrote samples of ``metric``."""

    @abstractmethod
    async def date_of_birth(self) -> date | None:
        """Date of birth characteristic, or None if not set."""

    @abstractmethod
    async def biological_sex(self) -> BiologicalSex:
        """Biological sex characteristic."""


class MotionSensor(ABC):
    """Abstract on-device motion co-processor (pedometer)."""

    @abstractmethod
    async def query(self, start: datetime, end: datetime) -> PedometerData:
        """Steps and distance recorded between ``start`` and ``end``.

        Raises:
            MotionSensorError: If the sensor cannot answer.
        """
