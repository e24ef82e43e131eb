"""Source filter — decide which origin systems' samples are trusted.

Every aggregation call enumerates the sources of its metric and keeps those
whose bundle identifier carries a trusted vendor prefix (by default the
platform's own health agent, ``com.apple.health``).  The enumeration is not
cached: each aggregate or sample query costs one extra store round trip.

Return contract of ``build_predicate``:

    None            → accept every source (enumeration failed or was empty)
    frozenset()     → sources exist but none is trusted; accept nothing
    frozenset({…})  → accept only these sources
"""

from __future__ import annotations

import logging

from stepwise.health.base import HealthStore, MetricType, Source
from stepwise.health.config_loader import HealthConfig, get_health_config

logger = logging.getLogger("stepwise.health.sources")


class SourceFilter:
    """Build per-metric trusted-source sets against a HealthStore."""

    def __init__(self, store: HealthStore, config: HealthConfig | None = None) -> None:
        self._store = store
        self._config = config or get_health_config()

    def trusted(self, sources: set[Source]) -> frozenset[Source]:
        """Keep only the sources whose bundle identifier has a trusted prefix."""
        return frozenset(s for s in sources if self._config.is_trusted(s.bundle_identifier))

    async def build_predicate(self, metric: MetricType) -> frozenset[Source] | None:
        """Enumerate ``metric``'s sources and return the trusted subset.

        Returns:
            The trusted source set, or None meaning "accept all sources".
        """
        try:
            sources = await self._store.sources(metric)
        except Exception as exc:
            logger.warning("Source enumeration for %s failed: %s", metric.name, exc)
            return None

        if not sources:
            logger.debug("No sources for %s; accepting all", metric.name)
            return None

        selected = self.trusted(sources)
        logger.debug(
            "Source filter for %s: %d of %d sources trusted",
            metric.name, len(selected), len(sources),
        )
        return selected
