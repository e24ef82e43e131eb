"""Load, validate, and hot-reload the stepwise health configuration.

The config lives in ``health_config.yaml`` alongside this module.  At startup
it is loaded once and cached.  Call ``reload_health_config()`` to re-read from
disk; the old config stays in place if the new one fails validation.

Usage::

    from stepwise.health.config_loader import get_health_config

    config = get_health_config()
    config.is_trusted("com.apple.health.A1B2")    # True
    calendar = config.calendar()                   # for the period resolver
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from stepwise.health.periods import Calendar

logger = logging.getLogger("stepwise.health.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "health_config.yaml"

DEFAULT_FALLBACK_RATE = 0.01983

WEEKDAYS: dict[str, int] = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


@dataclass
class HealthConfig:
    """Complete, validated health engine configuration.

    Attributes:
        version:                 Config schema version string.
        trusted_source_prefixes: Bundle-id prefixes whose samples are aggregated.
        fallback_rate:           Flat kcal/second rate for the calorie estimate.
        first_weekday:           Python weekday index (Monday=0) starting a week.
        timezone:                'local' or an IANA zone name.
    """

    version: str
    trusted_source_prefixes: tuple[str, ...]
    fallback_rate: float = DEFAULT_FALLBACK_RATE
    first_weekday: int = 6
    timezone: str = "local"

    def is_trusted(self, bundle_identifier: str) -> bool:
        return any(bundle_identifier.startswith(p) for p in self.trusted_source_prefixes)

    def tzinfo(self) -> tzinfo | None:
        """Resolve the configured timezone.

        'local' maps to None: the calendar then asks the host for the offset
        of each instant, so DST transitions are honoured.
        """
        if self.timezone == "local":
            return None
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)

    def calendar(self) -> Calendar:
        return Calendar(tz=self.tzinfo(), first_weekday=self.first_weekday)


class ConfigValidationError(ValueError):
    """Raised when health_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    import yaml  # pyyaml

    if not path.exists():
        raise FileNotFoundError(f"Health config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _validate_and_build(raw: dict) -> HealthConfig:
    """Validate the raw YAML dict and construct a HealthConfig.

    All problems are collected and reported together.

    Raises:
        ConfigValidationError: If any field is missing or invalid.
    """
    errors: list[str] = []

    version = str(raw.get("version", "1.0"))

    # ── Trusted sources ──
    prefixes_raw = raw.get("trusted_source_prefixes")
    prefixes: list[str] = []
    if prefixes_raw is None:
        errors.append("'trusted_source_prefixes' is missing")
    elif not isinstance(prefixes_raw, list):
        errors.append("'trusted_source_prefixes' must be a list of strings")
    else:
        for p in prefixes_raw:
            if not isinstance(p, str) or not p:
                errors.append(f"trusted_source_prefixes entry {p!r} must be a non-empty string")
            else:
                prefixes.append(p)

    # ── Calories ──
    cal_raw = raw.get("calories", {}) or {}
    fallback_rate = DEFAULT_FALLBACK_RATE
    if "fallback_rate_kcal_per_second" in cal_raw:
        try:
            fallback_rate = float(cal_raw["fallback_rate_kcal_per_second"])
        except (TypeError, ValueError):
            errors.append(
                "calories.fallback_rate_kcal_per_second must be a number, "
                f"got {cal_raw['fallback_rate_kcal_per_second']!r}"
            )
        else:
            if fallback_rate < 0:
                errors.append(
                    f"calories.fallback_rate_kcal_per_second = {fallback_rate} must be >= 0"
                )

    # ── Calendar ──
    cal_cfg = raw.get("calendar", {}) or {}
    weekday_name = str(cal_cfg.get("first_weekday", "sunday")).lower()
    first_weekday = WEEKDAYS.get(weekday_name)
    if first_weekday is None:
        errors.append(
            f"calendar.first_weekday {weekday_name!r} is not one of {sorted(WEEKDAYS)}"
        )
        first_weekday = 6

    tz_name = str(cal_cfg.get("timezone", "local"))
    if tz_name != "local" and tz_name.upper() != "UTC":
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"calendar.timezone {tz_name!r} is not a known IANA zone")

    if errors:
        raise ConfigValidationError(
            f"health_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return HealthConfig(
        version=version,
        trusted_source_prefixes=tuple(prefixes),
        fallback_rate=fallback_rate,
        first_weekday=first_weekday,
        timezone=tz_name,
    )


def load_health_config(path: Path | None = None) -> HealthConfig:
    """Load and validate the health config from disk.

    Args:
        path: Override path to YAML. Uses the bundled health_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded health config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: HealthConfig | None = None
_config_lock = threading.Lock()


def get_health_config() -> HealthConfig:
    """Return the global HealthConfig singleton, loading it on first call."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_health_config()
    return _config


def reload_health_config(path: Path | None = None) -> HealthConfig:
    """Reload the health config from disk and replace the global singleton.

    Raises:
        ConfigValidationError: If the new config is invalid (old one is kept).
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_health_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded health config: %s → %s", old_version, new_config.version)
    return new_config
