"""Raw telemetry sample normalisation.

Converts a loosely-typed sample (string or numeric channel values, any of
which may be missing or malformed) into a fully populated RawReading.
Nothing here raises on bad input: an unparseable channel is treated exactly
like an absent one and takes its default.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_BATTERY_TEMPERATURE_C = 25.0


class ActiveSource(str, Enum):
    """Supply currently designated as primary by the device mode flag."""

    SOLAR = "solar"
    GRID = "grid"


# Device firmwares report the mode flag in several spellings
_SOURCE_ALIASES: dict[str, ActiveSource] = {
    "solar": ActiveSource.SOLAR,
    "pv": ActiveSource.SOLAR,
    "0": ActiveSource.SOLAR,
    "grid": ActiveSource.GRID,
    "nepa": ActiveSource.GRID,
    "mains": ActiveSource.GRID,
    "1": ActiveSource.GRID,
}

# Numeric channels and their defaults
NUMERIC_CHANNELS: dict[str, float] = {
    "solar_voltage": 0.0,
    "grid_voltage": 0.0,
    "battery_voltage": 0.0,
    "solar_current": 0.0,
    "grid_current": 0.0,
    "battery_current": 0.0,
    "battery_temperature": DEFAULT_BATTERY_TEMPERATURE_C,
}
SOURCE_CHANNEL = "active_source"


@dataclass(frozen=True)
class RawReading:
    """One telemetry tick with every channel populated."""

    solar_voltage: float = 0.0
    grid_voltage: float = 0.0
    battery_voltage: float = 0.0
    solar_current: float = 0.0
    grid_current: float = 0.0
    battery_current: float = 0.0  # Negative = charging
    battery_temperature: float = DEFAULT_BATTERY_TEMPERATURE_C
    active_source: ActiveSource = ActiveSource.SOLAR
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def parse_float(value: Any, default: float) -> float:
    """Parse a channel value, returning default for anything non-numeric."""
    if value is None or isinstance(value, bool):
        return default
    try:
        if isinstance(value, (int, float)):
            result = float(value)
        else:
            text = str(value).strip()
            if not text:
                return default
            result = float(text)
    except (OverflowError, ValueError):
        # JSON integers have no size limit
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def parse_source(value: Any) -> ActiveSource:
    if isinstance(value, ActiveSource):
        return value
    if value is None:
        return ActiveSource.SOLAR
    text = str(value).strip().lower()
    # "1.0" from a numeric feed means the same as "1"
    if text.endswith(".0"):
        text = text[:-2]
    return _SOURCE_ALIASES.get(text, ActiveSource.SOLAR)


def normalize_sample(
    sample: Mapping[str, Any] | None,
    timestamp: datetime | None = None,
) -> RawReading:
    """Build a RawReading from a raw telemetry sample.

    Args:
        sample: Mapping of channel name to raw value. None is an empty sample.
        timestamp: Reading time; defaults to now (UTC).
    """
    sample = sample or {}
    values: dict[str, float] = {}
    defaulted: list[str] = []
    for channel, default in NUMERIC_CHANNELS.items():
        raw = sample.get(channel)
        parsed = parse_float(raw, math.nan)
        if math.isnan(parsed):
            if raw is not None:
                defaulted.append(channel)
            parsed = default
        values[channel] = parsed

    if defaulted:
        logger.debug("Malformed telemetry channels defaulted: %s", ", ".join(defaulted))

    return RawReading(
        **values,
        active_source=parse_source(sample.get(SOURCE_CHANNEL)),
        timestamp=timestamp or datetime.now(timezone.utc),
    )
