"""Derived metrics: powers, battery level, efficiency and health flags."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from power_insight.config.schema import BatteryConfig
from power_insight.telemetry.normalizer import ActiveSource, RawReading


@dataclass(frozen=True)
class DerivedMetrics:
    """Snapshot of computed quantities for one telemetry tick."""

    solar_power: float  # W
    grid_power: float  # W
    battery_power: float  # W, negative while charging
    load_power: float  # W
    battery_level: float  # 0-100
    efficiency: float  # 0-100
    is_charging: bool
    battery_critical: bool
    battery_danger: bool
    system_healthy: bool
    sensor_error: bool
    battery_voltage: float
    battery_temperature: float
    active_source: ActiveSource
    timestamp: datetime
    battery_level_delta: float = 0.0  # change since the previous trusted tick

    @property
    def trusted(self) -> bool:
        """False when level/health flags must not drive alerts."""
        return not self.sensor_error

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["active_source"] = self.active_source.value
        data["timestamp"] = self.timestamp.isoformat()
        return data


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def battery_level_from_voltage(voltage: float, config: BatteryConfig) -> float:
    """Linear voltage-to-percentage mapping clamped to [0, 100]."""
    span = config.voltage_max - config.voltage_min
    return clamp((voltage - config.voltage_min) / span * 100.0, 0.0, 100.0)


def compute_efficiency(solar_power: float, load_power: float, epsilon_w: float = 1.0) -> float:
    """Share of the load covered by solar, in percent.

    Returns 0 when the load is at or below epsilon_w to avoid dividing by
    a near-zero load.
    """
    if load_power <= epsilon_w:
        return 0.0
    return clamp(solar_power / load_power * 100.0, 0.0, 100.0)


def derive_metrics(
    reading: RawReading,
    config: BatteryConfig,
    previous: DerivedMetrics | None = None,
    efficiency_epsilon_w: float = 1.0,
) -> DerivedMetrics:
    """Derive metrics from a normalized reading.

    Pure: identical inputs always produce an identical DerivedMetrics.
    """
    solar_power = reading.solar_voltage * reading.solar_current
    grid_power = reading.grid_voltage * reading.grid_current
    battery_power = reading.battery_voltage * reading.battery_current
    is_charging = reading.battery_current < 0

    source_power = solar_power if reading.active_source == ActiveSource.SOLAR else grid_power
    load_power = source_power + (0.0 if is_charging else abs(battery_power))

    voltage = reading.battery_voltage
    temperature = reading.battery_temperature
    level = battery_level_from_voltage(voltage, config)
    sensor_error = not (config.plausible_voltage_min < voltage < config.plausible_voltage_max)

    level_delta = 0.0
    if previous is not None and not previous.sensor_error and not sensor_error:
        level_delta = level - previous.battery_level

    return DerivedMetrics(
        solar_power=solar_power,
        grid_power=grid_power,
        battery_power=battery_power,
        load_power=load_power,
        battery_level=level,
        efficiency=compute_efficiency(solar_power, load_power, efficiency_epsilon_w),
        is_charging=is_charging,
        battery_critical=level < config.critical_level_pct or voltage <= config.voltage_min,
        battery_danger=temperature > config.danger_temp_c or voltage > config.voltage_max,
        system_healthy=voltage > config.voltage_min and temperature < config.unhealthy_temp_c,
        sensor_error=sensor_error,
        battery_voltage=voltage,
        battery_temperature=temperature,
        active_source=reading.active_source,
        timestamp=reading.timestamp,
        battery_level_delta=level_delta,
    )
