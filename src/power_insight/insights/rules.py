"""Rule-based insight evaluators.

Each evaluator is a pure function of a RuleContext that returns at most one
Insight. Thresholds here are the behavioural contract of the insight feed;
changing one changes what users see.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from power_insight.history.buffer import HistoryView
from power_insight.insights.models import Insight, InsightType, Priority
from power_insight.telemetry.metrics import DerivedMetrics
from power_insight.telemetry.normalizer import ActiveSource
from power_insight.weather.base import WeatherSnapshot
from power_insight.weather.codes import CLOUDY_CODES, RAIN_CODES, THUNDERSTORM_CODES

logger = logging.getLogger(__name__)

DRAIN_WINDOW = 10
DRAIN_THRESHOLD_PCT = -20.0
BATTERY_TEMP_WARNING_C = 35.0
SOLAR_HOURS = (6, 18)  # inclusive
SOLAR_LOW_THRESHOLD_W = 1000.0
CONSUMPTION_SPIKE_FACTOR = 1.3
PEAK_HOURS = (18, 22)  # inclusive
GRID_OPTIMIZATION_LEVEL_PCT = 80.0
HEAT_ALERT_C = 35.0
COLD_ALERT_C = 5.0
COOLING_DEMAND_C = 30.0
HEATING_DEMAND_C = 10.0
DEMAND_TREND_WINDOW = 6


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule may look at for one evaluation."""

    metrics: DerivedMetrics
    history: HistoryView
    weather: WeatherSnapshot | None
    now: datetime  # local time; drives the hour-of-day rules


Rule = Callable[[RuleContext], "Insight | None"]


def _insight(
    ctx: RuleContext,
    insight_id: str,
    insight_type: InsightType,
    title: str,
    description: str,
    confidence: float,
    priority: Priority,
    icon: str | None = None,
) -> Insight:
    return Insight(
        id=insight_id,
        type=insight_type,
        title=title,
        description=description,
        confidence=confidence,
        priority=priority,
        icon=icon,
        generated_at=ctx.now,
    )


def _in_hours(now: datetime, hours: tuple[int, int]) -> bool:
    return hours[0] <= now.hour <= hours[1]


# ── Battery ─────────────────────────────────────────────────


def battery_drain(ctx: RuleContext) -> Insight | None:
    if not ctx.metrics.trusted:
        return None
    # levels clamped from a bad voltage must not count as a drop
    trend = ctx.history.last(DRAIN_WINDOW).trusted().delta("battery_level", DRAIN_WINDOW)
    if trend >= DRAIN_THRESHOLD_PCT:
        return None
    return _insight(
        ctx, "battery-drain", InsightType.ALERT,
        "High Battery Drain Detected",
        f"Battery level dropped {abs(trend):.1f}% in recent cycles. "
        "Consider reducing load or switching to grid power.",
        85, Priority.HIGH,
    )


def battery_temperature(ctx: RuleContext) -> Insight | None:
    temp = ctx.metrics.battery_temperature
    if temp <= BATTERY_TEMP_WARNING_C:
        return None
    return _insight(
        ctx, "battery-temp", InsightType.ALERT,
        "Battery Temperature Warning",
        f"Battery temperature is {temp:.1f}°C. High temperatures can reduce battery lifespan.",
        95, Priority.HIGH,
    )


def battery_critical(ctx: RuleContext) -> Insight | None:
    m = ctx.metrics
    if not m.trusted or not m.battery_critical:
        return None
    return _insight(
        ctx, "battery-critical", InsightType.ALERT,
        "Critical Battery Level",
        f"Battery is at {m.battery_level:.1f}% ({m.battery_voltage:.2f}V). "
        "Shed non-essential loads to avoid a deep discharge.",
        90, Priority.HIGH,
    )


def sensor_fault(ctx: RuleContext) -> Insight | None:
    m = ctx.metrics
    if not m.sensor_error:
        return None
    return _insight(
        ctx, "sensor-error", InsightType.ALERT,
        "Battery Sensor Reading Implausible",
        f"Battery voltage reads {m.battery_voltage:.2f}V, outside the plausible range. "
        "Level and health readings are unreliable until the sensor is checked.",
        99, Priority.MEDIUM,
    )


# ── Solar & load ────────────────────────────────────────────


def solar_underperformance(ctx: RuleContext) -> Insight | None:
    if not _in_hours(ctx.now, SOLAR_HOURS):
        return None
    producing = [v for v in ctx.history.values("solar_power") if v > 0]
    if not producing:
        return None
    avg_solar = sum(producing) / len(producing)
    if avg_solar >= SOLAR_LOW_THRESHOLD_W:
        return None
    return _insight(
        ctx, "solar-low", InsightType.OPTIMIZATION,
        "Solar Panel Optimization Needed",
        f"Solar output is averaging {avg_solar:.0f}W during daylight hours. "
        "Check panels for obstructions or cleaning requirements.",
        75, Priority.MEDIUM,
    )


def consumption_spike(ctx: RuleContext) -> Insight | None:
    latest = ctx.history.latest
    if latest is None:
        return None
    avg = ctx.history.mean("consumption")
    if avg <= 0 or latest.consumption <= avg * CONSUMPTION_SPIKE_FACTOR:
        return None
    above_pct = (latest.consumption / avg - 1) * 100
    return _insight(
        ctx, "high-consumption", InsightType.PREDICTION,
        "Increased Power Demand Detected",
        f"Current load is {above_pct:.0f}% above average. "
        "System may switch to backup power soon.",
        90, Priority.MEDIUM,
    )


def peak_hour_tip(ctx: RuleContext) -> Insight | None:
    if not _in_hours(ctx.now, PEAK_HOURS) or ctx.metrics.active_source != ActiveSource.GRID:
        return None
    return _insight(
        ctx, "peak-hours", InsightType.TIP,
        "Peak Hour Energy Management",
        "Consider switching to battery power during peak demand hours to reduce electricity costs.",
        80, Priority.LOW,
    )


def grid_optimization(ctx: RuleContext) -> Insight | None:
    m = ctx.metrics
    if not m.trusted or m.active_source != ActiveSource.GRID:
        return None
    if m.battery_level <= GRID_OPTIMIZATION_LEVEL_PCT:
        return None
    return _insight(
        ctx, "grid-optimization", InsightType.TIP,
        "Battery Charging Opportunity",
        "Grid power is stable and the battery is well charged. "
        "Consider reducing grid dependency during peak solar hours.",
        70, Priority.LOW,
    )


# ── Weather ─────────────────────────────────────────────────


def weather_cloudy(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.weather_code not in CLOUDY_CODES:
        return None
    return _insight(
        ctx, "weather-cloudy", InsightType.WEATHER,
        "Reduced Solar Output Expected",
        f"{w.description} conditions will lower panel output. "
        "Plan heavy loads around battery reserves.",
        80, Priority.MEDIUM, icon=w.icon,
    )


def weather_rain(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.weather_code not in RAIN_CODES:
        return None
    return _insight(
        ctx, "weather-rain", InsightType.TIP,
        "Panel Maintenance Window",
        f"{w.description} will rinse dust off the panels. "
        "Inspect them afterwards for debris and standing water.",
        70, Priority.LOW, icon=w.icon,
    )


def weather_heat(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.temperature_c <= HEAT_ALERT_C:
        return None
    return _insight(
        ctx, "weather-heat", InsightType.ALERT,
        "Extreme Heat Alert",
        f"Ambient temperature is {w.temperature_c:.1f}°C. "
        "Keep the battery enclosure ventilated and shaded.",
        90, Priority.HIGH, icon=w.icon,
    )


def weather_cold(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.temperature_c >= COLD_ALERT_C:
        return None
    return _insight(
        ctx, "weather-cold", InsightType.ALERT,
        "Cold Weather Alert",
        f"Ambient temperature is {w.temperature_c:.1f}°C. "
        "Battery capacity drops in the cold; avoid deep discharges.",
        85, Priority.MEDIUM, icon=w.icon,
    )


def weather_storm(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.weather_code not in THUNDERSTORM_CODES:
        return None
    return _insight(
        ctx, "weather-storm", InsightType.WEATHER,
        "Storm Warning",
        f"{w.description} reported. Charge the battery fully and protect "
        "equipment against surges and outages.",
        95, Priority.HIGH, icon=w.icon,
    )


def cooling_demand(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.temperature_c <= COOLING_DEMAND_C:
        return None
    if ctx.history.delta("consumption", DEMAND_TREND_WINDOW) <= 0:
        return None
    return _insight(
        ctx, "cooling-demand", InsightType.PREDICTION,
        "Rising Cooling Demand",
        f"Consumption is climbing with the {w.temperature_c:.1f}°C heat. "
        "Expect higher load from fans and air conditioning.",
        75, Priority.MEDIUM, icon=w.icon,
    )


def heating_demand(ctx: RuleContext) -> Insight | None:
    w = ctx.weather
    if w is None or w.temperature_c >= HEATING_DEMAND_C:
        return None
    if ctx.history.delta("consumption", DEMAND_TREND_WINDOW) <= 0:
        return None
    return _insight(
        ctx, "heating-demand", InsightType.PREDICTION,
        "Rising Heating Demand",
        f"Consumption is climbing with the {w.temperature_c:.1f}°C cold. "
        "Expect higher load from heaters.",
        75, Priority.MEDIUM, icon=w.icon,
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    battery_drain,
    battery_temperature,
    battery_critical,
    sensor_fault,
    solar_underperformance,
    consumption_spike,
    peak_hour_tip,
    grid_optimization,
    weather_cloudy,
    weather_rain,
    weather_heat,
    weather_cold,
    weather_storm,
    cooling_demand,
    heating_demand,
)


class RuleEngine:
    """Registry of independent rule evaluators."""

    def __init__(self, rules: Iterable[Rule] = DEFAULT_RULES) -> None:
        self._rules: list[Rule] = list(rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def register(self, rule: Rule) -> None:
        self._rules.append(rule)

    def evaluate(self, ctx: RuleContext) -> list[Insight]:
        """Run every rule; a failing rule is logged and skipped."""
        insights: list[Insight] = []
        for rule in self._rules:
            try:
                result = rule(ctx)
            except Exception:
                logger.exception("Rule %s failed", getattr(rule, "__name__", rule))
                continue
            if result is not None:
                insights.append(result)
        return insights
