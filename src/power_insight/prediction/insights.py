"""Turn predictor output into insights, gated by per-class confidence thresholds."""

from __future__ import annotations

from datetime import datetime

from power_insight.config.schema import PredictorConfig
from power_insight.insights.models import Insight, InsightSource, InsightType, Priority
from power_insight.prediction.base import PredictionClass, PredictionResult

# class -> (id, type, priority, title, advice, config threshold attribute)
_INSIGHT_TEMPLATES: dict[PredictionClass, tuple[str, InsightType, Priority, str, str, str]] = {
    PredictionClass.BATTERY_DRAIN: (
        "ml-battery-drain", InsightType.PREDICTION, Priority.HIGH,
        "Battery Drain Predicted",
        "Current conditions match past battery drain episodes. Reduce load before the level falls further.",
        "battery_drain_threshold",
    ),
    PredictionClass.HIGH_CONSUMPTION: (
        "ml-high-consumption", InsightType.PREDICTION, Priority.MEDIUM,
        "High Consumption Period Ahead",
        "Load pattern suggests a sustained high-consumption period. Stagger heavy appliances.",
        "high_consumption_threshold",
    ),
    PredictionClass.REDUCED_SOLAR: (
        "ml-reduced-solar", InsightType.OPTIMIZATION, Priority.MEDIUM,
        "Reduced Solar Yield Likely",
        "Solar yield is tracking below what the battery and load need. Lean on stored energy sparingly.",
        "reduced_solar_threshold",
    ),
    PredictionClass.OPTIMAL: (
        "ml-optimal", InsightType.TIP, Priority.LOW,
        "Optimal Charging Window",
        "Strong solar and light load make this a good time to run heavy appliances and top up the battery.",
        "optimal_threshold",
    ),
}

PREDICTOR_INSIGHT_IDS = frozenset(entry[0] for entry in _INSIGHT_TEMPLATES.values())


def insight_from_prediction(
    result: PredictionResult,
    config: PredictorConfig,
    now: datetime,
) -> Insight | None:
    """Return an insight when the predicted class clears its threshold.

    NORMAL never produces an insight, so the zero-confidence fallback is
    always silent.
    """
    template = _INSIGHT_TEMPLATES.get(result.predicted_class)
    if template is None:
        return None
    insight_id, insight_type, priority, title, advice, threshold_attr = template
    if result.confidence <= getattr(config, threshold_attr):
        return None
    return Insight(
        id=insight_id,
        type=insight_type,
        title=title,
        description=f"{advice} ({result.explanation})",
        confidence=result.confidence,
        priority=priority,
        generated_at=now,
        source=InsightSource.PREDICTOR,
    )
