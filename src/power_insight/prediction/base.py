"""Predictor capability interface and shared prediction types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from power_insight.history.buffer import HistoryView
from power_insight.telemetry.metrics import DerivedMetrics
from power_insight.weather.base import WeatherSnapshot


class PredictionClass(IntEnum):
    """Coarse operating states the predictor distinguishes."""

    NORMAL = 0
    HIGH_CONSUMPTION = 1
    BATTERY_DRAIN = 2
    REDUCED_SOLAR = 3
    OPTIMAL = 4

    @property
    def label(self) -> str:
        return CLASS_LABELS[self]


CLASS_LABELS: dict[PredictionClass, str] = {
    PredictionClass.NORMAL: "normal",
    PredictionClass.HIGH_CONSUMPTION: "high-consumption",
    PredictionClass.BATTERY_DRAIN: "battery-drain",
    PredictionClass.REDUCED_SOLAR: "reduced-solar",
    PredictionClass.OPTIMAL: "optimal",
}

FEATURE_NAMES = (
    "battery_level",
    "battery_temperature",
    "latest_consumption",
    "latest_solar_power",
    "ambient_temperature",
)


@dataclass(frozen=True)
class FeatureVector:
    battery_level: float
    battery_temperature: float
    latest_consumption: float
    latest_solar_power: float
    ambient_temperature: float

    def as_list(self) -> list[float]:
        return [float(getattr(self, name)) for name in FEATURE_NAMES]

    @property
    def signature(self) -> str:
        """Exact-match cache key."""
        return ",".join(f"{v:.2f}" for v in self.as_list())

    @classmethod
    def from_context(
        cls,
        metrics: DerivedMetrics,
        history: HistoryView,
        weather: WeatherSnapshot,
    ) -> FeatureVector:
        latest = history.latest
        return cls(
            battery_level=metrics.battery_level,
            battery_temperature=metrics.battery_temperature,
            latest_consumption=latest.consumption if latest else metrics.load_power,
            latest_solar_power=latest.solar_power if latest else metrics.solar_power,
            ambient_temperature=weather.temperature_c,
        )


@dataclass(frozen=True)
class PredictionResult:
    predicted_class: PredictionClass
    confidence: float  # 0-100
    explanation: str
    probabilities: tuple[float, ...] = ()

    def probability_of(self, cls: PredictionClass) -> float:
        if int(cls) >= len(self.probabilities):
            return 0.0
        return self.probabilities[int(cls)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "predicted_class": int(self.predicted_class),
            "confidence": self.confidence,
            "explanation": self.explanation,
            "probabilities": list(self.probabilities),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PredictionResult:
        return cls(
            predicted_class=PredictionClass(int(data["predicted_class"])),
            confidence=float(data["confidence"]),
            explanation=str(data.get("explanation", "")),
            probabilities=tuple(float(p) for p in data.get("probabilities", [])),
        )


def fallback_result(reason: str = "Predictor unavailable") -> PredictionResult:
    """Zero-confidence 'normal' result used whenever the model cannot answer."""
    return PredictionResult(PredictionClass.NORMAL, 0.0, reason)


class Predictor(ABC):
    """Small on-device model behind predict / retrain / persist."""

    @abstractmethod
    async def predict(self, features: FeatureVector) -> PredictionResult:
        """Predict the operating state. Must not raise; degrade to fallback_result()."""
        ...

    @abstractmethod
    async def retrain(self, features: FeatureVector, label: PredictionClass) -> None:
        """Fold one labelled example into the model."""
        ...

    @abstractmethod
    async def save(self) -> None:
        ...

    def cached(self, features: FeatureVector) -> PredictionResult | None:
        """Return a cached result without computing, if one exists."""
        return None


class NullPredictor(Predictor):
    """Stand-in used when the learned model is disabled."""

    async def predict(self, features: FeatureVector) -> PredictionResult:
        return fallback_result("Predictor disabled")

    async def retrain(self, features: FeatureVector, label: PredictionClass) -> None:
        return None

    async def save(self) -> None:
        return None
