"""Tests for prediction types, the cache and predictor insights."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from power_insight.config.schema import PredictorConfig
from power_insight.db.repository import PREDICTION_CACHE_KEY, Repository
from power_insight.insights.models import InsightSource, InsightType, Priority
from power_insight.prediction.base import (
    FeatureVector,
    PredictionClass,
    PredictionResult,
    fallback_result,
)
from power_insight.prediction.cache import PredictionCache
from power_insight.prediction.insights import PREDICTOR_INSIGHT_IDS, insight_from_prediction

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestFeatureVector:
    def test_signature_is_exact_match_key(self) -> None:
        fv = FeatureVector(55.5, 29.0, 1234.567, 800.0, 27.25)
        assert fv.signature == "55.50,29.00,1234.57,800.00,27.25"
        assert FeatureVector(55.5, 29.0, 1234.567, 800.0, 27.25).signature == fv.signature

    def test_from_context_prefers_history(self, make_metrics, make_history, clear_weather) -> None:
        history = make_history(consumption=[1000.0] * 9 + [1750.0], solar_power=[1500.0] * 9 + [640.0])
        fv = FeatureVector.from_context(make_metrics(), history, clear_weather)
        assert fv.as_list() == [60.0, 28.0, 1750.0, 640.0, 27.0]

    def test_from_context_without_history(self, make_metrics, make_history, clear_weather) -> None:
        fv = FeatureVector.from_context(make_metrics(), make_history(n=0), clear_weather)
        assert fv.latest_consumption == 1620.0
        assert fv.latest_solar_power == 1500.0


class TestPredictionResult:
    def test_dict_round_trip(self) -> None:
        result = PredictionResult(PredictionClass.REDUCED_SOLAR, 71.3, "cloudy", (0.1, 0.05, 0.05, 0.7, 0.1))
        assert PredictionResult.from_dict(result.to_dict()) == result

    def test_fallback(self) -> None:
        result = fallback_result()
        assert result.predicted_class == PredictionClass.NORMAL
        assert result.confidence == 0.0
        assert result.probability_of(PredictionClass.OPTIMAL) == 0.0

    def test_labels(self) -> None:
        assert [c.label for c in PredictionClass] == [
            "normal", "high-consumption", "battery-drain", "reduced-solar", "optimal",
        ]


class TestPredictionCache:
    async def test_memory_only(self) -> None:
        cache = PredictionCache()
        await cache.put("sig", fallback_result())
        assert "sig" in cache
        assert await cache.discard("sig") is True
        assert await cache.discard("sig") is False
        assert await cache.load() == 0

    async def test_persisted_round_trip(self, repo: Repository) -> None:
        cache = PredictionCache(repo)
        await cache.put("a", PredictionResult(PredictionClass.OPTIMAL, 88.0, "sunny", (0, 0, 0, 0.12, 0.88)))
        await cache.put("b", PredictionResult(PredictionClass.BATTERY_DRAIN, 91.5, "drain"))

        reloaded = PredictionCache(repo)
        assert await reloaded.load() == 2
        assert reloaded.get("a") == cache.get("a")
        assert reloaded.get("b") == cache.get("b")

    async def test_bad_entries_dropped(self, repo: Repository) -> None:
        await repo.set_json(PREDICTION_CACHE_KEY, {
            "good": {"predicted_class": 4, "confidence": 90, "explanation": "x"},
            "bad-class": {"predicted_class": 9, "confidence": 90},
            "missing": {"explanation": "?"},
        })
        cache = PredictionCache(repo)
        assert await cache.load() == 1
        assert "good" in cache


class TestPredictorInsights:
    @pytest.mark.parametrize("cls,threshold,insight_id", [
        (PredictionClass.BATTERY_DRAIN, 75, "ml-battery-drain"),
        (PredictionClass.HIGH_CONSUMPTION, 65, "ml-high-consumption"),
        (PredictionClass.REDUCED_SOLAR, 70, "ml-reduced-solar"),
        (PredictionClass.OPTIMAL, 80, "ml-optimal"),
    ])
    def test_thresholds(self, cls, threshold, insight_id) -> None:
        config = PredictorConfig()
        assert insight_from_prediction(PredictionResult(cls, threshold, "x"), config, NOW) is None
        insight = insight_from_prediction(PredictionResult(cls, threshold + 0.1, "x"), config, NOW)
        assert insight is not None
        assert insight.id == insight_id
        assert insight.source == InsightSource.PREDICTOR
        assert insight.confidence == threshold + 0.1
        assert insight.generated_at == NOW

    def test_normal_is_silent(self) -> None:
        result = PredictionResult(PredictionClass.NORMAL, 99.0, "fine")
        assert insight_from_prediction(result, PredictorConfig(), NOW) is None

    def test_optimal_window_tip(self) -> None:
        insight = insight_from_prediction(
            PredictionResult(PredictionClass.OPTIMAL, 95.0, "sunny"), PredictorConfig(), NOW,
        )
        assert insight.type == InsightType.TIP
        assert insight.priority == Priority.LOW
        assert insight.title == "Optimal Charging Window"

    def test_ids_do_not_collide_with_rules(self) -> None:
        assert PREDICTOR_INSIGHT_IDS == {
            "ml-battery-drain", "ml-high-consumption", "ml-reduced-solar", "ml-optimal",
        }
