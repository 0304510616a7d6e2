"""Incrementally trained operating-state classifier.

A one-vs-rest logistic model (scikit-learn SGDClassifier) over standardised
features. A fresh install has no training data, so the model is bootstrapped
from seeded synthetic samples around a prototype for each class; after that
it only learns from two self-supervised signals:

- a cache miss below the retrain threshold is folded back in with its own
  predicted label;
- a dismissed predictor insight is folded back in labelled NORMAL.

Neither signal is ground truth. The only guarantee is that a dismissal moves
the next prediction for the same features towards NORMAL.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import joblib
import numpy as np
from sklearn.linear_model import SGDClassifier
from sklearn.preprocessing import StandardScaler

from power_insight.config.schema import PredictorConfig
from power_insight.prediction.base import (
    FeatureVector,
    PredictionClass,
    PredictionResult,
    Predictor,
    fallback_result,
)
from power_insight.prediction.cache import PredictionCache

logger = logging.getLogger(__name__)

MODEL_FORMAT_VERSION = 1
ALL_CLASSES = np.array([int(c) for c in PredictionClass])

# battery %, battery °C, consumption W, solar W, ambient °C
_PROTOTYPES: dict[PredictionClass, tuple[float, float, float, float, float]] = {
    PredictionClass.NORMAL: (60.0, 28.0, 800.0, 1500.0, 27.0),
    PredictionClass.HIGH_CONSUMPTION: (55.0, 30.0, 2600.0, 1200.0, 30.0),
    PredictionClass.BATTERY_DRAIN: (18.0, 33.0, 1500.0, 200.0, 26.0),
    PredictionClass.REDUCED_SOLAR: (50.0, 27.0, 900.0, 250.0, 22.0),
    PredictionClass.OPTIMAL: (92.0, 26.0, 500.0, 3200.0, 29.0),
}
_SPREAD = (8.0, 3.0, 200.0, 250.0, 3.0)


def bootstrap_dataset(samples_per_class: int, seed: int) -> tuple[np.ndarray, np.ndarray]:
    """Deterministic synthetic samples scattered around each class prototype."""
    rng = np.random.default_rng(seed)
    xs, ys = [], []
    for cls, centre in _PROTOTYPES.items():
        xs.append(rng.normal(loc=centre, scale=_SPREAD, size=(samples_per_class, len(centre))))
        ys.append(np.full(samples_per_class, int(cls)))
    return np.vstack(xs), np.concatenate(ys)


class ModelPredictor(Predictor):
    """SGD classifier with a prediction cache and joblib persistence."""

    def __init__(
        self,
        config: PredictorConfig,
        cache: PredictionCache,
        model_path: str | Path | None = None,
    ) -> None:
        self._config = config
        self._cache = cache
        self._path = Path(model_path or config.model_path)
        self._scaler: StandardScaler | None = None
        self._model: SGDClassifier | None = None
        self._loaded = False
        self._available = False
        self._lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return self._available

    @property
    def cache(self) -> PredictionCache:
        return self._cache

    async def load(self) -> bool:
        """Load the saved model, or bootstrap one when none exists.

        A model file that exists but cannot be read leaves the predictor
        unavailable: every prediction then degrades to the fallback result.
        """
        async with self._lock:
            return await self._load_locked()

    async def _load_locked(self) -> bool:
        self._loaded = True
        if self._path.exists():
            try:
                bundle = await asyncio.to_thread(joblib.load, self._path)
                self._scaler, self._model = self._unpack(bundle)
            except Exception:
                logger.exception("Failed to load predictor model from %s", self._path)
                self._available = False
                return False
            self._available = True
            logger.info("Predictor model loaded from %s", self._path)
            return True

        self._scaler, self._model = await asyncio.to_thread(self._bootstrap)
        self._available = True
        await self._save_locked()
        logger.info("Predictor model bootstrapped and saved to %s", self._path)
        return True

    def _bootstrap(self) -> tuple[StandardScaler, SGDClassifier]:
        x, y = bootstrap_dataset(self._config.bootstrap_samples_per_class, self._config.random_seed)
        scaler = StandardScaler().fit(x)
        model = SGDClassifier(
            loss="log_loss",
            learning_rate="constant",
            eta0=self._config.learning_rate,
            max_iter=50,
            tol=None,
            random_state=self._config.random_seed,
        )
        model.fit(scaler.transform(x), y)
        return scaler, model

    @staticmethod
    def _unpack(bundle: Any) -> tuple[StandardScaler, SGDClassifier]:
        if not isinstance(bundle, dict) or bundle.get("version") != MODEL_FORMAT_VERSION:
            raise ValueError("Unrecognised predictor model bundle")
        scaler, model = bundle["scaler"], bundle["model"]
        if not isinstance(scaler, StandardScaler) or not isinstance(model, SGDClassifier):
            raise ValueError("Predictor model bundle holds unexpected objects")
        return scaler, model

    def cached(self, features: FeatureVector) -> PredictionResult | None:
        return self._cache.get(features.signature)

    async def predict(self, features: FeatureVector) -> PredictionResult:
        signature = features.signature
        hit = self._cache.get(signature)
        if hit is not None:
            return hit

        async with self._lock:
            if not self._loaded:
                await self._load_locked()
            if not self._available:
                return fallback_result()
            try:
                result = self._infer(features)
            except Exception:
                logger.exception("Predictor inference failed")
                return fallback_result("Predictor inference failed")

            await self._cache.put(signature, result)

            if result.confidence < self._config.retrain_confidence_threshold:
                logger.debug(
                    "Low-confidence prediction %s (%.1f%%), reinforcing",
                    result.predicted_class.label, result.confidence,
                )
                await self._fit_one(features, result.predicted_class)
        return result

    async def retrain(self, features: FeatureVector, label: PredictionClass) -> None:
        """One corrective step; evicts the cached result for these features."""
        async with self._lock:
            if not self._loaded:
                await self._load_locked()
            if not self._available:
                logger.warning("Predictor unavailable, retrain skipped")
                return
            await self._fit_one(features, label)
            await self._cache.discard(features.signature)
        logger.info("Predictor retrained towards %s for %s", label.label, features.signature)

    async def save(self) -> None:
        async with self._lock:
            await self._save_locked()

    async def _save_locked(self) -> None:
        if self._scaler is None or self._model is None:
            return
        bundle = {"version": MODEL_FORMAT_VERSION, "scaler": self._scaler, "model": self._model}
        self._path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(joblib.dump, bundle, self._path)

    def _infer(self, features: FeatureVector) -> PredictionResult:
        assert self._scaler is not None and self._model is not None
        x = self._scaler.transform(np.array([features.as_list()]))
        proba = self._model.predict_proba(x)[0]

        # predict_proba columns follow model.classes_
        probabilities = [0.0] * len(PredictionClass)
        for cls, p in zip(self._model.classes_, proba):
            probabilities[int(cls)] = float(p)

        best = PredictionClass(int(np.argmax(probabilities)))
        confidence = round(min(100.0, max(0.0, probabilities[best] * 100.0)), 1)
        return PredictionResult(
            predicted_class=best,
            confidence=confidence,
            explanation=(
                f"Predicted {best.label} from battery {features.battery_level:.0f}%, "
                f"load {features.latest_consumption:.0f}W, solar {features.latest_solar_power:.0f}W, "
                f"ambient {features.ambient_temperature:.1f}°C"
            ),
            probabilities=tuple(probabilities),
        )

    async def _fit_one(self, features: FeatureVector, label: PredictionClass) -> None:
        assert self._scaler is not None and self._model is not None
        x = self._scaler.transform(np.array([features.as_list()]))
        self._model.partial_fit(x, np.array([int(label)]), classes=ALL_CLASSES)
        await self._save_locked()
