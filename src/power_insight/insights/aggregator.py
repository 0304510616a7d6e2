"""Insight aggregation: rules + predictor -> one ranked, filtered list.

Each cycle:
1. Skip when the context is incomplete (previous list stays published)
2. Evaluate every rule
3. Ask the predictor once, never blocking on a slow model
4. Dedupe by id, keeping the highest-ranked entry
5. Drop dismissed ids and filtered priorities/types
6. Sort by priority then confidence, truncate to the profile limit
7. Publish
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime

from power_insight.config.schema import AppConfig
from power_insight.insights.models import Insight
from power_insight.insights.preferences import PreferencesManager
from power_insight.insights.rules import RuleContext, RuleEngine
from power_insight.pipeline.state import PipelineSnapshot
from power_insight.prediction.base import (
    FeatureVector,
    PredictionClass,
    PredictionResult,
    Predictor,
    fallback_result,
)
from power_insight.prediction.insights import insight_from_prediction
from power_insight.timezone_utils import resolve_timezone

logger = logging.getLogger(__name__)

PublishCallback = Callable[[list[Insight]], Awaitable[None]]


def rank_insights(insights: Iterable[Insight], limit: int) -> list[Insight]:
    """Dedupe by id (best entry wins), sort, and truncate."""
    best: dict[str, Insight] = {}
    for insight in insights:
        current = best.get(insight.id)
        if current is None or insight.sort_key < current.sort_key:
            best[insight.id] = insight
    return sorted(best.values(), key=lambda i: i.sort_key)[:limit]


class InsightAggregator:
    """Produces and publishes the insight list once per cycle."""

    def __init__(
        self,
        config: AppConfig,
        rule_engine: RuleEngine,
        predictor: Predictor,
        preferences: PreferencesManager,
    ) -> None:
        self._config = config
        self._rules = rule_engine
        self._predictor = predictor
        self._prefs = preferences
        self._tz = resolve_timezone(config.insights.timezone)

        self._published: list[Insight] = []
        self._on_publish: list[PublishCallback] = []
        self._pending: asyncio.Task | None = None
        # predictor insight id -> features that produced it, last cycle only
        self._predictor_features: dict[str, FeatureVector] = {}
        self._cycle_count = 0
        self._closed = False

    @property
    def published(self) -> list[Insight]:
        return list(self._published)

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def preferences(self) -> PreferencesManager:
        return self._prefs

    def on_publish(self, callback: PublishCallback) -> None:
        self._on_publish.append(callback)

    async def run_cycle(
        self,
        snapshot: PipelineSnapshot,
        now: datetime | None = None,
    ) -> list[Insight] | None:
        """Run one aggregation cycle. Returns None when the cycle was skipped."""
        if self._closed:
            return None
        min_history = self._config.insights.min_history_points
        if len(snapshot.history) < min_history:
            logger.debug(
                "Skipping insight cycle: %d/%d history points",
                len(snapshot.history), min_history,
            )
            return None
        if snapshot.metrics is None or snapshot.weather is None:
            logger.debug(
                "Skipping insight cycle: metrics=%s weather=%s",
                snapshot.metrics is not None, snapshot.weather is not None,
            )
            return None

        self._cycle_count += 1
        local_now = now.astimezone(self._tz) if now and now.tzinfo else (now or datetime.now(self._tz))
        ctx = RuleContext(
            metrics=snapshot.metrics,
            history=snapshot.history,
            weather=snapshot.weather,
            now=local_now,
        )
        candidates = self._rules.evaluate(ctx)

        features = FeatureVector.from_context(snapshot.metrics, snapshot.history, snapshot.weather)
        result = await self._predict(features)
        self._predictor_features = {}
        predicted = insight_from_prediction(result, self._config.predictor, local_now)
        if predicted is not None:
            candidates.append(predicted)
            self._predictor_features[predicted.id] = features

        if self._closed:
            return None

        prefs = self._prefs.preferences
        visible = [i for i in candidates if prefs.allows(i)]
        ranked = rank_insights(visible, self._config.insights.max_insights)

        logger.info(
            "Insight cycle %d: %d candidates, %d published (prediction=%s %.1f%%)",
            self._cycle_count, len(candidates), len(ranked),
            result.predicted_class.label, result.confidence,
        )
        await self._publish(ranked)
        return ranked

    async def _predict(self, features: FeatureVector) -> PredictionResult:
        if self._pending is not None and not self._pending.done():
            cached = self._predictor.cached(features)
            if cached is not None:
                return cached
            logger.debug("Previous prediction still running, using fallback")
            return fallback_result("Previous prediction still running")

        task = asyncio.create_task(self._predictor.predict(features))
        task.add_done_callback(self._log_prediction_failure)
        self._pending = task
        try:
            return await asyncio.wait_for(
                asyncio.shield(task), timeout=self._config.predictor.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Prediction exceeded %.1fs, using fallback", self._config.predictor.timeout_seconds,
            )
            return fallback_result("Prediction timed out")
        except Exception:
            return fallback_result("Predictor failed")

    @staticmethod
    def _log_prediction_failure(task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Predictor raised", exc_info=task.exception())

    async def _publish(self, insights: list[Insight]) -> None:
        self._published = insights
        for callback in self._on_publish:
            try:
                await callback(list(insights))
            except Exception:
                logger.exception("Insight publish callback failed")

    async def dismiss(self, insight_id: str) -> bool:
        """Dismiss an insight id for good.

        Dismissing a predictor insight from the last cycle also nudges the
        model towards NORMAL for the features that produced it.
        """
        changed = await self._prefs.dismiss(insight_id)
        self._published = [i for i in self._published if i.id != insight_id]

        features = self._predictor_features.pop(insight_id, None)
        if features is not None:
            try:
                await self._predictor.retrain(features, PredictionClass.NORMAL)
            except Exception:
                logger.exception("Corrective retrain failed for %s", insight_id)
        return changed

    async def reset(self) -> None:
        """Clear dismissals and filters."""
        await self._prefs.reset()

    async def close(self) -> None:
        """Stop accepting cycles and abandon any in-flight prediction."""
        self._closed = True
        task, self._pending = self._pending, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        logger.info("Insight aggregator closed after %d cycles", self._cycle_count)
