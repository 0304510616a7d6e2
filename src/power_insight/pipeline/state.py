"""Latest telemetry, weather and history shared between the pipeline jobs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from power_insight.config.schema import AppConfig
from power_insight.db.repository import Repository
from power_insight.history.buffer import HistoryBuffer, HistoryView, PowerPoint
from power_insight.telemetry.metrics import DerivedMetrics, derive_metrics
from power_insight.telemetry.normalizer import RawReading, normalize_sample
from power_insight.weather.base import WeatherSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineSnapshot:
    """Consistent view of the inputs taken at the start of an insight cycle."""

    reading: RawReading | None
    metrics: DerivedMetrics | None
    weather: WeatherSnapshot | None
    history: HistoryView = field(default_factory=HistoryView)
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PipelineState:
    """Single owner of the mutable pipeline inputs.

    The ingestion job writes readings and history, the weather job writes the
    weather snapshot, and the insight job only ever reads a snapshot().
    """

    def __init__(self, config: AppConfig, repo: Repository | None = None) -> None:
        self._config = config
        self._repo = repo
        self._history = HistoryBuffer(config.history.capacity)
        self._reading: RawReading | None = None
        self._metrics: DerivedMetrics | None = None
        self._weather: WeatherSnapshot | None = None

    @property
    def history(self) -> HistoryBuffer:
        return self._history

    @property
    def metrics(self) -> DerivedMetrics | None:
        return self._metrics

    @property
    def weather(self) -> WeatherSnapshot | None:
        return self._weather

    async def restore(self) -> int:
        """Reload persisted history points, if persistence is enabled."""
        if self._repo is None or not self._config.history.persist:
            return 0
        restored = self._history.restore(await self._repo.load_history())
        if restored:
            logger.info("Restored %d history points", restored)
        return restored

    async def ingest(
        self,
        sample: Mapping[str, Any] | None,
        timestamp: datetime | None = None,
    ) -> DerivedMetrics:
        """Normalize a raw sample, derive metrics and append to history."""
        reading = normalize_sample(sample, timestamp)
        metrics = derive_metrics(
            reading,
            self._config.battery,
            previous=self._metrics,
            efficiency_epsilon_w=self._config.metrics.efficiency_epsilon_w,
        )
        self._reading = reading
        self._metrics = metrics
        self._history.append(PowerPoint.from_metrics(metrics))

        if metrics.sensor_error:
            logger.warning(
                "Implausible battery voltage %.2fV; level and health flags untrusted",
                metrics.battery_voltage,
            )
        logger.debug(
            "Ingested: solar=%.0fW grid=%.0fW load=%.0fW battery=%.1f%% efficiency=%.0f%%",
            metrics.solar_power, metrics.grid_power, metrics.load_power,
            metrics.battery_level, metrics.efficiency,
        )

        if self._repo is not None and self._config.history.persist:
            await self._repo.save_history(self._history.to_records())
        return metrics

    def update_weather(self, weather: WeatherSnapshot) -> None:
        self._weather = weather

    def snapshot(self) -> PipelineSnapshot:
        return PipelineSnapshot(
            reading=self._reading,
            metrics=self._metrics,
            weather=self._weather,
            history=self._history.view(),
        )
