"""Periodic pipeline jobs: telemetry ingestion, weather refresh, insight cycle."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from power_insight.config.schema import AppConfig
from power_insight.insights.aggregator import InsightAggregator
from power_insight.insights.models import Insight
from power_insight.logging.context import bind_cycle, clear_context
from power_insight.pipeline.state import PipelineState
from power_insight.resilience.health_check import HealthChecker
from power_insight.telemetry.source import TelemetrySource
from power_insight.weather.base import WeatherProvider

logger = logging.getLogger(__name__)

JOB_TELEMETRY = "telemetry"
JOB_WEATHER = "weather"
JOB_INSIGHTS = "insights"


class PipelineScheduler:
    """Runs the three pipeline jobs as independent loops on one event loop.

    Each loop runs its job, then waits on the shared stop event with the
    job's interval as timeout. A failing job is logged and recorded in the
    health checker; it never ends its loop.
    """

    def __init__(
        self,
        config: AppConfig,
        state: PipelineState,
        aggregator: InsightAggregator,
        telemetry_source: TelemetrySource,
        weather_provider: WeatherProvider | None = None,
        health: HealthChecker | None = None,
    ) -> None:
        self._config = config
        self._state = state
        self._aggregator = aggregator
        self._source = telemetry_source
        self._weather = weather_provider
        self._health = health or HealthChecker(config.resilience.max_consecutive_failures)
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

        for name in (JOB_TELEMETRY, JOB_WEATHER, JOB_INSIGHTS):
            self._health.register(name)

    @property
    def health(self) -> HealthChecker:
        return self._health

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        """Spawn the job loops. Call stop() to tear them down."""
        if self.is_running:
            return
        self._stop_event.clear()
        jobs: list[tuple[str, float, Callable[[], Awaitable[object]]]] = [
            (JOB_TELEMETRY, self._config.telemetry.poll_interval_seconds, self.ingest_once),
            (JOB_INSIGHTS, self._config.insights.evaluation_interval_seconds, self.insight_cycle_once),
        ]
        if self._weather is not None:
            jobs.append(
                (JOB_WEATHER, self._config.providers.weather.update_interval_seconds,
                 self.refresh_weather_once),
            )
        self._tasks = [
            asyncio.create_task(self._job_loop(name, interval, job), name=f"pipeline-{name}")
            for name, interval, job in jobs
        ]
        logger.info("Pipeline scheduler started: %s", ", ".join(name for name, _, _ in jobs))

    async def run(self) -> None:
        """Start the jobs and block until stop() is called."""
        self.start()
        await self._stop_event.wait()

    async def stop(self) -> None:
        """Stop every job and close the aggregator; no cycle runs afterwards."""
        self._stop_event.set()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self._aggregator.close()
        logger.info("Pipeline scheduler stopped")

    async def _job_loop(
        self,
        name: str,
        interval: float,
        job: Callable[[], Awaitable[object]],
    ) -> None:
        cycle = 0
        logger.info("Job '%s' starting (interval: %ss)", name, interval)
        try:
            while not self._stop_event.is_set():
                cycle += 1
                bind_cycle(name, cycle)
                await job()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break
                except asyncio.TimeoutError:
                    pass
        finally:
            clear_context()
            logger.debug("Job '%s' stopped after %d cycles", name, cycle)

    # ── Jobs ────────────────────────────────────────────────

    async def ingest_once(self) -> bool:
        """Read one sample and push it through normalize/derive/history."""
        try:
            sample = await self._source.read_sample()
        except (OSError, ValueError) as e:
            logger.warning("Telemetry read failed: %s", e)
            self._health.record_failure(JOB_TELEMETRY, str(e))
            return False
        if sample is None:
            logger.debug("No fresh telemetry sample")
            return False
        try:
            await self._state.ingest(sample)
        except Exception as e:
            logger.exception("Telemetry ingestion failed")
            self._health.record_failure(JOB_TELEMETRY, str(e))
            return False
        self._health.record_success(JOB_TELEMETRY)
        return True

    async def refresh_weather_once(self) -> bool:
        """Fetch current weather; on failure the last good snapshot stays."""
        if self._weather is None:
            return False
        try:
            snapshot = await self._weather.fetch_current()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Weather refresh failed: %s", e)
            self._health.record_failure(JOB_WEATHER, str(e))
            return False
        self._state.update_weather(snapshot)
        self._health.record_success(JOB_WEATHER)
        logger.info(
            "Weather updated: %.1f°C, %s (code %d)",
            snapshot.temperature_c, snapshot.description, snapshot.weather_code,
        )
        return True

    async def insight_cycle_once(self) -> list[Insight] | None:
        if self._aggregator.closed:
            return None
        try:
            result = await self._aggregator.run_cycle(self._state.snapshot())
        except Exception as e:
            logger.exception("Insight cycle failed")
            self._health.record_failure(JOB_INSIGHTS, str(e))
            return None
        if result is not None:
            self._health.record_success(JOB_INSIGHTS)
        return result
