"""Power Insight application entry point and lifecycle orchestrator.

Startup sequence:
  config → SQLite → preferences → prediction cache → predictor →
  history restore → weather provider → telemetry source → scheduler
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
import sys

from power_insight import __version__
from power_insight.config.manager import ConfigManager
from power_insight.config.schema import AppConfig
from power_insight.db.engine import close_db, init_db
from power_insight.db.repository import Repository
from power_insight.insights.aggregator import InsightAggregator
from power_insight.insights.preferences import PreferencesManager
from power_insight.insights.rules import RuleEngine
from power_insight.logging.structured import setup_logging
from power_insight.pipeline.scheduler import PipelineScheduler
from power_insight.pipeline.state import PipelineState
from power_insight.prediction.base import NullPredictor, Predictor
from power_insight.prediction.cache import PredictionCache
from power_insight.prediction.model import ModelPredictor
from power_insight.resilience.health_check import HealthChecker
from power_insight.settings import get_config_manager, load_settings
from power_insight.telemetry.source import JsonFileTelemetrySource
from power_insight.weather.base import WeatherProvider
from power_insight.weather.openmeteo import OpenMeteoProvider

logger = logging.getLogger(__name__)


class Application:
    """Wires the pipeline together and owns startup/shutdown ordering."""

    def __init__(self, config: AppConfig, config_manager: ConfigManager | None = None) -> None:
        self.config = config
        self.config_manager = config_manager
        self._running = False
        self._stopped = asyncio.Event()

        # References held for cleanup
        self.repo: Repository | None = None
        self.predictor: Predictor | None = None
        self.aggregator: InsightAggregator | None = None
        self.scheduler: PipelineScheduler | None = None
        self._weather: WeatherProvider | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def setup(self) -> None:
        """Build every component without starting the job loops."""
        logger.info("Starting Power Insight v%s", __version__)
        self._running = True
        self._stopped.clear()

        # ── 1. Persistence ────────────────────────────────────
        db = await init_db(self.config.db.path)
        self.repo = Repository(db)

        # ── 2. Preferences and prediction ─────────────────────
        preferences = PreferencesManager(self.repo)
        await preferences.load()

        if self.config.predictor.enabled:
            cache = PredictionCache(self.repo)
            await cache.load()
            predictor = ModelPredictor(self.config.predictor, cache)
            if not await predictor.load():
                logger.warning("Predictor unavailable; predictions fall back to 'normal'")
            self.predictor = predictor
        else:
            logger.info("Predictor disabled")
            self.predictor = NullPredictor()

        self.aggregator = InsightAggregator(self.config, RuleEngine(), self.predictor, preferences)

        # ── 3. Pipeline state ─────────────────────────────────
        state = PipelineState(self.config, self.repo)
        await state.restore()

        # ── 4. Inputs ─────────────────────────────────────────
        weather_cfg = self.config.providers.weather
        if weather_cfg.type == "openmeteo":
            self._weather = OpenMeteoProvider(weather_cfg)
        else:
            logger.warning("Unknown weather provider '%s'; weather insights disabled", weather_cfg.type)

        source = JsonFileTelemetrySource(
            self.config.telemetry.sample_path,
            stale_max_age_seconds=self.config.telemetry.stale_max_age_seconds,
        )

        self.scheduler = PipelineScheduler(
            self.config,
            state,
            self.aggregator,
            source,
            weather_provider=self._weather,
            health=HealthChecker(self.config.resilience.max_consecutive_failures),
        )

    async def start(self) -> None:
        """Set up, run the pipeline, and return once stop() has finished."""
        await self.setup()
        assert self.scheduler is not None
        await self.scheduler.run()
        # the scheduler returns as soon as stop() begins; wait for the rest of teardown
        await self._stopped.wait()

    async def stop(self) -> None:
        """Gracefully stop all components in reverse order."""
        if not self._running:
            return

        logger.info("Shutting down Power Insight")
        self._running = False

        try:
            if self.scheduler is not None:
                await self.scheduler.stop()
            elif self.aggregator is not None:
                await self.aggregator.close()

            if self.predictor is not None:
                try:
                    await self.predictor.save()
                except Exception:
                    logger.exception("Error saving predictor model")

            if self._weather is not None:
                try:
                    await self._weather.close()
                except Exception:
                    logger.exception("Error closing weather provider")

            await close_db()
            logger.info("Shutdown complete")
        finally:
            self._stopped.set()


def main() -> None:
    """Entry point for the application."""
    config = load_settings()

    setup_logging(config.logging)

    app = Application(config, get_config_manager())
    stop_requested = False
    signal_count = 0
    stop_task: asyncio.Task | None = None

    async def _run() -> None:
        try:
            await app.start()
        finally:
            if stop_task is not None:
                # a signal-initiated shutdown must finish before the loop closes
                await asyncio.gather(stop_task, return_exceptions=True)
            if app.running:
                with contextlib.suppress(Exception):
                    await app.stop()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _begin_stop() -> None:
        nonlocal stop_task
        stop_task = asyncio.create_task(app.stop(), name="power-insight-stop")

    def _request_stop() -> None:
        nonlocal stop_requested, signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        if stop_requested or loop.is_closed():
            return
        stop_requested = True
        loop.call_soon_threadsafe(_begin_stop)

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())

    try:
        loop.run_until_complete(_run())
    except KeyboardInterrupt:
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
            if stop_task is not None:
                loop.run_until_complete(asyncio.gather(stop_task, return_exceptions=True))
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
