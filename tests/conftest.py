"""Shared test fixtures for Power Insight."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncGenerator

import aiosqlite
import pytest
import pytest_asyncio

from power_insight.config.manager import ConfigManager
from power_insight.config.schema import AppConfig
from power_insight.db.engine import close_db, init_db
from power_insight.db.repository import Repository
from power_insight.history.buffer import HistoryView, PowerPoint
from power_insight.telemetry.metrics import DerivedMetrics
from power_insight.telemetry.normalizer import ActiveSource
from power_insight.weather.base import WeatherSnapshot

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> AppConfig:
    """Provide a default test configuration."""
    return AppConfig()


@pytest.fixture
def config_manager(tmp_path: Path) -> ConfigManager:
    """Provide a config manager with test paths."""
    defaults = tmp_path / "config.defaults.yaml"
    defaults.write_text("db:\n  path: ':memory:'\n")
    user = tmp_path / "config.yaml"
    mgr = ConfigManager(defaults_path=defaults, user_path=user)
    mgr.load()
    return mgr


@pytest_asyncio.fixture
async def db(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """Provide a fresh database for each test."""
    conn = await init_db(tmp_path / "test.db")
    yield conn
    await close_db()


@pytest_asyncio.fixture
async def repo(db: aiosqlite.Connection) -> Repository:
    """Provide a repository with a fresh database."""
    return Repository(db)


@pytest.fixture
def make_metrics() -> Callable[..., DerivedMetrics]:
    """Factory for a healthy mid-day DerivedMetrics with field overrides."""

    def _make(**overrides: Any) -> DerivedMetrics:
        values: dict[str, Any] = {
            "solar_power": 1500.0,
            "grid_power": 0.0,
            "battery_power": 120.0,
            "load_power": 1620.0,
            "battery_level": 60.0,
            "efficiency": 92.6,
            "is_charging": False,
            "battery_critical": False,
            "battery_danger": False,
            "system_healthy": True,
            "sensor_error": False,
            "battery_voltage": 12.96,
            "battery_temperature": 28.0,
            "active_source": ActiveSource.SOLAR,
            "timestamp": T0,
        }
        values.update(overrides)
        return DerivedMetrics(**values)

    return _make


@pytest.fixture
def make_history() -> Callable[..., HistoryView]:
    """Factory for a HistoryView; scalar arguments are repeated n times.

    Indexes listed in ``untrusted`` become points from sensor-error readings.
    """

    def _series(value: float | Sequence[float], n: int) -> list[float]:
        if isinstance(value, (int, float)):
            return [float(value)] * n
        return [float(v) for v in value]

    def _make(
        n: int = 10,
        battery_level: float | Sequence[float] = 60.0,
        consumption: float | Sequence[float] = 1000.0,
        solar_power: float | Sequence[float] = 1500.0,
        grid_power: float | Sequence[float] = 0.0,
        untrusted: Sequence[int] = (),
    ) -> HistoryView:
        levels = _series(battery_level, n)
        loads = _series(consumption, n)
        solar = _series(solar_power, n)
        grid = _series(grid_power, n)
        return HistoryView(
            PowerPoint(
                timestamp=T0 + timedelta(seconds=10 * i),
                solar_power=solar[i],
                grid_power=grid[i],
                battery_level=levels[i],
                consumption=loads[i],
                charging_power=0.0,
                trusted=i not in untrusted,
            )
            for i in range(n)
        )

    return _make


@pytest.fixture
def clear_weather() -> WeatherSnapshot:
    return WeatherSnapshot.from_code(27.0, 0, humidity_pct=60.0, wind_speed_ms=2.0, observed_at=T0)
