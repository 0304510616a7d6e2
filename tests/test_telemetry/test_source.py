"""Tests for the JSON file telemetry source."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path

import pytest

from power_insight.telemetry.source import JsonFileTelemetrySource


async def test_reads_latest_sample(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.json"
    path.write_text(json.dumps({"battery_voltage": "12.7", "active_source": "grid"}))
    sample = await JsonFileTelemetrySource(path).read_sample()
    assert sample == {"battery_voltage": "12.7", "active_source": "grid"}


async def test_missing_file_returns_none(tmp_path: Path) -> None:
    assert await JsonFileTelemetrySource(tmp_path / "absent.json").read_sample() is None


async def test_stale_file_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.json"
    path.write_text("{}")
    old = time.time() - 600
    os.utime(path, (old, old))
    assert await JsonFileTelemetrySource(path, stale_max_age_seconds=120).read_sample() is None


async def test_non_object_raises(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ValueError):
        await JsonFileTelemetrySource(path).read_sample()


async def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "telemetry.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        await JsonFileTelemetrySource(path).read_sample()
