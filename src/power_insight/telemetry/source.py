"""Telemetry sources feeding the ingestion job."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class TelemetrySource(ABC):
    """Abstract base for whatever delivers raw samples on the ingestion cadence."""

    @abstractmethod
    async def read_sample(self) -> dict[str, Any] | None:
        """Return the latest raw sample, or None when nothing new is available."""
        ...


class JsonFileTelemetrySource(TelemetrySource):
    """Reads the latest sample a device bridge writes to a JSON file.

    The file holds one JSON object mapping channel names to values. A file
    older than ``stale_max_age_seconds`` is ignored so a dead bridge does
    not keep feeding the same reading into the history.
    """

    def __init__(self, path: str | Path, stale_max_age_seconds: int = 120) -> None:
        self._path = Path(path)
        self._stale_max_age = stale_max_age_seconds

    async def read_sample(self) -> dict[str, Any] | None:
        if not self._path.exists():
            logger.debug("Telemetry file %s not present yet", self._path)
            return None

        mtime = self._path.stat().st_mtime
        age = time.time() - mtime
        if age > self._stale_max_age:
            logger.warning("Telemetry file is stale (%.0fs old), skipping", age)
            return None

        text = await asyncio.to_thread(self._path.read_text)
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Telemetry file {self._path} does not hold a JSON object")
        return data
