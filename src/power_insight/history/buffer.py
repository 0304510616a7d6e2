"""Bounded, arrival-ordered history of power samples used for trend detection."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from power_insight.telemetry.metrics import DerivedMetrics

logger = logging.getLogger(__name__)

TREND_FIELDS = ("solar_power", "grid_power", "battery_level", "consumption", "charging_power")


@dataclass(frozen=True)
class PowerPoint:
    """One retained history sample."""

    timestamp: datetime
    solar_power: float
    grid_power: float
    battery_level: float
    consumption: float
    charging_power: float
    trusted: bool = True  # false when the battery voltage was implausible

    @classmethod
    def from_metrics(cls, metrics: DerivedMetrics) -> PowerPoint:
        return cls(
            timestamp=metrics.timestamp,
            solar_power=metrics.solar_power,
            grid_power=metrics.grid_power,
            battery_level=metrics.battery_level,
            consumption=metrics.load_power,
            charging_power=abs(metrics.battery_power) if metrics.is_charging else 0.0,
            trusted=metrics.trusted,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PowerPoint:
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            solar_power=float(data["solar_power"]),
            grid_power=float(data["grid_power"]),
            battery_level=float(data["battery_level"]),
            consumption=float(data["consumption"]),
            charging_power=float(data["charging_power"]),
            trusted=bool(data.get("trusted", True)),
        )


def _check_field(field_name: str) -> None:
    if field_name not in TREND_FIELDS:
        raise ValueError(f"Unknown history field '{field_name}'")


class HistoryView:
    """Read-only, ordered snapshot of history points (oldest first)."""

    def __init__(self, points: Iterable[PowerPoint] = ()) -> None:
        self._points: tuple[PowerPoint, ...] = tuple(points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[PowerPoint]:
        return iter(self._points)

    def __getitem__(self, index: int) -> PowerPoint:
        return self._points[index]

    @property
    def points(self) -> tuple[PowerPoint, ...]:
        return self._points

    @property
    def latest(self) -> PowerPoint | None:
        return self._points[-1] if self._points else None

    def last(self, n: int) -> HistoryView:
        """View over the most recent n points."""
        if n <= 0:
            return HistoryView()
        return HistoryView(self._points[-n:])

    def trusted(self) -> HistoryView:
        """View without the points taken from untrusted readings."""
        return HistoryView(p for p in self._points if p.trusted)

    def values(self, field_name: str) -> list[float]:
        _check_field(field_name)
        return [getattr(p, field_name) for p in self._points]

    def mean(self, field_name: str) -> float:
        vals = self.values(field_name)
        return sum(vals) / len(vals) if vals else 0.0

    def delta(self, field_name: str, window: int) -> float:
        """Latest minus earliest value over the most recent window points.

        Returns 0.0 with fewer than two points in the window.
        """
        vals = self.last(window).values(field_name)
        if len(vals) < 2:
            return 0.0
        return vals[-1] - vals[0]


class HistoryBuffer:
    """Fixed-capacity ring of PowerPoints; the oldest entry drops on overflow.

    Appends are serialized with a lock so the ingestion job stays the single
    writer even when the host runs callbacks on other threads.
    """

    def __init__(self, capacity: int = 50) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self._capacity = capacity
        self._points: deque[PowerPoint] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._points)

    @property
    def latest(self) -> PowerPoint | None:
        with self._lock:
            return self._points[-1] if self._points else None

    def append(self, point: PowerPoint) -> None:
        with self._lock:
            self._points.append(point)

    def view(self, n: int | None = None) -> HistoryView:
        """Ordered read-only view of the last n points (all when n is None)."""
        with self._lock:
            points = tuple(self._points)
        view = HistoryView(points)
        return view if n is None else view.last(n)

    def delta(self, field_name: str, window: int) -> float:
        return self.view().delta(field_name, window)

    # ── Persistence ─────────────────────────────────────────

    def to_records(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self.view()]

    def restore(self, records: Iterable[dict[str, Any]]) -> int:
        """Append stored records in order, skipping malformed ones.

        Returns the number of points restored.
        """
        restored = 0
        for rec in records:
            try:
                point = PowerPoint.from_dict(rec)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed history record: %r", rec)
                continue
            self.append(point)
            restored += 1
        return restored
