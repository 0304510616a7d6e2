"""Tests for the insight data model."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from power_insight.insights.models import Insight, InsightSource, InsightType, Priority


def test_confidence_must_be_percentage() -> None:
    with pytest.raises(ValueError):
        Insight(id="x", type=InsightType.TIP, title="t", description="d", confidence=101, priority=Priority.LOW)
    with pytest.raises(ValueError):
        Insight(id="x", type=InsightType.TIP, title="t", description="d", confidence=-1, priority=Priority.LOW)


def test_sort_key_orders_priority_then_confidence() -> None:
    def mk(i, p, c):
        return Insight(id=i, type=InsightType.ALERT, title="", description="", confidence=c, priority=p)

    items = [mk("a", Priority.LOW, 99), mk("b", Priority.HIGH, 80), mk("c", Priority.MEDIUM, 90),
             mk("d", Priority.HIGH, 95)]
    assert [i.id for i in sorted(items, key=lambda i: i.sort_key)] == ["d", "b", "c", "a"]


def test_to_dict() -> None:
    ts = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
    data = Insight(
        id="weather-storm", type=InsightType.WEATHER, title="Storm Warning", description="d",
        confidence=95, priority=Priority.HIGH, icon="⛈️", generated_at=ts,
    ).to_dict()
    assert data["type"] == "weather"
    assert data["priority"] == "high"
    assert data["source"] == InsightSource.RULE.value
    assert data["generated_at"] == ts.isoformat()
