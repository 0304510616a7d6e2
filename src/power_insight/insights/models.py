"""Insight data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class InsightType(str, Enum):
    OPTIMIZATION = "optimization"
    PREDICTION = "prediction"
    ALERT = "alert"
    TIP = "tip"
    WEATHER = "weather"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank: lower sorts first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class InsightSource(str, Enum):
    RULE = "rule"
    PREDICTOR = "predictor"


@dataclass(frozen=True)
class Insight:
    """A single prioritized, human-readable observation.

    ``id`` names the cause, not the occurrence, so the same condition in two
    cycles yields the same id and dismissals match exactly.
    """

    id: str
    type: InsightType
    title: str
    description: str
    confidence: float  # 0-100
    priority: Priority
    icon: str | None = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: InsightSource = InsightSource.RULE

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"Insight confidence out of range: {self.confidence}")

    @property
    def sort_key(self) -> tuple[int, float]:
        return (self.priority.rank, -self.confidence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "confidence": self.confidence,
            "priority": self.priority.value,
            "icon": self.icon,
            "generated_at": self.generated_at.isoformat(),
            "source": self.source.value,
        }
