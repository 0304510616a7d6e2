"""Persisted user preferences: dismissed insights and priority/type filters."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from power_insight.db.repository import Repository
from power_insight.insights.models import Insight, InsightType, Priority

logger = logging.getLogger(__name__)


@dataclass
class UserPreferences:
    """Dismissed ids plus the priorities and types the user wants to see."""

    dismissed: set[str] = field(default_factory=set)
    priorities: set[Priority] = field(default_factory=lambda: set(Priority))
    types: set[InsightType] = field(default_factory=lambda: set(InsightType))

    def allows(self, insight: Insight) -> bool:
        return (
            insight.id not in self.dismissed
            and insight.priority in self.priorities
            and insight.type in self.types
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dismissed": sorted(self.dismissed),
            "priorities": sorted(p.value for p in self.priorities),
            "types": sorted(t.value for t in self.types),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserPreferences:
        """Rebuild preferences, ignoring values this version doesn't know."""
        prefs = cls()
        prefs.dismissed = {str(i) for i in data.get("dismissed", [])}
        if "priorities" in data:
            prefs.priorities = {
                Priority(p) for p in data["priorities"] if p in Priority._value2member_map_
            }
        if "types" in data:
            prefs.types = {
                InsightType(t) for t in data["types"] if t in InsightType._value2member_map_
            }
        return prefs


class PreferencesManager:
    """Owns UserPreferences and writes them back on every change."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._prefs = UserPreferences()

    @property
    def preferences(self) -> UserPreferences:
        return self._prefs

    async def load(self) -> UserPreferences:
        record = await self._repo.load_preferences()
        self._prefs = UserPreferences.from_dict(record) if record else UserPreferences()
        logger.info(
            "Preferences loaded: %d dismissed, priorities=%s, types=%s",
            len(self._prefs.dismissed),
            sorted(p.value for p in self._prefs.priorities),
            sorted(t.value for t in self._prefs.types),
        )
        return self._prefs

    async def dismiss(self, insight_id: str) -> bool:
        """Add an id to the dismissed set. Returns False if it was already there."""
        if insight_id in self._prefs.dismissed:
            return False
        self._prefs.dismissed.add(insight_id)
        await self._save()
        logger.info("Insight dismissed: %s", insight_id)
        return True

    async def set_priority_filter(self, priorities: Iterable[Priority | str]) -> None:
        self._prefs.priorities = {Priority(p) for p in priorities}
        await self._save()

    async def set_type_filter(self, types: Iterable[InsightType | str]) -> None:
        self._prefs.types = {InsightType(t) for t in types}
        await self._save()

    async def reset(self) -> None:
        """Clear dismissals and filters."""
        self._prefs = UserPreferences()
        await self._save()
        logger.info("Preferences reset")

    async def _save(self) -> None:
        await self._repo.save_preferences(self._prefs.to_dict())
