"""Tests for persisted user preferences."""

from __future__ import annotations

from power_insight.db.repository import Repository
from power_insight.insights.models import Insight, InsightType, Priority
from power_insight.insights.preferences import PreferencesManager, UserPreferences


def _insight(insight_id: str = "battery-temp", priority=Priority.HIGH, type_=InsightType.ALERT) -> Insight:
    return Insight(
        id=insight_id, type=type_, title="t", description="d", confidence=90, priority=priority,
    )


class TestUserPreferences:
    def test_defaults_allow_everything(self) -> None:
        prefs = UserPreferences()
        assert prefs.allows(_insight())
        assert prefs.allows(_insight("peak-hours", Priority.LOW, InsightType.TIP))

    def test_dismissed_and_filters(self) -> None:
        prefs = UserPreferences(
            dismissed={"battery-temp"},
            priorities={Priority.HIGH, Priority.MEDIUM},
            types={InsightType.ALERT, InsightType.TIP},
        )
        assert not prefs.allows(_insight("battery-temp"))
        assert prefs.allows(_insight("battery-drain"))
        assert not prefs.allows(_insight("peak-hours", Priority.LOW, InsightType.TIP))
        assert not prefs.allows(_insight("weather-storm", Priority.HIGH, InsightType.WEATHER))

    def test_dict_round_trip(self) -> None:
        prefs = UserPreferences(
            dismissed={"a", "b"}, priorities={Priority.LOW}, types={InsightType.WEATHER},
        )
        assert UserPreferences.from_dict(prefs.to_dict()) == prefs

    def test_unknown_values_ignored(self) -> None:
        prefs = UserPreferences.from_dict({"priorities": ["high", "urgent"], "types": ["gossip"]})
        assert prefs.priorities == {Priority.HIGH}
        assert prefs.types == set()


class TestPreferencesManager:
    async def test_persisted_state_round_trips(self, repo: Repository) -> None:
        mgr = PreferencesManager(repo)
        await mgr.load()
        assert await mgr.dismiss("battery-temp") is True
        assert await mgr.dismiss("battery-temp") is False
        await mgr.set_priority_filter(["high", Priority.MEDIUM])
        await mgr.set_type_filter([InsightType.ALERT])

        reloaded = await PreferencesManager(repo).load()
        assert reloaded == mgr.preferences
        assert reloaded.dismissed == {"battery-temp"}
        assert reloaded.priorities == {Priority.HIGH, Priority.MEDIUM}
        assert reloaded.types == {InsightType.ALERT}

    async def test_load_without_record_gives_defaults(self, repo: Repository) -> None:
        assert await PreferencesManager(repo).load() == UserPreferences()

    async def test_reset(self, repo: Repository) -> None:
        mgr = PreferencesManager(repo)
        await mgr.dismiss("solar-low")
        await mgr.set_priority_filter([Priority.LOW])
        await mgr.reset()
        assert mgr.preferences == UserPreferences()
        assert await PreferencesManager(repo).load() == UserPreferences()
