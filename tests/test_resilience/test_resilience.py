"""Tests for job and provider health tracking."""

from __future__ import annotations

from power_insight.resilience.health_check import HealthChecker


class TestHealthChecker:
    def test_initial_state_healthy(self) -> None:
        checker = HealthChecker()
        checker.register("telemetry")
        assert checker.is_healthy("telemetry") is True
        assert checker.get_unhealthy() == []

    def test_single_failure_stays_healthy(self) -> None:
        checker = HealthChecker(max_consecutive_failures=3)
        checker.record_failure("weather", "timeout")
        assert checker.is_healthy("weather") is True

    def test_consecutive_failures_mark_unhealthy(self) -> None:
        checker = HealthChecker(max_consecutive_failures=3)
        for _ in range(3):
            checker.record_failure("weather", "timeout")
        assert checker.is_healthy("weather") is False
        assert checker.get_unhealthy() == ["weather"]

    def test_success_recovers(self) -> None:
        checker = HealthChecker(max_consecutive_failures=2)
        checker.record_failure("weather", "e1")
        checker.record_failure("weather", "e2")
        checker.record_success("weather")
        health = checker.get_health("weather")
        assert health.healthy is True
        assert health.consecutive_failures == 0
        assert health.total_failures == 2
        assert health.last_error == "e2"

    def test_unknown_component_assumed_healthy(self) -> None:
        assert HealthChecker().is_healthy("anything") is True

    def test_status(self) -> None:
        checker = HealthChecker(max_consecutive_failures=1)
        checker.register("insights")
        checker.record_failure("telemetry", "no file")
        status = checker.status()
        assert status["insights"]["healthy"] is True
        assert status["telemetry"] == {
            "name": "telemetry",
            "healthy": False,
            "consecutive_failures": 1,
            "total_failures": 1,
            "last_error": "no file",
        }
