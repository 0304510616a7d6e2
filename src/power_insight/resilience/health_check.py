"""Health tracking for the pipeline's jobs and external providers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ComponentHealth:
    """Health state of one job or provider."""

    name: str
    healthy: bool = True
    last_success: float = 0.0
    last_failure: float = 0.0
    consecutive_failures: int = 0
    total_failures: int = 0
    last_error: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "healthy": self.healthy,
            "consecutive_failures": self.consecutive_failures,
            "total_failures": self.total_failures,
            "last_error": self.last_error,
        }


class HealthChecker:
    """Marks a component unhealthy after N consecutive failures.

    A single success restores it.
    """

    def __init__(self, max_consecutive_failures: int = 3) -> None:
        self._max_failures = max_consecutive_failures
        self._components: dict[str, ComponentHealth] = {}

    def register(self, name: str) -> None:
        self._components[name] = ComponentHealth(name=name, last_success=time.monotonic())

    def record_success(self, name: str) -> None:
        if name not in self._components:
            self.register(name)
        c = self._components[name]
        if not c.healthy:
            logger.info("'%s' recovered after %d failures", name, c.consecutive_failures)
        c.healthy = True
        c.last_success = time.monotonic()
        c.consecutive_failures = 0

    def record_failure(self, name: str, error: str = "") -> None:
        if name not in self._components:
            self.register(name)
        c = self._components[name]
        c.last_failure = time.monotonic()
        c.consecutive_failures += 1
        c.total_failures += 1
        c.last_error = error

        if c.healthy and c.consecutive_failures >= self._max_failures:
            c.healthy = False
            logger.warning(
                "'%s' marked unhealthy (%d consecutive failures): %s",
                name, c.consecutive_failures, error,
            )

    def is_healthy(self, name: str) -> bool:
        c = self._components.get(name)
        return c.healthy if c else True  # unknown components assumed healthy

    def get_unhealthy(self) -> list[str]:
        return [name for name, c in self._components.items() if not c.healthy]

    def get_health(self, name: str) -> ComponentHealth | None:
        return self._components.get(name)

    def status(self) -> dict[str, dict]:
        return {name: c.to_dict() for name, c in self._components.items()}
