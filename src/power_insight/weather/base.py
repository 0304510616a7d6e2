"""Weather context models and provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

from power_insight.weather.codes import describe_weather_code


@dataclass(frozen=True)
class WeatherSnapshot:
    """Current ambient conditions at the installation."""

    temperature_c: float
    weather_code: int
    humidity_pct: float = 0.0
    wind_speed_ms: float = 0.0
    is_day: bool = True
    description: str = ""
    icon: str = ""
    observed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_code(
        cls,
        temperature_c: float,
        weather_code: int,
        *,
        humidity_pct: float = 0.0,
        wind_speed_ms: float = 0.0,
        is_day: bool = True,
        observed_at: datetime | None = None,
    ) -> WeatherSnapshot:
        """Build a snapshot whose description and glyph come from the WMO table."""
        description, icon = describe_weather_code(weather_code, is_day)
        return cls(
            temperature_c=temperature_c,
            weather_code=weather_code,
            humidity_pct=humidity_pct,
            wind_speed_ms=wind_speed_ms,
            is_day=is_day,
            description=description,
            icon=icon,
            observed_at=observed_at or datetime.now(timezone.utc),
        )


class WeatherProvider(ABC):
    """Abstract base for current-conditions providers."""

    @abstractmethod
    async def fetch_current(self) -> WeatherSnapshot:
        """Fetch current weather conditions."""
        ...

    async def close(self) -> None:
        return None
