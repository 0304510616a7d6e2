"""Open-Meteo current weather provider.

Free, no authentication required.
API docs: https://open-meteo.com/en/docs
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import httpx

from power_insight.config.schema import WeatherProviderConfig
from power_insight.weather.base import WeatherProvider, WeatherSnapshot

logger = logging.getLogger(__name__)

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code,is_day"


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo REST API current-conditions provider."""

    def __init__(self, config: WeatherProviderConfig) -> None:
        self._config = config
        self._client = httpx.AsyncClient(timeout=config.timeout_seconds)

    async def fetch_current(self) -> WeatherSnapshot:
        """Fetch current conditions from Open-Meteo.

        Raises:
            httpx.HTTPError: on transport failure or a non-2xx response.
            ValueError: if the response has no usable current block.
        """
        params = {
            "latitude": self._config.latitude,
            "longitude": self._config.longitude,
            "current": CURRENT_FIELDS,
            "wind_speed_unit": "ms",
            "timezone": "UTC",
        }
        resp = await self._client.get(FORECAST_URL, params=params)
        resp.raise_for_status()
        snapshot = self._parse_current(resp.json())
        logger.info(
            "Open-Meteo weather fetched: %.1f°C code=%d (%s)",
            snapshot.temperature_c, snapshot.weather_code, snapshot.description,
        )
        return snapshot

    async def close(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _parse_current(data: dict) -> WeatherSnapshot:
        """Parse the Open-Meteo ``current`` block into a WeatherSnapshot."""
        current = data.get("current")
        if not isinstance(current, dict):
            raise ValueError("Open-Meteo response missing 'current' block")
        if current.get("temperature_2m") is None or current.get("weather_code") is None:
            raise ValueError("Open-Meteo current block missing temperature or weather code")

        observed_at = datetime.now(timezone.utc)
        time_str = current.get("time")
        if time_str:
            observed_at = datetime.fromisoformat(time_str).replace(tzinfo=timezone.utc)

        return WeatherSnapshot.from_code(
            temperature_c=float(current["temperature_2m"]),
            weather_code=int(current["weather_code"]),
            humidity_pct=float(current.get("relative_humidity_2m") or 0.0),
            wind_speed_ms=float(current.get("wind_speed_10m") or 0.0),
            is_day=bool(current.get("is_day", 1)),
            observed_at=observed_at,
        )
