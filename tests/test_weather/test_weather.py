"""Tests for weather code mapping and the Open-Meteo provider."""

from __future__ import annotations

import httpx
import pytest

from power_insight.config.schema import WeatherProviderConfig
from power_insight.weather.base import WeatherSnapshot
from power_insight.weather.codes import WMO_CODES, describe_weather_code
from power_insight.weather.openmeteo import FORECAST_URL, OpenMeteoProvider

MAPPED = [0, 1, 2, 3, 45, 51, 53, 55, 61, 63, 65, 71, 73, 75, 80, 81, 82, 85, 86, 95, 96, 99]


class _DummyResponse:
    def __init__(self, payload: dict, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", FORECAST_URL)
            raise httpx.HTTPStatusError(
                "error", request=request, response=httpx.Response(self.status_code, request=request),
            )

    def json(self) -> dict:
        return self._payload


class TestWeatherCodes:
    def test_table_covers_known_codes(self) -> None:
        assert sorted(WMO_CODES) == MAPPED
        for code in MAPPED:
            description, icon = describe_weather_code(code)
            assert description != "Unknown weather"
            assert icon

    @pytest.mark.parametrize("code", [4, 50, 100, -1])
    def test_unmapped_code(self, code) -> None:
        assert describe_weather_code(code) == ("Unknown weather", "❓")

    def test_night_glyph_for_clear_sky(self) -> None:
        assert describe_weather_code(0, is_day=False) == ("Clear sky", "🌙")
        assert describe_weather_code(0, is_day=True)[1] == "☀️"
        assert describe_weather_code(95, is_day=False)[1] == describe_weather_code(95)[1]

    def test_snapshot_from_code(self) -> None:
        snap = WeatherSnapshot.from_code(31.0, 99, humidity_pct=80.0)
        assert snap.description == "Thunderstorm with heavy hail"
        assert snap.icon == "⛈️"
        assert snap.observed_at.tzinfo is not None


class TestOpenMeteoProvider:
    async def test_fetch_current_request_and_parsing(self) -> None:
        provider = OpenMeteoProvider(WeatherProviderConfig(latitude=6.5, longitude=3.4))
        captured: dict = {}

        async def _fake_get(url: str, params: dict | None = None):
            captured["url"] = url
            captured["params"] = params
            return _DummyResponse({
                "current": {
                    "time": "2026-03-02T12:00",
                    "temperature_2m": 33.4,
                    "relative_humidity_2m": 71,
                    "wind_speed_10m": 3.2,
                    "weather_code": 3,
                    "is_day": 1,
                },
            })

        provider._client.get = _fake_get  # type: ignore[method-assign]
        snap = await provider.fetch_current()

        assert captured["url"] == FORECAST_URL
        assert captured["params"]["latitude"] == 6.5
        assert captured["params"]["wind_speed_unit"] == "ms"
        assert "weather_code" in captured["params"]["current"]
        assert snap.temperature_c == 33.4
        assert snap.humidity_pct == 71.0
        assert snap.wind_speed_ms == 3.2
        assert snap.weather_code == 3
        assert snap.description == "Overcast"
        assert snap.is_day is True
        assert snap.observed_at.isoformat() == "2026-03-02T12:00:00+00:00"

        await provider.close()

    async def test_night_reading(self) -> None:
        snap = OpenMeteoProvider._parse_current(
            {"current": {"temperature_2m": 24.0, "weather_code": 0, "is_day": 0}},
        )
        assert snap.is_day is False
        assert snap.icon == "🌙"

    @pytest.mark.parametrize("payload", [{}, {"current": None}, {"current": {"temperature_2m": 20.0}}])
    def test_missing_fields_raise(self, payload) -> None:
        with pytest.raises(ValueError):
            OpenMeteoProvider._parse_current(payload)

    async def test_http_error_propagates(self) -> None:
        provider = OpenMeteoProvider(WeatherProviderConfig())

        async def _fake_get(url: str, params: dict | None = None):
            return _DummyResponse({}, status_code=503)

        provider._client.get = _fake_get  # type: ignore[method-assign]
        with pytest.raises(httpx.HTTPStatusError):
            await provider.fetch_current()
        await provider.close()
