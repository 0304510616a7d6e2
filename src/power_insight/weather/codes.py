"""WMO weather interpretation codes as used by Open-Meteo."""

from __future__ import annotations

UNKNOWN_DESCRIPTION = "Unknown weather"
UNKNOWN_ICON = "❓"

# code -> (description, day glyph)
WMO_CODES: dict[int, tuple[str, str]] = {
    0: ("Clear sky", "☀️"),
    1: ("Mainly clear", "🌤️"),
    2: ("Partly cloudy", "⛅"),
    3: ("Overcast", "☁️"),
    45: ("Fog", "🌫️"),
    51: ("Light drizzle", "🌦️"),
    53: ("Moderate drizzle", "🌦️"),
    55: ("Dense drizzle", "🌧️"),
    61: ("Slight rain", "🌧️"),
    63: ("Moderate rain", "🌧️"),
    65: ("Heavy rain", "🌧️"),
    71: ("Slight snow fall", "🌨️"),
    73: ("Moderate snow fall", "🌨️"),
    75: ("Heavy snow fall", "❄️"),
    80: ("Slight rain showers", "🌦️"),
    81: ("Moderate rain showers", "🌧️"),
    82: ("Violent rain showers", "⛈️"),
    85: ("Slight snow showers", "🌨️"),
    86: ("Heavy snow showers", "❄️"),
    95: ("Thunderstorm", "⛈️"),
    96: ("Thunderstorm with slight hail", "⛈️"),
    99: ("Thunderstorm with heavy hail", "⛈️"),
}

# Clear-sky codes get a moon at night
_NIGHT_ICONS: dict[int, str] = {0: "🌙", 1: "🌙"}

CLOUDY_CODES = frozenset({2, 3, 45})
RAIN_CODES = frozenset({51, 53, 55, 61, 63, 65, 80, 81, 82})
THUNDERSTORM_CODES = frozenset({95, 96, 99})


def describe_weather_code(code: int, is_day: bool = True) -> tuple[str, str]:
    """Return (description, icon) for a WMO code; unmapped codes are 'Unknown weather'."""
    if code not in WMO_CODES:
        return UNKNOWN_DESCRIPTION, UNKNOWN_ICON
    description, icon = WMO_CODES[code]
    if not is_day:
        icon = _NIGHT_ICONS.get(code, icon)
    return description, icon
