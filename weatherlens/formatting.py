"""Pure display helpers: icons, AQI categories, compass points, moon phase and time strings."""
from __future__ import annotations

import datetime as dt
import math
from types import MappingProxyType
from typing import Mapping, NamedTuple, Optional
from urllib.parse import urlencode

from weatherlens.domain import Coordinates, UnitSystem

DEFAULT_WEATHER_ICON = "🌤️"

# Keyed by the first two characters of an OpenWeatherMap icon code ("10d" -> "10").
WEATHER_ICONS: Mapping[str, str] = MappingProxyType({
    "01": "☀️",   # clear sky
    "02": "⛅",   # few clouds
    "03": "☁️",   # scattered clouds
    "04": "☁️",   # broken clouds
    "09": "🌧️",   # shower rain
    "10": "🌦️",   # rain
    "11": "⛈️",   # thunderstorm
    "13": "❄️",   # snow
    "50": "🌫️",   # mist
})


class AqiCategory(NamedTuple):
    label: str
    color: str
    health: str


UNKNOWN_AQI = AqiCategory("Unknown", "#999", "No health information available.")

AQI_CATEGORIES: Mapping[int, AqiCategory] = MappingProxyType({
    1: AqiCategory(
        "Good", "#00E400",
        "Air quality is considered satisfactory, and air pollution poses little or no risk.",
    ),
    2: AqiCategory(
        "Fair", "#FFFF00",
        "Air quality is acceptable; however, some pollutants may be a concern for a small number of people.",
    ),
    3: AqiCategory(
        "Moderate", "#FF7E00",
        "Members of sensitive groups may experience health effects. The general public is not likely to be affected.",
    ),
    4: AqiCategory(
        "Poor", "#FF0000",
        "Everyone may begin to experience health effects; members of sensitive groups may experience more serious effects.",
    ),
    5: AqiCategory(
        "Very Poor", "#8F3F97",
        "Health warnings of emergency conditions. The entire population is more likely to be affected.",
    ),
})

COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)


class MoonPhase(NamedTuple):
    name: str
    icon: str


SYNODIC_MONTH_DAYS = 29.5306

# Upper bound (days into the cycle) for each phase bucket.
_MOON_PHASES = (
    (3.69, MoonPhase("New Moon", "🌑")),
    (7.38, MoonPhase("Waxing Crescent", "🌒")),
    (11.07, MoonPhase("First Quarter", "🌓")),
    (14.76, MoonPhase("Waxing Gibbous", "🌔")),
    (18.45, MoonPhase("Full Moon", "🌕")),
    (22.14, MoonPhase("Waning Gibbous", "🌖")),
    (25.83, MoonPhase("Last Quarter", "🌗")),
    (29.52, MoonPhase("Waning Crescent", "🌘")),
)

_UNIT_SYMBOLS = {UnitSystem.METRIC: "°C", UnitSystem.IMPERIAL: "°F"}
_SPEED_UNITS = {UnitSystem.METRIC: "m/s", UnitSystem.IMPERIAL: "mph"}


def weather_icon(icon_code: object) -> str:
    """Map an OpenWeatherMap icon code to a glyph, falling back to a sun-behind-cloud."""
    if icon_code is None:
        return DEFAULT_WEATHER_ICON
    return WEATHER_ICONS.get(str(icon_code)[:2], DEFAULT_WEATHER_ICON)


def aqi_description(aqi: object) -> AqiCategory:
    """Return label, color and health advice for an AQI category 1-5."""
    if isinstance(aqi, bool) or not isinstance(aqi, int):
        return UNKNOWN_AQI
    return AQI_CATEGORIES.get(aqi, UNKNOWN_AQI)


def wind_direction(degrees: float) -> str:
    """Bucket a bearing into one of 16 compass points (halves round up)."""
    index = math.floor(degrees / 22.5 + 0.5) % 16
    return COMPASS_POINTS[index]


def _to_datetime(timestamp: int | float, utc_offset: int = 0) -> dt.datetime:
    tz = dt.timezone(dt.timedelta(seconds=utc_offset))
    return dt.datetime.fromtimestamp(timestamp, tz=tz)


def moon_phase(timestamp: int | float, utc_offset: int = 0) -> MoonPhase:
    """
    Approximate the moon phase for the calendar day of `timestamp`.

    This is a rough rule of thumb built from year/month/day and the mean
    synodic month, not an ephemeris; results can be off by a phase or two.
    """
    day = _to_datetime(timestamp, utc_offset)
    phase = ((day.year * 12.368 + day.month) * SYNODIC_MONTH_DAYS + day.day) % SYNODIC_MONTH_DAYS
    for upper, moon in _MOON_PHASES:
        if phase < upper:
            return moon
    return _MOON_PHASES[0][1]


def format_time(timestamp: int | float, utc_offset: int = 0) -> str:
    """e.g. '07:05 AM'"""
    return _to_datetime(timestamp, utc_offset).strftime("%I:%M %p")


def format_hour(timestamp: int | float, utc_offset: int = 0) -> str:
    """e.g. '07 AM'"""
    return _to_datetime(timestamp, utc_offset).strftime("%I %p")


def format_date(timestamp: int | float, utc_offset: int = 0) -> str:
    """e.g. 'Mon, Jan 1'"""
    moment = _to_datetime(timestamp, utc_offset)
    return f"{moment:%a, %b} {moment.day}"


def format_datetime(timestamp: int | float, utc_offset: int = 0) -> str:
    """e.g. 'Mon, Jan 1 07:05 AM', used for alert windows."""
    return f"{format_date(timestamp, utc_offset)} {format_time(timestamp, utc_offset)}"


def format_pop(pop: Optional[float]) -> str:
    """Precipitation probability (0-1) as a whole percentage."""
    if not pop or pop <= 0:
        return "0%"
    return f"{round(pop * 100)}%"


def unit_symbol(units: UnitSystem) -> str:
    return _UNIT_SYMBOLS[UnitSystem(units)]


def speed_unit(units: UnitSystem) -> str:
    return _SPEED_UNITS[UnitSystem(units)]


def weather_map_url(coords: Coordinates, base_url: str = "https://openweathermap.org/weathermap") -> str:
    """Link to the OpenWeatherMap temperature layer centred on `coords`."""
    params = {
        "basemap": "map",
        "cities": "true",
        "layer": "temperature",
        "lat": coords.latitude,
        "lon": coords.longitude,
        "zoom": 10,
    }
    return f"{base_url}?{urlencode(params)}"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_temperature(value: Optional[float], units: UnitSystem) -> str:
    """e.g. '21°C'"""
    if value is None:
        return ""
    return f"{round_half_up(value)}{unit_symbol(units)}"


def format_wind(speed: Optional[float], degrees: Optional[float], units: UnitSystem) -> str:
    """e.g. '3.6 m/s NNE'; the compass point is omitted when the bearing is unknown."""
    if speed is None:
        return ""
    text = f"{speed:g} {speed_unit(units)}"
    if degrees is not None:
        text = f"{text} {wind_direction(degrees)}"
    return text
