"""Weather data sources for lookups."""

from .base import RawWeatherBundle, WeatherDataSource
from .openweather_client import OpenWeatherClient, coordinates_from_current

__all__ = [
    "OpenWeatherClient",
    "RawWeatherBundle",
    "WeatherDataSource",
    "coordinates_from_current",
]
