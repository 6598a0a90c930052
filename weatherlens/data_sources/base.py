"""Interfaces and shared shapes for weather data sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

from weatherlens.domain import Coordinates, Locator, UnitSystem


@dataclass
class RawWeatherBundle:
    """Raw upstream payloads gathered for one lookup."""
    coordinates: Coordinates
    current: Dict[str, Any]
    forecast: Dict[str, Any]
    air_quality: Dict[str, Any]
    alerts: List[Dict[str, Any]] = field(default_factory=list)


class WeatherDataSource(Protocol):
    """Interface for anything that can serve a lookup's weather data."""

    async def fetch_bundle(self, locator: Locator, units: UnitSystem) -> RawWeatherBundle:
        """Fetch current conditions, forecast, air quality and alerts for one locator."""
        ...

    async def reverse_geocode(self, coords: Coordinates) -> List[Dict[str, Any]]:
        """Return nearby places for a coordinate pair, best match first."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...
