"""Domain vocabulary and schemas for weather lookups.

This module defines the shapes that flow between the upstream client, the
lookup orchestrator, the preference store and the HTTP API: enums, the
location/conditions/forecast models and the consolidated view model. No
fetching or interpretation logic lives here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _StrictBaseModel(BaseModel):
    """Base model with strict extra handling."""

    model_config = ConfigDict(extra="forbid")


class _FrozenModel(BaseModel):
    """Immutable value object; replaced wholesale, never edited."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class UnitSystem(str, Enum):
    """Unit system passed to the upstream API as `units`."""
    METRIC = "metric"
    IMPERIAL = "imperial"

    def toggled(self) -> "UnitSystem":
        """Return the other unit system."""
        return UnitSystem.IMPERIAL if self is UnitSystem.METRIC else UnitSystem.METRIC


class LookupStatus(str, Enum):
    """Lifecycle of a single lookup: idle -> loading -> success | not_found | failed."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    # Handed back to the caller of a lookup that a newer request overtook.
    SUPERSEDED = "superseded"


class Coordinates(_FrozenModel):
    """A latitude/longitude pair in decimal degrees."""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)


# A city name or a coordinate pair, used to address the upstream API.
Locator = Union[str, Coordinates]


def same_locator(a: Optional[Locator], b: Optional[Locator]) -> bool:
    """Compare locators; city names match case-insensitively."""
    if a is None or b is None:
        return False
    if isinstance(a, str) and isinstance(b, str):
        return a.strip().casefold() == b.strip().casefold()
    return a == b


class Location(_FrozenModel):
    """Resolved place a view belongs to."""
    name: str
    country: str = ""
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class CurrentConditions(_StrictBaseModel):
    """Current observation for a location."""
    observed_at: int
    temperature: float
    feels_like: float
    humidity: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_deg: Optional[float] = None
    visibility: Optional[int] = None
    cloud_cover: Optional[float] = None
    condition_id: Optional[int] = None
    condition_main: str = ""
    description: str = ""
    icon_code: str = ""
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    timezone_offset: int = 0


class ForecastEntry(_StrictBaseModel):
    """One 3-hour forecast sample."""
    timestamp: int
    temperature: float
    condition_id: Optional[int] = None
    description: str = ""
    icon_code: str = ""
    pop: float = 0.0


class AirQualitySample(_StrictBaseModel):
    """Air-quality category (1-5) and pollutant concentrations in µg/m³."""
    city: str
    country: str = ""
    aqi: int
    sampled_at: Optional[int] = None
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None
    co: Optional[float] = None
    no: Optional[float] = None
    no2: Optional[float] = None
    o3: Optional[float] = None
    so2: Optional[float] = None
    nh3: Optional[float] = None


class WeatherAlert(_StrictBaseModel):
    """Upstream weather alert; read-only and never persisted."""
    sender: str = ""
    event: str
    description: str = ""
    start: int
    end: int


class CustomAlertRule(_StrictBaseModel):
    """User-defined alert threshold, persisted across restarts."""
    id: int
    temperature: float
    condition: str
    active: bool = True


class WeatherView(_StrictBaseModel):
    """Everything shown for one location, replaced as a unit on each lookup."""
    location: Location
    units: UnitSystem
    locator: Locator
    current: CurrentConditions
    hourly: List[ForecastEntry] = Field(default_factory=list)
    daily: List[ForecastEntry] = Field(default_factory=list)
    air_quality: Optional[AirQualitySample] = None
    alerts: List[WeatherAlert] = Field(default_factory=list)
    fetched_at: datetime


class LookupOutcome(_StrictBaseModel):
    """Result handed back to whoever started a lookup."""
    status: LookupStatus
    request_id: int
    view: Optional[WeatherView] = None
    error_message: Optional[str] = None


class DashboardState(_StrictBaseModel):
    """Snapshot of the orchestrator's view state."""
    status: LookupStatus = LookupStatus.IDLE
    error: Optional[str] = None
    units: UnitSystem = UnitSystem.METRIC
    view: Optional[WeatherView] = None
    current_location: Optional[Location] = None
