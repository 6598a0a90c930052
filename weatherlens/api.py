"""HTTP API for the weather dashboard."""

import hmac
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from .alert_rules import matching_rules
from .config import settings
from .dashboard import Dashboard
from .domain import (
    AirQualitySample,
    CurrentConditions,
    CustomAlertRule,
    ForecastEntry,
    LookupOutcome,
    LookupStatus,
    UnitSystem,
    WeatherAlert,
    WeatherView,
)
from .errors import LocationError, UpstreamError
from .formatting import (
    aqi_description,
    format_date,
    format_datetime,
    format_hour,
    format_pop,
    format_temperature,
    format_time,
    format_wind,
    moon_phase,
    speed_unit,
    unit_symbol,
    weather_icon,
    weather_map_url,
)
from .location_resolver import ReportedPositionProvider
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")

POPULAR_CITIES = (
    "London", "New York", "Tokyo", "Paris", "Sydney",
    "Mumbai", "Dubai", "Singapore", "Berlin", "Rome",
    "Barcelona", "Amsterdam", "Vienna", "Prague", "Budapest",
)


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate the X-API-Key header when a service key is configured."""
    if not settings.service_api_key:
        return
    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
    if hmac.compare_digest(str(x_api_key), str(settings.service_api_key)):
        return
    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def get_dashboard(request: Request) -> Dashboard:
    """Dependency returning the process-wide dashboard built at startup."""
    dashboard = getattr(request.app.state, "dashboard", None)
    if dashboard is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Dashboard not initialised")
    return dashboard


router = APIRouter(dependencies=[Depends(require_api_key)])


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class CityLookupRequest(BaseModel):
    city: str


class LocationLookupRequest(BaseModel):
    """What the browser's geolocation call produced."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    error_code: Optional[str] = None


class UnitsRequest(BaseModel):
    units: UnitSystem


class NewAlertRequest(BaseModel):
    temperature: float
    condition: str = Field(min_length=1)


class AlertActiveRequest(BaseModel):
    active: bool


class CurrentDisplay(BaseModel):
    """Display strings for current conditions."""
    icon: str
    description: str
    temperature: str
    feels_like: str
    humidity: Optional[str] = None
    pressure: Optional[str] = None
    wind: Optional[str] = None
    visibility: Optional[str] = None
    cloud_cover: Optional[str] = None
    sunrise: Optional[str] = None
    sunset: Optional[str] = None
    moon_phase: str
    moon_icon: str


class ForecastDisplay(BaseModel):
    timestamp: int
    label: str
    icon: str
    temperature: str
    description: str
    precipitation: str


class AirQualityDisplay(BaseModel):
    city: str
    country: str
    aqi: int
    label: str
    color: str
    health: str
    components: Dict[str, float]


class AlertDisplay(BaseModel):
    event: str
    sender: str
    description: str
    window: str


class ViewDisplay(BaseModel):
    """A WeatherView rendered into display-ready strings."""
    city: str
    country: str
    latitude: float
    longitude: float
    units: UnitSystem
    unit_symbol: str
    speed_unit: str
    current: CurrentDisplay
    hourly: List[ForecastDisplay]
    daily: List[ForecastDisplay]
    air_quality: Optional[AirQualityDisplay] = None
    alerts: List[AlertDisplay]
    map_url: str
    fetched_at: str


class CustomAlertDisplay(CustomAlertRule):
    triggered: bool = False


class DashboardResponse(BaseModel):
    status: LookupStatus
    error: Optional[str] = None
    units: UnitSystem
    using_current_location: bool = False
    view: Optional[ViewDisplay] = None
    history: List[str]
    custom_alerts: List[CustomAlertDisplay]
    popular_cities: List[str]


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:] if text else ""


def _render_current(current: CurrentConditions, units: UnitSystem) -> CurrentDisplay:
    offset = current.timezone_offset
    moon = moon_phase(current.observed_at, offset)
    return CurrentDisplay(
        icon=weather_icon(current.icon_code),
        description=_capitalize(current.description),
        temperature=format_temperature(current.temperature, units),
        feels_like=format_temperature(current.feels_like, units),
        humidity=f"{current.humidity:g}%" if current.humidity is not None else None,
        pressure=f"{current.pressure:g} hPa" if current.pressure is not None else None,
        wind=format_wind(current.wind_speed, current.wind_deg, units) or None,
        visibility=f"{current.visibility / 1000:.1f} km" if current.visibility is not None else None,
        cloud_cover=f"{current.cloud_cover:g}%" if current.cloud_cover is not None else None,
        sunrise=format_time(current.sunrise, offset) if current.sunrise else None,
        sunset=format_time(current.sunset, offset) if current.sunset else None,
        moon_phase=moon.name,
        moon_icon=moon.icon,
    )


def _render_forecast(entry: ForecastEntry, units: UnitSystem, offset: int, *, daily: bool) -> ForecastDisplay:
    label = format_date(entry.timestamp, offset) if daily else format_hour(entry.timestamp, offset)
    return ForecastDisplay(
        timestamp=entry.timestamp,
        label=label,
        icon=weather_icon(entry.icon_code),
        temperature=format_temperature(entry.temperature, units),
        description=entry.description,
        precipitation=format_pop(entry.pop),
    )


def _render_air_quality(sample: Optional[AirQualitySample]) -> Optional[AirQualityDisplay]:
    if sample is None:
        return None
    category = aqi_description(sample.aqi)
    components = {
        name: value
        for name, value in sample.model_dump(include={"pm2_5", "pm10", "co", "no", "no2", "o3", "so2", "nh3"}).items()
        if value is not None
    }
    return AirQualityDisplay(
        city=sample.city,
        country=sample.country,
        aqi=sample.aqi,
        label=category.label,
        color=category.color,
        health=category.health,
        components=components,
    )


def _render_alert(alert: WeatherAlert, offset: int) -> AlertDisplay:
    return AlertDisplay(
        event=alert.event,
        sender=alert.sender,
        description=alert.description,
        window=f"{format_datetime(alert.start, offset)} - {format_datetime(alert.end, offset)}",
    )


def render_view(view: WeatherView, map_base_url: str) -> ViewDisplay:
    """Convert a WeatherView into the serialized API shape."""
    units = view.units
    offset = view.current.timezone_offset
    return ViewDisplay(
        city=view.location.name,
        country=view.location.country,
        latitude=view.location.latitude,
        longitude=view.location.longitude,
        units=units,
        unit_symbol=unit_symbol(units),
        speed_unit=speed_unit(units),
        current=_render_current(view.current, units),
        hourly=[_render_forecast(e, units, offset, daily=False) for e in view.hourly],
        daily=[_render_forecast(e, units, offset, daily=True) for e in view.daily],
        air_quality=_render_air_quality(view.air_quality),
        alerts=[_render_alert(a, offset) for a in view.alerts],
        map_url=weather_map_url(view.location.coordinates, map_base_url),
        fetched_at=view.fetched_at.isoformat(),
    )


def _render_custom_alerts(dashboard: Dashboard) -> List[CustomAlertDisplay]:
    rules = dashboard.preferences.alerts
    view = dashboard.lookups.view
    fired = {rule.id for rule in matching_rules(rules, view.current if view else None)}
    return [CustomAlertDisplay(**rule.model_dump(), triggered=rule.id in fired) for rule in rules]


def build_dashboard_response(dashboard: Dashboard) -> DashboardResponse:
    state = dashboard.lookups.snapshot()
    return DashboardResponse(
        status=state.status,
        error=state.error,
        units=state.units,
        using_current_location=state.current_location is not None,
        view=render_view(state.view, dashboard.settings.weather_map_url) if state.view else None,
        history=dashboard.preferences.history,
        custom_alerts=_render_custom_alerts(dashboard),
        popular_cities=list(POPULAR_CITIES),
    )


def _respond(outcome: Optional[LookupOutcome], dashboard: Dashboard) -> DashboardResponse:
    """Map a lookup outcome onto an HTTP response."""
    if outcome is not None:
        if outcome.status is LookupStatus.NOT_FOUND:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=outcome.error_message)
        if outcome.status is LookupStatus.FAILED:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=outcome.error_message)
        if outcome.status is LookupStatus.SUPERSEDED:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Superseded by a newer lookup.")
    return build_dashboard_response(dashboard)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard_state(dashboard: Dashboard = Depends(get_dashboard)):
    """Return the current view, history and custom alerts."""
    return build_dashboard_response(dashboard)


@router.post("/lookup", response_model=DashboardResponse)
async def lookup_city(req: CityLookupRequest, dashboard: Dashboard = Depends(get_dashboard)):
    """Look up a city by name."""
    city = req.city.strip()
    if not city:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="City must not be empty.")
    logger.info(f"Lookup requested for city '{city}'")
    outcome = await dashboard.lookups.lookup_city(city)
    return _respond(outcome, dashboard)


@router.post("/lookup/location", response_model=DashboardResponse)
async def lookup_location(req: LocationLookupRequest, dashboard: Dashboard = Depends(get_dashboard)):
    """Look up the device position reported by the browser."""
    provider = ReportedPositionProvider(req.latitude, req.longitude, req.error_code)
    try:
        outcome = await dashboard.resolver.lookup_current_location(provider)
    except LocationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.user_message)
    except UpstreamError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.user_message)
    return _respond(outcome, dashboard)


@router.post("/units", response_model=DashboardResponse)
async def set_units(req: UnitsRequest, dashboard: Dashboard = Depends(get_dashboard)):
    """Switch unit systems, re-fetching the displayed location."""
    outcome = await dashboard.lookups.set_units(req.units)
    return _respond(outcome, dashboard)


@router.post("/units/toggle", response_model=DashboardResponse)
async def toggle_units(dashboard: Dashboard = Depends(get_dashboard)):
    """Flip between metric and imperial."""
    outcome = await dashboard.lookups.toggle_units()
    return _respond(outcome, dashboard)


@router.get("/history", response_model=List[str])
def get_history(dashboard: Dashboard = Depends(get_dashboard)):
    return dashboard.preferences.history


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
def clear_history(dashboard: Dashboard = Depends(get_dashboard)):
    dashboard.preferences.clear_history()


@router.get("/cities/popular", response_model=List[str])
def popular_cities():
    return list(POPULAR_CITIES)


@router.get("/alerts/custom", response_model=List[CustomAlertDisplay])
def list_custom_alerts(dashboard: Dashboard = Depends(get_dashboard)):
    return _render_custom_alerts(dashboard)


@router.post("/alerts/custom", response_model=CustomAlertRule, status_code=status.HTTP_201_CREATED)
def add_custom_alert(req: NewAlertRequest, dashboard: Dashboard = Depends(get_dashboard)):
    """Create a temperature/condition alert rule."""
    try:
        return dashboard.preferences.add_alert(req.temperature, req.condition)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.delete("/alerts/custom/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_custom_alert(rule_id: int, dashboard: Dashboard = Depends(get_dashboard)):
    if not dashboard.preferences.remove_alert(rule_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown alert rule")


@router.post("/alerts/custom/{rule_id}/active", response_model=CustomAlertRule)
def set_custom_alert_active(rule_id: int, req: AlertActiveRequest, dashboard: Dashboard = Depends(get_dashboard)):
    rule = dashboard.preferences.set_alert_active(rule_id, req.active)
    if rule is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown alert rule")
    return rule
