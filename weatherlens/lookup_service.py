"""Turn a city name or coordinate pair into one consistent weather view."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Sequence, TypeVar

from weatherlens.data_sources import RawWeatherBundle, WeatherDataSource
from weatherlens.domain import (
    AirQualitySample,
    Coordinates,
    CurrentConditions,
    DashboardState,
    ForecastEntry,
    Location,
    Locator,
    LookupOutcome,
    LookupStatus,
    UnitSystem,
    WeatherAlert,
    WeatherView,
    same_locator,
)
from weatherlens.errors import CityNotFoundError, UpstreamError
from weatherlens.preferences import PreferenceManager
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="lookup_service")

T = TypeVar("T")

CITY_FAILURE_MESSAGE = "An error occurred. Please try again."
LOCATION_FAILURE_MESSAGE = "An error occurred while fetching weather data for your location."


# ---------------------------------------------------------------------------
# Derived forecast views
# ---------------------------------------------------------------------------

def derive_hourly(raw: Sequence[T], count: int = 8) -> List[T]:
    """Next `count` 3-hour samples (8 -> the next 24 hours)."""
    return list(raw[:count])


def derive_daily(raw: Sequence[T], stride: int = 8) -> List[T]:
    """Every `stride`-th sample, roughly one per day for 3-hour data."""
    if stride <= 0:
        raise ValueError("stride must be positive")
    return list(raw[::stride])


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------

def _first_weather(payload: Dict[str, Any]) -> Dict[str, Any]:
    weather = payload.get("weather") or [{}]
    return weather[0] if isinstance(weather[0], dict) else {}


def parse_current(payload: Dict[str, Any]) -> CurrentConditions:
    """Normalize an OpenWeatherMap /weather payload."""
    main = payload["main"]
    weather = _first_weather(payload)
    wind = payload.get("wind") or {}
    sys = payload.get("sys") or {}
    return CurrentConditions(
        observed_at=int(payload.get("dt", 0)),
        temperature=main["temp"],
        feels_like=main.get("feels_like", main["temp"]),
        humidity=main.get("humidity"),
        pressure=main.get("pressure"),
        wind_speed=wind.get("speed"),
        wind_deg=wind.get("deg"),
        visibility=payload.get("visibility"),
        cloud_cover=(payload.get("clouds") or {}).get("all"),
        condition_id=weather.get("id"),
        condition_main=weather.get("main", ""),
        description=weather.get("description", ""),
        icon_code=weather.get("icon", ""),
        sunrise=sys.get("sunrise"),
        sunset=sys.get("sunset"),
        timezone_offset=int(payload.get("timezone", 0) or 0),
    )


def parse_forecast_entry(item: Dict[str, Any]) -> ForecastEntry:
    """Normalize one element of the /forecast `list`."""
    weather = _first_weather(item)
    return ForecastEntry(
        timestamp=int(item["dt"]),
        temperature=item["main"]["temp"],
        condition_id=weather.get("id"),
        description=weather.get("description", ""),
        icon_code=weather.get("icon", ""),
        pop=float(item.get("pop", 0.0) or 0.0),
    )


def parse_air_quality(payload: Dict[str, Any], *, city: str, country: str) -> Optional[AirQualitySample]:
    """Normalize the first /air_pollution sample, tagged with the place it describes."""
    samples = payload.get("list") or []
    if not samples:
        return None
    sample = samples[0]
    components = sample.get("components") or {}
    return AirQualitySample(
        city=city,
        country=country,
        aqi=int(sample["main"]["aqi"]),
        sampled_at=sample.get("dt"),
        pm2_5=components.get("pm2_5"),
        pm10=components.get("pm10"),
        co=components.get("co"),
        no=components.get("no"),
        no2=components.get("no2"),
        o3=components.get("o3"),
        so2=components.get("so2"),
        nh3=components.get("nh3"),
    )


def parse_alert(item: Dict[str, Any]) -> WeatherAlert:
    return WeatherAlert(
        sender=item.get("sender_name", ""),
        event=item.get("event", "Weather alert"),
        description=item.get("description", ""),
        start=int(item["start"]),
        end=int(item["end"]),
    )


def build_weather_view(
    bundle: RawWeatherBundle,
    *,
    locator: Locator,
    units: UnitSystem,
    location_name: Optional[str] = None,
    country: Optional[str] = None,
    hourly_count: int = 8,
    daily_stride: int = 8,
) -> WeatherView:
    """
    Merge the raw payloads of one lookup into a WeatherView.

    Coordinate lookups keep the caller's coordinates and place name; name
    lookups take both from the current-conditions response.
    """
    current_payload = bundle.current
    sys = current_payload.get("sys") or {}

    if isinstance(locator, Coordinates):
        latitude, longitude = locator.latitude, locator.longitude
    else:
        latitude, longitude = bundle.coordinates.latitude, bundle.coordinates.longitude

    location = Location(
        name=location_name or current_payload.get("name") or str(locator),
        country=country or sys.get("country", "") or "",
        latitude=latitude,
        longitude=longitude,
    )

    raw_forecast = [parse_forecast_entry(item) for item in bundle.forecast.get("list", [])]
    alerts = []
    for item in bundle.alerts:
        try:
            alerts.append(parse_alert(item))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug(f"Skipping malformed alert: {exc}")

    return WeatherView(
        location=location,
        units=units,
        locator=locator,
        current=parse_current(current_payload),
        hourly=derive_hourly(raw_forecast, hourly_count),
        daily=derive_daily(raw_forecast, daily_stride),
        air_quality=parse_air_quality(bundle.air_quality, city=location.name, country=location.country),
        alerts=alerts,
        fetched_at=dt.datetime.now(tz=dt.timezone.utc),
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class WeatherLookupService:
    """
    Sequences lookups and owns the displayed view.

    Every lookup takes a token from a counter. When its fetch resolves, the
    result is applied only if no newer lookup has started since; otherwise it
    is dropped and the caller gets a SUPERSEDED outcome.
    """

    def __init__(
        self,
        data_source: WeatherDataSource,
        preferences: Optional[PreferenceManager] = None,
        *,
        units: UnitSystem = UnitSystem.METRIC,
        hourly_count: int = 8,
        daily_stride: int = 8,
    ) -> None:
        self.data_source = data_source
        self.preferences = preferences
        self.units = UnitSystem(units)
        self.hourly_count = hourly_count
        self.daily_stride = daily_stride

        self.view: Optional[WeatherView] = None
        self.status = LookupStatus.IDLE
        self.error: Optional[str] = None
        # Set only while the latest lookup came from device geolocation.
        self.current_location: Optional[Location] = None

        self._request_seq = 0
        self._last_locator: Optional[Locator] = None

    @classmethod
    def from_settings(cls, settings, data_source: WeatherDataSource,
                      preferences: Optional[PreferenceManager] = None) -> "WeatherLookupService":
        return cls(
            data_source,
            preferences,
            units=UnitSystem(settings.default_units),
            hourly_count=settings.hourly_count,
            daily_stride=settings.daily_stride,
        )

    @property
    def latest_request_id(self) -> int:
        return self._request_seq

    def snapshot(self) -> DashboardState:
        return DashboardState(
            status=self.status,
            error=self.error,
            units=self.units,
            view=self.view,
            current_location=self.current_location,
        )

    def begin_lookup(self) -> int:
        """
        Reserve a request id for a lookup whose locator is not known yet.

        Device lookups take their id before geolocation and reverse
        geocoding, so a city search started meanwhile still counts as newer.
        """
        self._request_seq += 1
        self.status = LookupStatus.LOADING
        self.error = None
        logger.info(f"Reserved request {self._request_seq}")
        return self._request_seq

    def record_error(self, message: str, request_id: Optional[int] = None) -> bool:
        """
        Show an error raised outside a fetch (e.g. geolocation) without touching the view.

        With `request_id`, the error is dropped if a newer lookup has started.
        Returns whether the error was applied.
        """
        if request_id is not None and not self._is_current(request_id):
            logger.info(f"Ignoring error from superseded request {request_id}: {message}")
            return False
        self.status = LookupStatus.FAILED
        self.error = message
        return True

    # -- public lookups ------------------------------------------------------

    async def lookup_city(self, name: str) -> LookupOutcome:
        """Look up weather by city name."""
        city = (name or "").strip()
        if not city:
            raise ValueError("City name must not be empty")
        return await self._run_lookup(city, pinned=None, failure_message=CITY_FAILURE_MESSAGE)

    async def lookup_coordinates(
        self,
        coords: Coordinates,
        location_name: Optional[str] = None,
        country: Optional[str] = None,
        *,
        request_id: Optional[int] = None,
    ) -> LookupOutcome:
        """
        Look up weather by coordinates, labelled with an already-resolved place name.

        Pass a `request_id` from `begin_lookup()` to continue a lookup that
        started earlier; it is superseded if anything newer has begun.
        """
        pinned = None
        if location_name:
            pinned = Location(
                name=location_name,
                country=country or "",
                latitude=coords.latitude,
                longitude=coords.longitude,
            )
        return await self._run_lookup(
            coords,
            pinned=pinned,
            location_name=location_name,
            country=country,
            failure_message=LOCATION_FAILURE_MESSAGE,
            request_id=request_id,
        )

    async def set_units(self, units: UnitSystem) -> Optional[LookupOutcome]:
        """
        Switch unit systems and re-fetch what is on screen.

        Returns the re-fetch outcome, or None when nothing needed fetching.
        Values are never converted locally. If the re-fetch fails and the
        previous view stays up, the unit system reverts to that view's units.
        """
        units = UnitSystem(units)
        if units == self.units:
            return None
        logger.info(f"Switching unit system {self.units.value} -> {units.value}")
        self.units = units

        has_subject = self.view is not None or self.status is LookupStatus.LOADING
        if self._last_locator is None or not has_subject:
            return None

        if self.current_location is not None:
            loc = self.current_location
            outcome = await self.lookup_coordinates(loc.coordinates, loc.name, loc.country)
        elif isinstance(self._last_locator, Coordinates):
            outcome = await self.lookup_coordinates(self._last_locator)
        else:
            outcome = await self.lookup_city(self._last_locator)

        if outcome.status is LookupStatus.FAILED and self.view is not None and self.view.units != self.units:
            logger.info(f"Re-fetch failed; keeping {self.view.units.value} to match the displayed view")
            self.units = self.view.units
        return outcome

    async def toggle_units(self) -> Optional[LookupOutcome]:
        return await self.set_units(self.units.toggled())

    # -- sequencing ----------------------------------------------------------

    def _is_current(self, request_id: int) -> bool:
        return request_id == self._request_seq

    def _superseded(self, request_id: int, locator: Locator) -> LookupOutcome:
        logger.info(
            f"Discarding result of request {request_id} for '{locator}' "
            f"(latest is {self._request_seq})"
        )
        return LookupOutcome(status=LookupStatus.SUPERSEDED, request_id=request_id)

    async def _run_lookup(
        self,
        locator: Locator,
        *,
        pinned: Optional[Location],
        failure_message: str,
        location_name: Optional[str] = None,
        country: Optional[str] = None,
        request_id: Optional[int] = None,
    ) -> LookupOutcome:
        if request_id is None:
            self._request_seq += 1
            request_id = self._request_seq
        elif not self._is_current(request_id):
            return self._superseded(request_id, locator)
        units = self.units

        # Never leave one city's numbers under another city's name.
        if self.view is not None and not same_locator(self.view.locator, locator):
            self.view = None
        self._last_locator = locator
        self.current_location = pinned
        self.status = LookupStatus.LOADING
        self.error = None

        logger.info(f"Starting request {request_id} for '{locator}' in {units.value}")

        try:
            bundle = await self.data_source.fetch_bundle(locator, units)
            try:
                view = build_weather_view(
                    bundle,
                    locator=locator,
                    units=units,
                    location_name=location_name,
                    country=country,
                    hourly_count=self.hourly_count,
                    daily_stride=self.daily_stride,
                )
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                raise UpstreamError(f"Malformed upstream payload: {exc}") from exc
        except CityNotFoundError as exc:
            if not self._is_current(request_id):
                return self._superseded(request_id, locator)
            logger.info(f"Request {request_id}: '{locator}' not found")
            self.view = None
            self.status = LookupStatus.NOT_FOUND
            self.error = exc.user_message
            return LookupOutcome(status=LookupStatus.NOT_FOUND, request_id=request_id,
                                 error_message=exc.user_message)
        except UpstreamError as exc:
            if not self._is_current(request_id):
                return self._superseded(request_id, locator)
            logger.warning(f"Request {request_id} for '{locator}' failed: {exc}")
            self.status = LookupStatus.FAILED
            self.error = failure_message
            return LookupOutcome(status=LookupStatus.FAILED, request_id=request_id, error_message=failure_message)

        if not self._is_current(request_id):
            return self._superseded(request_id, locator)

        self.view = view
        self.status = LookupStatus.SUCCESS
        self.error = None
        if self.preferences is not None:
            self.preferences.add_history(view.location.name)

        logger.info(
            f"Request {request_id} succeeded for {view.location.name}: "
            f"{len(view.hourly)} hourly, {len(view.daily)} daily, {len(view.alerts)} alerts"
        )
        return LookupOutcome(status=LookupStatus.SUCCESS, request_id=request_id, view=view)
