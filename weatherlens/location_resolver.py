"""Resolve the device's position to a place and look up its weather."""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from pydantic import ValidationError

from weatherlens.data_sources import WeatherDataSource
from weatherlens.domain import Coordinates, Location, LookupOutcome, LookupStatus
from weatherlens.errors import (
    LOCATION_ERRORS_BY_CODE,
    LocationError,
    LocationTimeoutError,
    LocationUnavailableError,
    UpstreamError,
)
from weatherlens.lookup_service import WeatherLookupService
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="location_resolver")

DEFAULT_PLACE_NAME = "Current Location"
GEOCODE_FAILURE_MESSAGE = "Could not determine your location. Please try searching manually."


class GeolocationProvider(Protocol):
    """Anything that can report the device position."""

    async def get_position(self) -> Coordinates:
        """Return coordinates or raise one of the LocationError subclasses."""
        ...


class ReportedPositionProvider:
    """
    Position as reported by the browser's geolocation API.

    The page posts either coordinates or the error it got back
    (`unsupported`, `permission_denied`, `position_unavailable`, `timeout`).
    """

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.error_code = error_code

    async def get_position(self) -> Coordinates:
        if self.error_code:
            error_cls = LOCATION_ERRORS_BY_CODE.get(self.error_code.strip().lower(), LocationError)
            raise error_cls(f"Geolocation reported '{self.error_code}'")
        if self.latitude is None or self.longitude is None:
            raise LocationUnavailableError("Geolocation reported no coordinates")
        try:
            return Coordinates(latitude=self.latitude, longitude=self.longitude)
        except ValidationError as exc:
            raise LocationUnavailableError(f"Geolocation reported invalid coordinates: {exc}") from exc


class LocationResolver:
    """Device position -> reverse-geocoded place -> coordinate lookup."""

    def __init__(
        self,
        data_source: WeatherDataSource,
        orchestrator: WeatherLookupService,
        *,
        timeout_s: float = 10.0,
    ) -> None:
        self.data_source = data_source
        self.orchestrator = orchestrator
        self.timeout_s = timeout_s

    async def resolve(self, provider: GeolocationProvider) -> Location:
        """Return a Location pinned to the device coordinates."""
        try:
            coords = await asyncio.wait_for(provider.get_position(), timeout=self.timeout_s)
        except asyncio.TimeoutError as exc:
            raise LocationTimeoutError("Geolocation did not answer in time") from exc

        try:
            places = await self.data_source.reverse_geocode(coords)
        except UpstreamError as exc:
            logger.warning(f"Reverse geocoding failed: {exc}")
            raise UpstreamError(
                f"Reverse geocoding failed: {exc}",
                status_code=exc.status_code,
                user_message=GEOCODE_FAILURE_MESSAGE,
            ) from exc

        place = places[0] if places else {}
        return Location(
            name=place.get("name") or DEFAULT_PLACE_NAME,
            country=place.get("country") or "",
            latitude=coords.latitude,
            longitude=coords.longitude,
        )

    async def lookup_current_location(self, provider: GeolocationProvider) -> LookupOutcome:
        """
        Resolve the device position and look it up by coordinates.

        The request id is taken before geolocation starts, so a city lookup
        begun while the position resolves wins over this one. Location and
        geocoding errors are shown on the dashboard and re-raised, unless a
        newer lookup has started; then the outcome is SUPERSEDED. The
        displayed view is left alone either way.
        """
        request_id = self.orchestrator.begin_lookup()
        try:
            location = await self.resolve(provider)
        except (LocationError, UpstreamError) as exc:
            logger.info(f"Could not resolve device location for request {request_id}: {exc}")
            if not self.orchestrator.record_error(exc.user_message, request_id=request_id):
                return LookupOutcome(status=LookupStatus.SUPERSEDED, request_id=request_id)
            raise

        logger.info(f"Resolved device location for request {request_id}: {location.name}")
        return await self.orchestrator.lookup_coordinates(
            location.coordinates,
            location_name=location.name,
            country=location.country,
            request_id=request_id,
        )
