"""Async client for the OpenWeatherMap weather, air-pollution, alerts and geocoding APIs."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from weatherlens.data_sources.base import RawWeatherBundle
from weatherlens.domain import Coordinates, Locator, UnitSystem
from weatherlens.errors import AlertsUnavailableError, CityNotFoundError, UpstreamError, WeatherLensError
from utils.logging_utils import get_tagged_logger, mask_api_key

logger = get_tagged_logger(__name__, tag="openweather_client")

OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"
OPENWEATHER_GEO_URL = "https://api.openweathermap.org/geo/1.0"
ALERTS_EXCLUDE = "current,minutely,hourly,daily"


def _locator_params(locator: Locator) -> Dict[str, Any]:
    """Translate a locator into OpenWeatherMap query parameters."""
    if isinstance(locator, Coordinates):
        return {"lat": locator.latitude, "lon": locator.longitude}
    name = str(locator).strip()
    if not name:
        raise ValueError("City name must not be empty")
    return {"q": name}


def _is_not_found_body(payload: Any) -> bool:
    """OpenWeatherMap reports unknown cities as {"cod": "404", ...}."""
    return isinstance(payload, dict) and str(payload.get("cod", "")) == "404"


def coordinates_from_current(payload: Dict[str, Any]) -> Coordinates:
    """Read the resolved coordinates out of a current-conditions payload."""
    try:
        coord = payload["coord"]
        return Coordinates(latitude=float(coord["lat"]), longitude=float(coord["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise UpstreamError(f"Current conditions response has no usable coordinates: {exc}") from exc


class OpenWeatherClient:
    """
    Thin async wrapper over the OpenWeatherMap endpoints a lookup needs.

    Endpoints used:
    - /data/2.5/weather        current conditions (q= or lat/lon, units=)
    - /data/2.5/forecast       5 day / 3 hour forecast (same locator forms)
    - /data/2.5/air_pollution  air quality (lat/lon only)
    - /data/2.5/onecall        alerts only, best-effort (lat/lon only)
    - /geo/1.0/reverse         coordinates -> nearest place
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = OPENWEATHER_BASE_URL,
        geo_url: str = OPENWEATHER_GEO_URL,
        timeout_s: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.geo_url = geo_url.rstrip("/")
        self.timeout_s = timeout_s
        self._client = client

    @classmethod
    def from_settings(cls, settings) -> "OpenWeatherClient":
        """Build a client from the application Settings."""
        return cls(
            settings.openweather_api_key,
            base_url=settings.openweather_base_url,
            geo_url=settings.openweather_geo_url,
            timeout_s=settings.request_timeout_seconds,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_s)
        return self._client

    async def _get_json(self, url: str, params: Dict[str, Any], *, city: Optional[str] = None) -> Any:
        """
        GET `url` and decode the JSON body.

        When `city` is given, a not-found answer is reported as CityNotFoundError
        instead of a generic upstream failure.
        """
        if not self.api_key:
            raise UpstreamError("OpenWeatherMap API key is missing")

        query = {**params, "appid": self.api_key}
        try:
            response = await self.client.get(url, params=query)
        except httpx.RequestError as exc:
            logger.warning(f"OpenWeatherMap request to {url} failed: {exc}")
            raise UpstreamError(f"Weather API network error: {exc}") from exc

        masked_url = mask_api_key(str(response.request.url))
        logger.debug(f"OpenWeatherMap {response.status_code} for {masked_url}")

        if response.status_code == 404 and city is not None:
            raise CityNotFoundError(city)
        if response.is_error:
            message = f"Weather API request failed ({response.status_code})"
            try:
                payload = response.json()
                if isinstance(payload, dict) and payload.get("message"):
                    message = f"{message}: {payload['message']}"
            except ValueError:
                pass
            logger.warning(f"{message} ({masked_url})")
            raise UpstreamError(message, status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("Weather API returned a non-JSON body", status_code=response.status_code) from exc

        if city is not None and _is_not_found_body(payload):
            raise CityNotFoundError(city)
        return payload

    @staticmethod
    def _city_label(locator: Locator) -> str:
        if isinstance(locator, Coordinates):
            return f"{locator.latitude},{locator.longitude}"
        return str(locator).strip()

    async def fetch_current(self, locator: Locator, units: UnitSystem = UnitSystem.METRIC) -> Dict[str, Any]:
        """Fetch current conditions by city name or coordinates."""
        params = {**_locator_params(locator), "units": UnitSystem(units).value}
        data = await self._get_json(f"{self.base_url}/weather", params, city=self._city_label(locator))
        if not isinstance(data, dict):
            raise UpstreamError("Current conditions response is not an object")
        return data

    async def fetch_forecast(self, locator: Locator, units: UnitSystem = UnitSystem.METRIC) -> Dict[str, Any]:
        """Fetch the 5 day / 3 hour forecast by city name or coordinates."""
        params = {**_locator_params(locator), "units": UnitSystem(units).value}
        data = await self._get_json(f"{self.base_url}/forecast", params, city=self._city_label(locator))
        if not isinstance(data, dict) or not isinstance(data.get("list"), list):
            raise UpstreamError("Forecast response has no 'list'")
        return data

    async def fetch_air_quality(self, coords: Coordinates) -> Dict[str, Any]:
        """Fetch the current air-pollution sample for a coordinate pair."""
        params = {"lat": coords.latitude, "lon": coords.longitude}
        data = await self._get_json(f"{self.base_url}/air_pollution", params)
        if not isinstance(data, dict):
            raise UpstreamError("Air quality response is not an object")
        return data

    async def fetch_alerts(self, coords: Coordinates) -> List[Dict[str, Any]]:
        """Fetch active weather alerts; any failure raises AlertsUnavailableError."""
        params = {"lat": coords.latitude, "lon": coords.longitude, "exclude": ALERTS_EXCLUDE}
        try:
            data = await self._get_json(f"{self.base_url}/onecall", params)
        except WeatherLensError as exc:
            status = getattr(exc, "status_code", None)
            raise AlertsUnavailableError(f"Alerts unavailable: {exc}", status_code=status) from exc
        alerts = data.get("alerts") if isinstance(data, dict) else None
        return [a for a in alerts if isinstance(a, dict)] if isinstance(alerts, list) else []

    async def reverse_geocode(self, coords: Coordinates) -> List[Dict[str, Any]]:
        """Return up to one place near `coords`."""
        params = {"lat": coords.latitude, "lon": coords.longitude, "limit": 1}
        data = await self._get_json(f"{self.geo_url}/reverse", params)
        return data if isinstance(data, list) else []

    async def _alerts_or_empty(self, coords: Coordinates) -> List[Dict[str, Any]]:
        try:
            return await self.fetch_alerts(coords)
        except AlertsUnavailableError as exc:
            logger.info(f"Alerts unavailable; continuing without them: {exc}")
            return []

    async def fetch_bundle(self, locator: Locator, units: UnitSystem = UnitSystem.METRIC) -> RawWeatherBundle:
        """
        Run the four upstream calls for one lookup.

        Current conditions go first: a not-found answer stops here, and its
        coordinates are what the air-quality and alerts endpoints need. The
        forecast, air-quality and alerts calls then run concurrently.
        """
        current = await self.fetch_current(locator, units)
        coords = coordinates_from_current(current)
        logger.debug(f"Resolved coordinates from current conditions: {coords.latitude},{coords.longitude}")

        forecast, air_quality, alerts = await asyncio.gather(
            self.fetch_forecast(locator, units),
            self.fetch_air_quality(coords),
            self._alerts_or_empty(coords),
        )
        return RawWeatherBundle(
            coordinates=coords,
            current=current,
            forecast=forecast,
            air_quality=air_quality,
            alerts=alerts,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
