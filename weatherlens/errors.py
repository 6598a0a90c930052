"""Error taxonomy for weather lookups and device geolocation.

Every error carries a `user_message` that the API can show as-is. None of
these are fatal to the process: the orchestrator and API translate them into
a lookup status and an HTTP response.
"""

from typing import Optional


class WeatherLensError(Exception):
    """Base class for all user-facing lookup failures."""

    default_message = "An error occurred. Please try again."

    def __init__(self, message: Optional[str] = None, *, user_message: Optional[str] = None):
        super().__init__(message or user_message or self.default_message)
        self.user_message = user_message or self.default_message


class CityNotFoundError(WeatherLensError):
    """The upstream API does not know the requested location."""

    default_message = "City not found. Please enter a valid city name."

    def __init__(self, city: Optional[str] = None):
        super().__init__(f"City not found: {city}" if city else None)
        self.city = city


class UpstreamError(WeatherLensError):
    """Non-success response, transport failure or unreadable body from the upstream API."""

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        *,
        user_message: Optional[str] = None,
    ):
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class AlertsUnavailableError(UpstreamError):
    """The alerts endpoint failed. Callers degrade to an empty alert list."""


class LocationError(WeatherLensError):
    """Device geolocation could not produce coordinates."""

    default_message = "An unknown error occurred while getting location."
    code = "unknown"


class LocationUnsupportedError(LocationError):
    default_message = "Geolocation is not supported by your browser."
    code = "unsupported"


class LocationPermissionDeniedError(LocationError):
    default_message = "Location access denied. Please enable location services."
    code = "permission_denied"


class LocationUnavailableError(LocationError):
    default_message = "Location information unavailable."
    code = "position_unavailable"


class LocationTimeoutError(LocationError):
    default_message = "Location request timed out."
    code = "timeout"


LOCATION_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        LocationUnsupportedError,
        LocationPermissionDeniedError,
        LocationUnavailableError,
        LocationTimeoutError,
    )
}
