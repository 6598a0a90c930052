"""Process-wide dashboard: the data source, preferences, orchestrator and resolver wired together."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from weatherlens.config import Settings, settings as default_settings
from weatherlens.data_sources import OpenWeatherClient, WeatherDataSource
from weatherlens.location_resolver import LocationResolver
from weatherlens.lookup_service import WeatherLookupService
from weatherlens.preference_store import PreferenceStore
from weatherlens.preferences import PreferenceManager, build_preference_store
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="dashboard")


@dataclass
class Dashboard:
    """Everything one running service needs to answer lookups."""
    settings: Settings
    data_source: WeatherDataSource
    preferences: PreferenceManager
    lookups: WeatherLookupService
    resolver: LocationResolver

    async def aclose(self) -> None:
        """Flush pending preference writes and release HTTP connections."""
        await self.preferences.flush()
        self.preferences.close()
        await self.data_source.aclose()


def build_dashboard(
    settings: Optional[Settings] = None,
    *,
    data_source: Optional[WeatherDataSource] = None,
    store: Optional[PreferenceStore] = None,
) -> Dashboard:
    """Build and load a Dashboard; collaborators can be injected for tests."""
    settings = settings or default_settings
    if not settings.openweather_api_key and data_source is None:
        logger.warning("WEATHERLENS_OPENWEATHER_API_KEY is not set; every lookup will fail")

    source = data_source or OpenWeatherClient.from_settings(settings)
    preferences = PreferenceManager(
        store or build_preference_store(settings),
        history_limit=settings.history_limit,
    )
    preferences.load()

    lookups = WeatherLookupService.from_settings(settings, source, preferences)
    resolver = LocationResolver(source, lookups, timeout_s=settings.geolocation_timeout_seconds)
    return Dashboard(
        settings=settings,
        data_source=source,
        preferences=preferences,
        lookups=lookups,
        resolver=resolver,
    )
