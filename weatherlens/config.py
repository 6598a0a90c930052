"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the WeatherLens service."""
    model_config = SettingsConfigDict(env_prefix="WEATHERLENS_", extra="ignore")

    openweather_api_key: str | None = None
    openweather_base_url: str = "https://api.openweathermap.org/data/2.5"
    openweather_geo_url: str = "https://api.openweathermap.org/geo/1.0"
    weather_map_url: str = "https://openweathermap.org/weathermap"
    default_units: str = "metric"  # options: metric, imperial
    request_timeout_seconds: float = 10.0
    geolocation_timeout_seconds: float = 10.0
    hourly_count: int = 8
    daily_stride: int = 8
    history_limit: int = 5
    preference_backend: str = "file"  # options: file, redis, memory
    preference_path: str = ".weatherlens/preferences.json"
    preference_redis_url: str | None = None
    preference_redis_prefix: str = "weatherlens:"
    service_api_key: str | None = None
    log_level: str = "INFO"

    @field_validator("openweather_base_url", "openweather_geo_url", "weather_map_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("default_units", mode="after")
    @classmethod
    def check_units(cls, v: str) -> str:
        """Only the two unit systems OpenWeatherMap understands are allowed."""
        lowered = str(v).strip().lower()
        if lowered not in {"metric", "imperial"}:
            raise ValueError(f"default_units must be 'metric' or 'imperial', got {v!r}")
        return lowered


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4, exclude={'openweather_api_key', 'service_api_key'})}")
