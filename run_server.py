import os

import uvicorn

from weatherlens.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def check_api_key() -> None:
    """Warn early when no OpenWeatherMap key is configured; lookups cannot succeed without one."""
    if not settings.openweather_api_key:
        logger.warning("WEATHERLENS_OPENWEATHER_API_KEY is not set; all lookups will fail until it is.")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="weatherlens")
    check_api_key()

    uvicorn.run(
        "weatherlens.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
