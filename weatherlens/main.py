"""FastAPI application setup for WeatherLens."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import router as api_router
from .config import settings
from .dashboard import build_dashboard
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load preferences and open the upstream client for the life of the process."""
    setup_logging(level=settings.log_level, job_name="weatherlens")
    if getattr(app.state, "dashboard", None) is None:
        app.state.dashboard = build_dashboard(settings)
    logger.info(f"WeatherLens ready (units: {app.state.dashboard.lookups.units.value})")
    try:
        yield
    finally:
        await app.state.dashboard.aclose()
        app.state.dashboard = None


app = FastAPI(title="WeatherLens", lifespan=lifespan)


@app.get("/healthz")
def healthz():
    """Liveness check."""
    return {"status": "ok"}


# API routes
app.include_router(api_router, prefix="/v1")
