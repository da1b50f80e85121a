"""UNI Burn Tracker FastAPI Application.

Syncs UNI burns into the dead address on a timer and serves daily rollups
and summary statistics to the dashboard.
"""

import logging
import sys
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import burns, health
from .services.config import config_service, ConfigValidationException, TrackerSettings
from .services.context import TrackerContext
from .services.logging_service import configure_logging

logger = logging.getLogger(__name__)


def load_settings() -> TrackerSettings:
    """Load and validate configuration; exit on an invalid file."""
    try:
        config_service.load_and_validate()
    except ConfigValidationException as e:
        print(f"FATAL: {e}")
        print("Server cannot start with invalid configuration.")
        sys.exit(1)
    return TrackerSettings.from_config(config_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)

    context = TrackerContext(settings)
    await context.open()
    app.state.context = context
    logger.info(f"Tracking burns since {settings.start_date}")

    await context.start_scheduler()

    yield

    logger.info("Initiating graceful shutdown...")
    await context.close()
    logger.info("Graceful shutdown complete")


app = FastAPI(
    title="UNI Burn Tracker API",
    description="UNI burns into the dead address, aggregated per day",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(burns.router, prefix="/api/burns", tags=["Burns"])


@app.get("/")
async def root():
    """Root endpoint redirect to docs."""
    return {"message": "UNI Burn Tracker API", "docs": "/docs"}
