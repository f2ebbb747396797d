"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from temporalio.client import Client as TemporalClient

from clm.core.config import settings
from clm.core.logging import setup_logging
from clm.db import init_db
from clm.routes import contracts_router, health_router, validations_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize resources on startup, cleanup on shutdown."""
    setup_logging()

    # Initialize database tables
    await init_db()

    # Temporal client - tolerate failure; lifecycle endpoints work without it
    try:
        app.state.temporal = await TemporalClient.connect(
            settings.TEMPORAL_ADDRESS,
            namespace=settings.TEMPORAL_NAMESPACE,
        )
        logger.info("Connected to Temporal at %s", settings.TEMPORAL_ADDRESS)
    except Exception as e:
        logger.warning("Failed to connect to Temporal: %s", e)
        app.state.temporal = None

    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

# Register routers
app.include_router(health_router)
app.include_router(contracts_router)
app.include_router(validations_router)
