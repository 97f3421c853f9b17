"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from aihub.middleware import RequestLoggingMiddleware, setup_logging
from aihub.routers import cron, health
from aihub.settings import settings
from aihub.workflows.scheduler import get_scheduler

# Configure logging before anything else
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate configuration before accepting traffic; optionally run the in-process scheduler."""
    logger.info(f"Starting application in {settings.ENV} environment")

    try:
        settings.validate_cron_config()
    except ValueError as e:
        logger.error(f"Startup validation failed: {e}")
        raise

    scheduler = get_scheduler()
    if settings.SCHEDULER_ENABLED:
        await scheduler.start()

    yield

    await scheduler.stop()
    logger.info("Shutting down application")


app = FastAPI(
    title="AI Hub",
    description="AI service catalog with automated discovery",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router)
app.include_router(cron.router)  # Scheduler-invoked crawl and validation
