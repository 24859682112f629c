"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from ingestion.scheduler import SyncScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="NVD Mirror Status API",
    description="Sync status of the local NVD CVE mirror",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = SyncScheduler()


# Include routers
app.include_router(health.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting NVD Mirror Status API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Data directory: {settings.DATA_DIR}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down NVD Mirror Status API")
    if settings.SCHEDULER_ENABLED:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "NVD Mirror Status API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "data_dir": str(settings.DATA_DIR)
    }
