"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from licensecheck.api import router as api_router
from licensecheck.config import ConfigurationError, get_settings
from licensecheck.db.session import async_session_factory
from licensecheck.engines.verify.run_logger import fail_orphaned_runs

settings = get_settings()
logger = structlog.get_logger()

# Initialize Sentry if configured
if settings.sentry_dsn:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
    )


async def cleanup_orphaned_runs():
    """Mark any 'running' verification jobs as failed on startup.

    When the server restarts (deploy, crash, etc.), any job that was in
    progress is orphaned since the process running it is gone.
    """
    async with async_session_factory() as session:
        count = await fail_orphaned_runs(session)
        if count > 0:
            logger.info("Cleaned up orphaned verification jobs", count=count)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting License Check API", environment=settings.environment)
    await cleanup_orphaned_runs()
    yield
    # Shutdown
    logger.info("Shutting down License Check API")


app = FastAPI(
    title="License Check API",
    description="Professional license verification API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Server misconfigured", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Server configuration error"})


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}
