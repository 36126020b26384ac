"""
FastAPI application with database pool and storage client lifecycle.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from rewear.config import settings
from rewear.db.pool import db_pool
from rewear.infrastructure.observability.logging import get_logger, setup_logging
from rewear.routes import categories, health, listings, session
from rewear.services.infrastructure.supabase_storage import storage_client

# Setup logging before creating the app
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool on startup; close it and the storage client on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
    except Exception as e:
        logger.error("Failed to initialize services", error=str(e))
        raise

    yield

    logger.info("Application shutting down")

    shutdown_errors = []

    try:
        await storage_client.close()
    except Exception as e:
        logger.error("Error closing storage client", error=str(e))
        shutdown_errors.append(f"Storage: {e}")

    # Close database pool last (may have active connections)
    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="ReWear Listings",
    description="Session resolution and listing creation for the ReWear clothing swap",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(session.router)
app.include_router(categories.router)
app.include_router(listings.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
