"""
FastAPI Application Entry Point.

This is the main application file for the Paratransit Scheduling Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from paratransit.app.core.config import settings
from paratransit.app.core.observability import ObservabilityMiddleware, configure_logging
from paratransit.app.api.v1.router import router as api_v1_router
from paratransit.app.db.session import engine, Base
from paratransit.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from paratransit.app.models.provider import Provider
from paratransit.app.models.customer import Customer
from paratransit.app.models.vehicle import Vehicle
from paratransit.app.models.run import Run
from paratransit.app.models.repeating_trip import RepeatingTrip
from paratransit.app.models.trip import Trip

configure_logging(settings.debug)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip-to-run scheduling and recurring trip management for paratransit providers",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "business_hours": [settings.business_hours_start, settings.business_hours_end],
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Paratransit Scheduling API",
        "docs": "/docs",
        "health": "/health",
    }
