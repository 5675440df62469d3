"""
FastAPI application factory.

* Registers routes for rides, loyalty and admin.
* Renders domain errors as ``{"detail", "code"}`` with their HTTP status.
* Releases the Redis pool and database engine on shutdown.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from greenride.api.middleware import limiter
from greenride.api.routes import admin, loyalty, rides
from greenride.config import settings
from greenride.domain.errors import RideEngineError
from greenride.infrastructure.database import engine
from greenride.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


async def _engine_error_handler(request: Request, exc: RideEngineError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": str(exc), "code": exc.code},
    )


async def _storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Storage failure", "code": "storage_error"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release shared connection pools on shutdown."""
    yield
    await close_redis()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="GreenRide Ride Sharing API",
        description=(
            "Drivers offer seats on planned trips; passengers search, request "
            "and are verified at pickup.  Completion records distance, CO2 "
            "saved and fare shares; loyalty points settle once everyone has "
            "paid."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain and storage errors
    app.add_exception_handler(RideEngineError, _engine_error_handler)
    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(loyalty.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
