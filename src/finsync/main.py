from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from finsync import __version__
from finsync.api.middleware.error_handler import (
    handle_generic_error,
    handle_integrity_error,
    handle_sync_processing_error,
    handle_validation_error,
)
from finsync.api.middleware.logging import RequestLoggingMiddleware
from finsync.api.v1 import router as v1_router
from finsync.api.v1.health import router as health_router
from finsync.config import settings
from finsync.core.exceptions import SyncProcessingError
from finsync.core.logging import setup_logging
from finsync.db.session import async_engine
from finsync.observability.metrics import MetricsRegistry


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.log_level)
    app.state.metrics.reset()
    yield
    # Shutdown
    await async_engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="finsync API",
        description="Bank transaction sync and categorization",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # One registry per application; the feed client is created on first use.
    app.state.metrics = MetricsRegistry()
    app.state.feed = None

    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers (order matters - most specific first)
    app.add_exception_handler(SyncProcessingError, handle_sync_processing_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(Exception, handle_generic_error)

    app.include_router(health_router)
    app.include_router(v1_router)

    return app


app = create_app()
