"""
Main FastAPI application for the StackSave backend.
Configures the API server with routes, middleware, and error handling.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from stacksave.core.config import settings
from stacksave.core.database import DatabaseManager, close_database
from stacksave.core.exceptions import StackSaveException, SubscriptionError
from stacksave.core.logging import setup_logging
from stacksave.api.middleware import add_middleware
from stacksave.api.schemas.common import HealthCheckResponse, create_error_response
from stacksave.api.routes import sync
from stacksave.sync.container import SyncContainer, get_sync_container, shutdown_sync_container


logger = structlog.get_logger(__name__)


ERROR_STATUS_CODES = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SYNC_ERROR": status.HTTP_404_NOT_FOUND,
    "CHAIN_CLIENT_ERROR": status.HTTP_502_BAD_GATEWAY,
    "SUBSCRIPTION_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting StackSave API server")

    # A container handed to create_app belongs to the caller
    owns_container = getattr(app.state, "sync_container", None) is None
    if owns_container:
        app.state.sync_container = await get_sync_container()

    if settings.listener_enabled:
        try:
            await app.state.sync_container.supervisor.start_listening()
        except SubscriptionError as e:
            # The supervisor is already retrying in the background
            logger.error("Event listener failed to start", error=str(e))

    yield

    logger.info("Shutting down StackSave API server")

    try:
        if owns_container:
            await shutdown_sync_container()
            await close_database()
            app.state.sync_container = None
        else:
            await app.state.sync_container.supervisor.stop_listening()
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))


async def stacksave_exception_handler(request: Request, exc: StackSaveException) -> JSONResponse:
    """Render domain errors as structured error responses."""
    status_code = ERROR_STATUS_CODES.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.warning(
        "Request raised application error",
        url=str(request.url),
        code=exc.code,
        error=exc.message,
        status_code=status_code
    )
    body = create_error_response(exc.message, error_code=exc.code, details=exc.details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def create_app(container: Optional[SyncContainer] = None) -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging(settings.log_file)

    app = FastAPI(
        title="StackSave API",
        description="""
        Backend API for StackSave savings goals.

        Keeps a relational mirror of on-chain goals in sync with contract
        events, and exposes manual resync and listener control.

        ## Error Handling

        All endpoints return consistent error responses with:
        - Error codes for programmatic handling
        - Human-readable messages
        - Additional details when available
        """,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.sync_container = container

    add_middleware(app)
    app.add_exception_handler(StackSaveException, stacksave_exception_handler)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
        description="Check database connectivity and listener state"
    )
    async def health_check(request: Request):
        database_ok = await DatabaseManager.health_check()

        sync_container = getattr(request.app.state, "sync_container", None)
        listener_state = (
            sync_container.supervisor.get_status().state.value
            if sync_container is not None else "unavailable"
        )

        services = {
            "database": "healthy" if database_ok else "unhealthy",
            "listener": listener_state,
        }
        if not database_ok:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content=HealthCheckResponse(
                    status="unhealthy",
                    version=settings.app_version,
                    services=services
                ).model_dump(mode="json")
            )

        return HealthCheckResponse(version=settings.app_version, services=services)

    app.include_router(
        sync.router,
        prefix=settings.api_v1_prefix,
        tags=["Sync"]
    )

    logger.info("FastAPI application created successfully")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stacksave.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
