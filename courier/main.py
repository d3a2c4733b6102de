"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Query, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from redis.exceptions import RedisError

from courier import __version__
from courier.api.routes import router
from courier.api.websocket import handle_realtime_session
from courier.config import get_settings
from courier.container import Container
from courier.errors import CourierError, ValidationError
from courier.state.manager import close_state_manager, get_state_manager
from courier.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("application_starting")

    # Tests install their own container before startup
    container: Container | None = getattr(app.state, "container", None)
    owns_container = container is None
    if owns_container:
        container = Container.build(await get_state_manager())
        app.state.container = container
    logger.info("container_initialized")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await container.close()
    if owns_container:
        await close_state_manager()
        del app.state.container


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Courier Partner Platform",
        description="Driver onboarding, verification, dispatch and realtime presence",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CourierError)
    async def courier_error_handler(request: Request, exc: CourierError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log("request_failed", path=request.url.path, error=exc.kind, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        error = ValidationError.from_errors("Invalid request", exc.errors())
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
        message = "Internal Server Error" if settings.is_production else str(exc)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": message},
        )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": settings.app_name}

    @app.get("/health/ready")
    async def readiness_check(request: Request) -> JSONResponse:
        """Readiness: the document store answers."""
        container: Container = request.app.state.container
        try:
            await container.state.ping()
        except RedisError as exc:
            logger.warning("readiness_failed", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable", "redis": "down"})
        return JSONResponse(content={"status": "ready", "redis": "up"})

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Root endpoint."""
        return {
            "message": "Courier Partner Platform API",
            "docs": "/docs",
            "health": "/health",
            "realtime": "/ws?token=<bearer>",
        }

    app.include_router(router, prefix="/api/v1", tags=["api"])

    # WebSocket endpoint
    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket, token: str | None = Query(default=None)) -> None:
        """WebSocket endpoint for presence, locations and order events."""
        await handle_realtime_session(websocket, token, websocket.app.state.container)

    # Stored documents
    app.mount(
        settings.upload_url_prefix,
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "courier.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.environment == "development",
    )
