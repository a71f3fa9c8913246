"""
Main application file for the URL Render Service API.

This file initializes the FastAPI application, sets up logging, registers
global exception handlers, includes the API routers, and serves the
screenshot tree as static files.
"""
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from url_render_service import __version__
from url_render_service.api.routes import ops_router, render_router, socket_router
from url_render_service.core.config import ConfigurationManager, config_manager
from url_render_service.core.exceptions import RenderServiceError
from url_render_service.core.logger import get_logger, setup_logging
from url_render_service.core.service import RenderService

# --- Logging Setup ---
# Initialize centralized logging as early as possible. The global `config_manager`
# has already loaded the configuration selected by APP_ENV.
try:
    setup_logging(config_manager)
    logger = get_logger(__name__)
    logger.info("Logging successfully initialized for FastAPI application.")
except Exception as e:
    import logging as py_logging
    py_logging.basicConfig(level=py_logging.WARNING, format="%(asctime)s - %(levelname)s - CRITICAL - Failed to setup custom logging: %(message)s")
    py_logging.critical(f"Failed to initialize custom logging via ConfigurationManager: {e}", exc_info=True)
    logger = py_logging.getLogger(__name__)


def static_mount_path(base_dir: str) -> str:
    """URL prefix under which `base_dir` is served; matches the relative screenshot paths."""
    cleaned = base_dir.replace("\\", "/")
    if cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return "/" + cleaned.strip("/")


def create_app(config: Optional[ConfigurationManager] = None, service: Optional[RenderService] = None) -> FastAPI:
    """
    Builds the FastAPI application around one `RenderService`.

    Args:
        config: Configuration to build the service from; defaults to the global manager.
        service: A pre-built service (tests inject one wired to fakes).
    """
    config = config if config is not None else config_manager
    service = service if service is not None else RenderService(config=config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(
        title="URL Render Service API",
        description="Renders URLs in a headless browser and returns the final HTML and a screenshot. "
                    "Render status and heartbeats are streamed over SSE and a WebSocket channel.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.render_service = service

    # --- Global Exception Handlers ---

    @app.exception_handler(RenderServiceError)
    async def render_service_exception_handler(request: Request, exc: RenderServiceError):
        """Handles application exceptions that escape a route (render failures never do)."""
        logger.error(
            f"RenderServiceError caught: {exc.__class__.__name__} - {exc.message} "
            f"for request: {request.method} {request.url}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            f"RequestValidationError caught for: {request.method} {request.url}. Errors: {exc.errors()}",
            exc_info=False
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"success": False, "error": "Request validation failed", "errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all so every HTTP error still answers with the JSON envelope."""
        logger.critical(
            f"Generic unhandled exception caught: {exc.__class__.__name__} - {str(exc)} "
            f"for request: {request.method} {request.url}",
            exc_info=True
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "An unexpected server error occurred."},
        )

    # --- Request logging ---

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.monotonic()
        response = await call_next(request)
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({time.monotonic() - started:.3f}s)")
        return response

    # --- Routers ---
    app.include_router(render_router, tags=["Render"])
    app.include_router(ops_router, tags=["Operations"])
    app.include_router(socket_router)

    # --- Static screenshots ---
    storage = service.screenshot_storage
    app.mount(
        static_mount_path(storage.base_dir),
        StaticFiles(directory=storage.root, check_dir=False),
        name="screenshots",
    )

    @app.get("/", tags=["General"], summary="API Root Endpoint")
    async def read_root():
        """Basic information about the API."""
        return {
            "message": "Welcome to the URL Render Service API",
            "version": app.version,
            "documentation_url": app.docs_url,
            "redoc_url": app.redoc_url,
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: serves `app` with Uvicorn on the configured host and port."""
    import uvicorn

    host = config_manager.get("server.host", "0.0.0.0")
    port = int(config_manager.get("server.port", 3000))
    logger.info(f"Starting Uvicorn server on {host}:{port} (environment: {config_manager.current_environment}).")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run()
