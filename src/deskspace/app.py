"""FastAPI application factory and lifespan management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from deskspace.config import Settings
from deskspace.desktop.database import Database
from deskspace.desktop.errors import STATUS_BY_CODE, DeskError, ErrorCode
from deskspace.desktop.repositories import (
    AccessGate,
    DesktopRepository,
    DockRepository,
    OrderingService,
    TreeStore,
)
from deskspace.desktop.schemas import ErrorBody, ErrorResponse
from deskspace.middleware.auth import GatewayKeyMiddleware
from deskspace.middleware.cors import configure_cors
from deskspace.middleware.logging import RequestLoggingMiddleware
from deskspace.routes import desktop, dock, health, items, public

logger = structlog.get_logger()

# Framework-level HTTP errors (unknown route, wrong method) mapped to error codes
_HTTP_STATUS_CODES: dict[int, ErrorCode] = {
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
}


def error_response(code: ErrorCode, message: str, status_code: int | None = None) -> JSONResponse:
    """Build the failure envelope.

    Args:
        code: Error code.
        message: Client-safe description.
        status_code: HTTP status, defaults to the one mapped to the code.

    Returns:
        JSON response carrying the envelope.
    """
    body = ErrorResponse(error=ErrorBody(code=code.value, message=message))
    return JSONResponse(
        status_code=status_code or STATUS_BY_CODE[code],
        content=body.model_dump(),
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    # Drop the leading "body"/"query" segment
    location = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = str(first.get("msg", "Invalid request"))
    return f"{location}: {message}" if location else message


async def handle_desk_error(request: Request, exc: DeskError) -> JSONResponse:
    logger.info(
        "request_rejected",
        code=exc.code.value,
        message=exc.message,
        path=request.url.path,
    )
    return error_response(exc.code, exc.message)


async def handle_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    message = _validation_message(exc)
    logger.info("request_invalid", path=request.url.path, message=message)
    return error_response(ErrorCode.VALIDATION_ERROR, message)


async def handle_http_error(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    code = _HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.VALIDATION_ERROR)
    return error_response(code, str(exc.detail), status_code=exc.status_code)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", path=request.url.path, error=str(exc))
    return error_response(ErrorCode.SERVER_ERROR, "Something went wrong")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle events.

    Opens the database and builds the desktop services on startup,
    and closes the database on shutdown.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings: Settings = app.state.settings
    logger.info("api_startup", host=settings.host, port=settings.port)

    db = Database(settings.database_path)
    db.initialize()

    app.state.db = db
    app.state.desktops = DesktopRepository(db)
    app.state.tree = TreeStore(
        db,
        desktop_icon_limit=settings.desktop_icon_limit,
        content_file_limit=settings.content_file_limit,
    )
    app.state.ordering = OrderingService(db, dock_limit=settings.dock_limit)
    app.state.access = AccessGate(
        db,
        restamp_on_republish=settings.restamp_on_republish,
    )
    app.state.dock = DockRepository(db, dock_limit=settings.dock_limit)

    try:
        yield
    finally:
        db.close()
        logger.info("api_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Factory function to create configured FastAPI application.

    Args:
        settings: Configuration instance. Creates default if None.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Deskspace API",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/v1/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/api/v1/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    configure_cors(app, settings.cors_origins, settings.identity_header)
    app.add_middleware(RequestLoggingMiddleware)
    if settings.key:
        app.add_middleware(GatewayKeyMiddleware, api_key=settings.key)

    app.add_exception_handler(DeskError, handle_desk_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(desktop.router, prefix="/api/v1")
    app.include_router(items.router, prefix="/api/v1")
    app.include_router(dock.router, prefix="/api/v1")
    app.include_router(public.router, prefix="/api/v1")

    return app
