"""FastAPI application definition."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from taskcred.core.exceptions import AuthenticationError, DependencyError, TaskcredError

from .deps import lifespan
from .routes import api_router

logger = structlog.get_logger()


def error_response(status_code: int, kind: str, message: str) -> JSONResponse:
    """Render the error envelope shared by every failed request."""
    headers = {"WWW-Authenticate": "Bearer"} if kind == AuthenticationError.kind else None
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message}},
        headers=headers,
    )


async def handle_domain_error(request: Request, exc: TaskcredError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, kind=exc.kind, error=exc.message)
    return error_response(exc.status_code, exc.kind, exc.message)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are validation errors (400)."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else first["msg"]
    return error_response(400, "validation_error", message)


async def handle_database_error(request: Request, exc: PyMongoError) -> JSONResponse:
    """The database failed; report a dependency error without internals."""
    logger.error("database_error", path=request.url.path, error=str(exc))
    return error_response(DependencyError.status_code, DependencyError.kind, "Database unavailable")


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is an internal error; details stay in the log."""
    logger.exception("unhandled_error", path=request.url.path)
    return error_response(500, "internal_error", "Internal server error")


def create_app() -> FastAPI:
    """Build the application with routes and error handlers."""
    application = FastAPI(
        title="taskcred",
        description="Task tracking with punctuality credits",
        version="1.0.0",
        lifespan=lifespan,
        redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
    )

    # CORS middleware for frontend
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(TaskcredError, handle_domain_error)
    application.add_exception_handler(RequestValidationError, handle_request_validation)
    application.add_exception_handler(PyMongoError, handle_database_error)
    application.add_exception_handler(Exception, handle_unexpected)

    application.include_router(api_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()
