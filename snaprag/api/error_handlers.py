"""Map snaprag errors and request validation failures to HTTP responses."""

import traceback

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse

from snaprag.errors import (
    AuthError,
    GenerationError,
    IndexQueryError,
    InvalidRequestError,
    NotFoundError,
    ProviderError,
)

logger = structlog.get_logger()


def register_error_handlers(app: FastAPI):
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed bodies are client errors (400)."""
        errors = []
        for error in exc.errors():
            loc = " -> ".join(str(l) for l in error.get("loc", []))
            errors.append({
                "field": loc,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            })

        logger.warning(
            "validation_error",
            path=request.url.path,
            method=request.method,
            errors=errors,
        )

        return ORJSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "errors": errors},
        )

    @app.exception_handler(InvalidRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRequestError):
        return ORJSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return ORJSONResponse(
            status_code=401,
            content={"error": str(exc) or "User not authenticated"},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return ORJSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        logger.warning("provider_error", path=request.url.path, error=str(exc))
        message = "Failed to generate content" if isinstance(exc, GenerationError) else "Upstream provider failed"
        return ORJSONResponse(status_code=502, content={"error": message})

    @app.exception_handler(IndexQueryError)
    async def index_error_handler(request: Request, exc: IndexQueryError):
        logger.error("index_error", path=request.url.path, error=str(exc))
        return ORJSONResponse(status_code=503, content={"error": "Search index unavailable"})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions - log and return 500."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            traceback=traceback.format_exc(),
        )

        return ORJSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )
