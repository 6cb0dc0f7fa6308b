"""Mapping of Flixr exceptions to HTTP error responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from flixr.core.exceptions import FlixrError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

# Upstream statuses forwarded to the caller as-is
PASSTHROUGH_STATUSES = frozenset({404, 429})


def upstream_status(exc: UpstreamError) -> int:
    """HTTP status for a failed upstream call.

    Timeouts map to 504, not-found and rate-limited pass through, and
    everything else is a bad gateway.
    """
    if exc.timed_out:
        return status.HTTP_504_GATEWAY_TIMEOUT
    if exc.status_code in PASSTHROUGH_STATUSES:
        return exc.status_code  # type: ignore[return-value]
    return status.HTTP_502_BAD_GATEWAY


def _error_body(exc: FlixrError, detail: str | None = None) -> dict[str, str | None]:
    return {"error": exc.message, "detail": detail, "code": exc.code}


def register_exception_handlers(app: FastAPI) -> None:
    """Install JSON error handlers on the application."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(exc)
        )

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(
        request: Request, exc: UpstreamError
    ) -> JSONResponse:
        code = upstream_status(exc)
        logger.error(
            f"Upstream error on {request.url.path}: {exc.message} "
            f"(upstream status={exc.status_code}, returned {code})"
        )
        return JSONResponse(status_code=code, content=_error_body(exc, exc.path))

    @app.exception_handler(FlixrError)
    async def flixr_error_handler(request: Request, exc: FlixrError) -> JSONResponse:
        logger.error(f"Unhandled {exc.code} on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(exc),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unhandled exceptions."""
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "detail": str(exc)},
        )
