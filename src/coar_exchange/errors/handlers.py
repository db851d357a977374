"""FastAPI exception handlers producing the inbox error body."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from coar_exchange.errors.exceptions import CoarExchangeError, ForbiddenError
from coar_exchange.models.responses import ErrorResponse

logger = logging.getLogger(__name__)

LD_JSON = "application/ld+json"


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(CoarExchangeError)
    async def exchange_error_handler(request: Request, exc: CoarExchangeError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if isinstance(exc, ForbiddenError):
            logger.warning(
                "inbox_access_denied",
                extra={
                    "path": request.url.path,
                    "client": request.client.host if request.client else None,
                    "trace_id": trace_id,
                },
            )
        body = ErrorResponse(
            error=exc.message,
            code=exc.code,
            details=exc.details,
            trace_id=trace_id,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(mode="json", exclude_none=True),
            media_type=LD_JSON,
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", "unknown")
        logger.exception("Unhandled error on %s %s (trace=%s)", request.method, request.url.path, trace_id)
        body = ErrorResponse(error="Internal server error", code="INTERNAL_ERROR", trace_id=trace_id)
        return JSONResponse(
            status_code=500,
            content=body.model_dump(mode="json", exclude_none=True),
            media_type=LD_JSON,
        )
