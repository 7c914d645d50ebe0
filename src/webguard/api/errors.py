"""Exception handlers for the REST API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from webguard.api.models import ErrorResponse
from webguard.security.errors import SecurityValidationError

logger = logging.getLogger(__name__)


def _error_response(
    *,
    status_code: int,
    error: str,
    message: str,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    payload = ErrorResponse(error=error, message=message, details=details)
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SecurityValidationError)
    async def _security_rejection_handler(  # noqa: ANN202
        request: Request, exc: SecurityValidationError
    ):
        # The kind is enough to diagnose; the input itself stays out of the logs.
        logger.info(
            "Input rejected by security validation",
            extra={
                "event": "api.input.rejected",
                "kind": exc.kind,
                "path": request.url.path,
            },
        )
        return _error_response(status_code=400, error=exc.kind, message=exc.message)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(  # noqa: ANN202
        request: Request, exc: RequestValidationError
    ):
        _ = request
        return _error_response(
            status_code=422,
            error="validation_error",
            message="Invalid request payload.",
            details=[
                {key: value for key, value in dict(item).items() if key != "input"}
                for item in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(  # noqa: ANN202
        request: Request, exc: Exception
    ):
        logger.exception("Unhandled API exception for path=%s", request.url.path, exc_info=exc)
        return _error_response(
            status_code=500,
            error="internal_error",
            message="Internal server error.",
        )
