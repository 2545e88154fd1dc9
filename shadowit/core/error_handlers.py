"""Maps exceptions raised under a route to the error envelope."""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shadowit.core.exceptions import AppException
from shadowit.schemas.common import ErrorDetail, create_error_response

logger = logging.getLogger(__name__)


def validation_details(errors: list[dict[str, Any]]) -> list[ErrorDetail]:
    # loc[0] is the request part (body, query); the rest is the field path
    return [
        ErrorDetail(
            code=error.get("type", "invalid"),
            field=".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            message=error.get("msg", "Invalid value"),
        )
        for error in errors
    ]


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s on %s %s: %s",
        exc.code,
        request.method,
        request.url.path,
        exc.message,
    )
    return create_error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = validation_details(exc.errors())
    logger.warning(
        "Rejected %s %s: %s",
        request.method,
        request.url.path,
        ", ".join(d.field or d.code for d in details),
    )
    return create_error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        status_code=422,
        details=details,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return create_error_response(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred",
        status_code=500,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
