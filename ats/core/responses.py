from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ats.core.context import get_correlation_id
from ats.core.errors import AtsError, FieldError


logger = logging.getLogger("ats.errors")

_REQUEST_SECTIONS = {"body", "query", "path", "header", "form"}


@dataclass
class ErrorEnvelope:
    success: bool
    error: str
    statusCode: int
    correlation_id: str | None
    errors: list[FieldError] | None = None


def success_response(data: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "data": jsonable_encoder(data), "statusCode": status_code},
    )


def error_response(
    request: Request,
    *,
    status_code: int,
    message: str,
    errors: list[FieldError] | None = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = asdict(
        ErrorEnvelope(
            success=False,
            error=message,
            statusCode=status_code,
            correlation_id=correlation_id,
            errors=errors,
        )
    )
    if payload["errors"] is None:
        payload.pop("errors")
    return JSONResponse(status_code=status_code, content=payload)


def exception_response(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc, AtsError):
        return error_response(request, status_code=exc.status_code, message=exc.message, errors=exc.errors)
    return error_response(request, status_code=exc.status_code, message=str(exc.detail))


def request_validation_errors(exc: RequestValidationError) -> list[FieldError]:
    """Flatten FastAPI validation errors into ``{field, message}`` pairs rooted at the payload."""
    errors: list[FieldError] = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in _REQUEST_SECTIONS:
            location = location[1:]
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        errors.append({"field": ".".join(location), "message": message})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Validation failed",
            errors=request_validation_errors(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if isinstance(exc, AtsError):
            return exception_response(request, exc)
        return error_response(request, status_code=exc.status_code, message=str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request.unhandled_error", extra={"path": request.url.path, "error": str(exc)[:500]})
        return error_response(request, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message="Internal server error")
