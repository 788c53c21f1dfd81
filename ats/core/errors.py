from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


FieldError = dict[str, str]

_QUERY_CANCELED_CODES = {"57014"}
_FOREIGN_KEY_CODES = {"23503"}


class AtsError(HTTPException):
    """Base error for failures that are reported through the response envelope."""

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, errors: list[FieldError] | None = None, *, status_code: int | None = None) -> None:
        super().__init__(status_code=status_code or self.status_code_default, detail=message)
        self.message = message
        self.errors = errors


class ValidationFailed(AtsError):
    status_code_default = status.HTTP_400_BAD_REQUEST


class NotFound(AtsError):
    status_code_default = status.HTTP_404_NOT_FOUND


class Conflict(AtsError):
    status_code_default = status.HTTP_409_CONFLICT


class RequestTimeout(AtsError):
    status_code_default = status.HTTP_408_REQUEST_TIMEOUT


class InternalError(AtsError):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR


def field_error(field: str, message: str) -> FieldError:
    return {"field": field, "message": message}


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    code: Any = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return str(code) if code else None


def is_foreign_key_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) in _FOREIGN_KEY_CODES:
        return True
    return "foreign key constraint" in str(getattr(exc, "orig", exc)).lower()


def map_store_error(exc: Exception, *, conflict_message: str = "Duplicate entry found") -> AtsError:
    """Translate a SQLAlchemy failure into the envelope error kind it stands for."""
    if isinstance(exc, AtsError):
        return exc
    if isinstance(exc, IntegrityError):
        if is_foreign_key_violation(exc):
            return NotFound("Related record not found")
        return Conflict(conflict_message)
    if isinstance(exc, PoolTimeoutError):
        return RequestTimeout("Transaction timeout - please try again")
    if isinstance(exc, OperationalError) and _sqlstate(exc) in _QUERY_CANCELED_CODES:
        return RequestTimeout("Transaction timeout - please try again")
    return InternalError("Internal server error")
