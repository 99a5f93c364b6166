"""
Service results and their mapping onto HTTP errors.

Services return ``Ok(value)`` or ``Err(code, message)`` instead of raising;
route handlers call ``unwrap()`` which turns an ``Err`` into a
``ServiceException`` rendered by ``service_exception_handler``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from starlette.requests import Request
from starlette.responses import JSONResponse

from studiodesk_shared.schemas.common import ErrorCode

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: bool = True


@dataclass(frozen=True)
class Err:
    code: ErrorCode
    message: str
    ok: bool = False


Result = Union[Ok[T], Err]


ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.AUTHENTICATION_REQUIRED: 401,
    ErrorCode.NOT_A_MEMBER: 403,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.MEMBERSHIP_NOT_FOUND: 404,
    ErrorCode.CANNOT_CHANGE_OWNER: 403,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.NO_STUDIO: 409,
    ErrorCode.STUDIO_NOT_FOUND: 404,
    ErrorCode.INVITE_NOT_FOUND: 404,
    ErrorCode.INVITE_EXPIRED: 410,
    ErrorCode.INVALID_INVITE_STATE: 409,
    ErrorCode.EMAIL_MISMATCH: 403,
    ErrorCode.ALREADY_MEMBER: 409,
    ErrorCode.CANNOT_REMOVE_SELF: 409,
    ErrorCode.CANNOT_REMOVE_OWNER: 403,
    ErrorCode.CONFLICT: 409,
}

DATABASE_ERROR_MESSAGE = "Something went wrong while saving your changes. Please try again."


def database_error(message: str = DATABASE_ERROR_MESSAGE) -> Err:
    """Generic DATABASE_ERROR; never carries driver error text."""
    return Err(ErrorCode.DATABASE_ERROR, message)


class ServiceException(Exception):
    """Raised by route handlers to surface an ``Err`` as an HTTP response."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return ERROR_STATUS.get(self.code, 400)


def unwrap(result: Result[T]) -> T:
    """Return the value of an ``Ok`` or raise ``ServiceException`` for an ``Err``."""
    if isinstance(result, Err):
        raise ServiceException(result.code, result.message)
    return result.value


def error_payload(code: ErrorCode | str, message: str, status: int) -> dict:
    return {
        "error": {
            "code": code.value if isinstance(code, ErrorCode) else code,
            "message": message,
            "status": status,
        }
    }


async def service_exception_handler(request: Request, exc: ServiceException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.code, exc.message, exc.status_code),
    )
