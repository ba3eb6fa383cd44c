"""Typed errors with stable machine-readable codes."""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable error codes exposed to API callers."""

    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
}


class SoonlistError(Exception):
    """Base exception for all Soonlist errors.

    Args:
        message: Human-readable message
        data: Context for log correlation (operation name, ids)
        cause: Original exception, if any
    """

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.data = data or {}
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "data": self.data or None,
        }


class BadRequestError(SoonlistError):
    """Caller supplied unusable input."""

    code = ErrorCode.BAD_REQUEST


class UnauthorizedError(SoonlistError):
    """No authenticated caller identity."""

    code = ErrorCode.UNAUTHORIZED


class ForbiddenError(SoonlistError):
    """Caller is neither the owner nor an admin."""

    code = ErrorCode.FORBIDDEN


class NotFoundError(SoonlistError):
    code = ErrorCode.NOT_FOUND


class InternalServerError(SoonlistError):
    code = ErrorCode.INTERNAL_SERVER_ERROR


class GenerationError(InternalServerError):
    """Model call failed or produced output that does not match the schema."""
