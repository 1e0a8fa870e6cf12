"""
Custom HTTP exceptions with error codes.

Extends FastAPI's HTTPException with standardized error codes
for consistent API error responses, and maps the auth error taxonomy
(common.auth.errors) onto them.

Example:
    from common.utils import NotFoundException, to_api_exception

    @app.get("/users/{id}")
    async def get_user(id: str):
        try:
            return await auth_service.get_profile(id)
        except AuthError as e:
            raise to_api_exception(e)
"""

from typing import Optional, Any, Dict, List, Tuple, Type

from fastapi import HTTPException

from common.auth.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidCredentialsError,
    NotFoundError,
    SessionInvalidError,
    TokenError,
    ValidationError,
)


class APIException(HTTPException):
    """
    Base API exception with error code support.

    Provides consistent error response format across the API.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Create an API exception.

        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        super().__init__(
            status_code=status_code,
            detail=detail,
            headers=headers,
        )


class BadRequestException(APIException):
    """400 Bad Request - Invalid input or malformed request."""

    def __init__(
        self,
        message: str = "Bad request",
        code: str = "BAD_REQUEST",
        details: Optional[Any] = None,
    ):
        super().__init__(400, message, code, details)


class UnauthorizedException(APIException):
    """401 Unauthorized - Missing or invalid authentication."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenException(APIException):
    """403 Forbidden - Valid auth but insufficient permissions."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 Not Found - Resource doesn't exist."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 Conflict - Resource already exists or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class RateLimitException(APIException):
    """429 Too Many Requests - Rate limit exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        code: str = "RATE_LIMIT_EXCEEDED",
        retry_after: Optional[int] = None,
    ):
        headers = {}
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        super().__init__(
            status_code=429,
            message=message,
            code=code,
            details={"retryAfter": retry_after} if retry_after else None,
            headers=headers if headers else None,
        )


class InternalServerException(APIException):
    """500 Internal Server Error - Unexpected server error."""

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(500, message, code, details)


# Checked in order, so subclasses must come before their parents
_ERROR_MAPPING: List[Tuple[Type[AuthError], Type[APIException]]] = [
    (ValidationError, BadRequestException),
    (InvalidCredentialsError, UnauthorizedException),
    (TokenError, UnauthorizedException),
    (SessionInvalidError, UnauthorizedException),
    (ForbiddenError, ForbiddenException),
    (NotFoundError, NotFoundException),
    (ConflictError, ConflictException),
    (InternalError, InternalServerException),
]


def to_api_exception(error: AuthError) -> APIException:
    """
    Convert an auth error into the matching HTTP exception.

    Internal errors never leak their message to the client.
    """
    for error_type, exception_type in _ERROR_MAPPING:
        if isinstance(error, error_type):
            if exception_type is InternalServerException:
                return InternalServerException()
            return exception_type(error.message, error.code, error.details)

    return InternalServerException()
