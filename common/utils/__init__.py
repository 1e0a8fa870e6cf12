"""
Utilities module - Common helpers for API responses, exceptions, and validation.
"""

from common.utils.responses import success_response, error_response
from common.utils.exceptions import (
    APIException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    RateLimitException,
    InternalServerException,
    to_api_exception,
)
from common.utils.password import validate_password, generate_password
from common.utils.clock import utcnow

__all__ = [
    "success_response",
    "error_response",
    "APIException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "RateLimitException",
    "InternalServerException",
    "to_api_exception",
    "validate_password",
    "generate_password",
    "utcnow",
]
