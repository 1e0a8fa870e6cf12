"""
Common library for reusable infrastructure components.

This package provides generic modules that can be used across projects:

- database: Async MongoDB connection with Motor
- auth: JWT tokens, bcrypt password hashing, auth error taxonomy
- utils: Standard responses, exceptions, password rules, clock
- config: Base settings class
"""

from common.database import MongoDB
from common.auth import AuthError, JWTAuth, PasswordHasher
from common.utils import (
    success_response,
    error_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    to_api_exception,
    validate_password,
)
from common.config import BaseAppSettings

__all__ = [
    # Database
    "MongoDB",
    # Auth
    "AuthError",
    "JWTAuth",
    "PasswordHasher",
    # Utils
    "success_response",
    "error_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "to_api_exception",
    "validate_password",
    # Config
    "BaseAppSettings",
]
