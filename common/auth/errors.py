"""
Authentication error taxonomy.

A closed set of error kinds raised by the auth components. Each error carries
a machine-readable code and optional structured details, so callers can branch
on the kind instead of parsing messages. Nothing here knows about HTTP; the
boundary layer maps kinds to status codes (see common.utils.exceptions).

Example:
    from common.auth.errors import TokenExpiredError, AuthError

    try:
        claims = jwt_auth.verify(token)
    except TokenExpiredError:
        # prompt re-login
        ...
    except AuthError as e:
        print(e.code, e.message)
"""

from typing import Any, Optional


class AuthError(Exception):
    """Base class for every error raised by the auth core."""

    default_message = "Authentication error"
    default_code = "AUTH_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# Input errors
# =============================================================================

class ValidationError(AuthError):
    """Bad input shape, length or format. The caller can correct and retry."""

    default_message = "Validation error"
    default_code = "VALIDATION_ERROR"


class WeakInputError(ValidationError):
    """Password does not meet the strength rules."""

    default_message = "Password is too weak"
    default_code = "WEAK_PASSWORD"


class InvalidInputError(ValidationError):
    """Argument of the wrong type (e.g. a non-string password)."""

    default_message = "Invalid input"
    default_code = "INVALID_INPUT"


class InvalidPayloadError(ValidationError):
    """Token payload is missing required data."""

    default_message = "Token payload must contain a subject id"
    default_code = "INVALID_PAYLOAD"


class MissingFieldError(ValidationError):
    """A required field was not provided."""

    default_message = "Required field missing"
    default_code = "MISSING_FIELD"


# =============================================================================
# Authentication failures
# =============================================================================

class InvalidCredentialsError(AuthError):
    """
    Credential check failed.

    The message is fixed so unknown-email and wrong-password failures are
    indistinguishable to the caller.
    """

    default_message = "Invalid email or password"
    default_code = "INVALID_CREDENTIALS"


class TokenError(AuthError):
    """Base for token verification failures."""

    default_message = "Invalid token"
    default_code = "INVALID_TOKEN"


class TokenExpiredError(TokenError):
    default_message = "Token has expired"
    default_code = "TOKEN_EXPIRED"


class TokenMalformedError(TokenError):
    default_message = "Token is invalid or malformed"
    default_code = "TOKEN_MALFORMED"


class TokenNotYetValidError(TokenError):
    default_message = "Token is not yet valid"
    default_code = "TOKEN_NOT_YET_VALID"


class SessionInvalidError(AuthError):
    """Token signature is fine but no usable session backs it."""

    default_message = "Session is invalid or has expired"
    default_code = "SESSION_INVALID"


class ForbiddenError(AuthError):
    default_message = "Forbidden"
    default_code = "FORBIDDEN"


# =============================================================================
# Resource errors
# =============================================================================

class ConflictError(AuthError):
    """Uniqueness violation."""

    default_message = "Conflict"
    default_code = "CONFLICT"


class EmailTakenError(ConflictError):
    default_message = "Email is already registered"
    default_code = "EMAIL_TAKEN"


class UsernameTakenError(ConflictError):
    default_message = "Username is already in use"
    default_code = "USERNAME_TAKEN"


class NotFoundError(AuthError):
    default_message = "Not found"
    default_code = "NOT_FOUND"


class InternalError(AuthError):
    """Storage or backend failure not attributable to caller input."""

    default_message = "Internal error"
    default_code = "INTERNAL_ERROR"
