"""
JWT issuing and verification.

Signs access and refresh tokens with a shared secret (HS256) and verifies
them against fixed issuer/audience claims. Stateless: revocation is the
session store's job, not this module's.

Example:
    auth = JWTAuth(
        secret="your-secret-key",
        expires_in="7d",
    )

    token = auth.issue(user_id, "user@example.com", "user")
    claims = auth.verify(token)
    print(claims["sub"])  # user_id
"""

import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from common.auth.errors import (
    InvalidPayloadError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
    TokenNotYetValidError,
)
from common.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = "7d"
REFRESH_EXPIRES_IN = "30d"
REFRESH_TOKEN_TYPE = "refresh"
BEARER_PREFIX = "Bearer "

_DURATION_PATTERN = re.compile(r"^(\d+)([dhms])$")
_DURATION_UNITS = {
    "d": "days",
    "h": "hours",
    "m": "minutes",
    "s": "seconds",
}


def parse_duration(value: str, default: Optional[str] = DEFAULT_EXPIRES_IN) -> timedelta:
    """
    Parse a duration like "7d", "24h", "60m" or "3600s".

    Args:
        value: Duration string
        default: Fallback used when value does not parse. None raises instead.

    Raises:
        ValueError: value does not parse and no default was given
    """
    match = _DURATION_PATTERN.match(value.strip()) if isinstance(value, str) else None

    if not match:
        if default is None:
            raise ValueError(f"Invalid duration: {value!r}")
        return parse_duration(default, default=None)

    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


class JWTAuth:
    """
    Token issuer and verifier.

    All settings are fixed at construction. The clock is injectable so expiry
    can be tested without waiting.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expires_in: str = DEFAULT_EXPIRES_IN,
        issuer: str = "gemini-api-server",
        audience: str = "gemini-api-client",
        is_production: bool = False,
        clock: Clock = utcnow,
    ):
        """
        Initialize JWT auth.

        Args:
            secret: Secret key for JWT signing (keep this secure!)
            algorithm: JWT algorithm (default: HS256)
            expires_in: Access token lifetime, e.g. "7d" or "12h"
            issuer: Value of the iss claim, checked on verify
            audience: Value of the aud claim, checked on verify
            is_production: Marks cookies as secure
            clock: Source of "now"
        """
        if not secret:
            raise ValueError("JWT secret is required")

        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_token_expire = parse_duration(expires_in)
        self.refresh_token_expire = parse_duration(REFRESH_EXPIRES_IN)
        self.is_production = is_production
        self._clock = clock

    def _sign(self, claims: Dict[str, Any], lifetime: timedelta) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            **claims,
            "iat": issued_at,
            "exp": issued_at + int(lifetime.total_seconds()),
            "iss": self.issuer,
            "aud": self.audience,
            # Unique per token; sessions are keyed by the token hash
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue(self, subject_id: Any, email: Optional[str] = None, role: Optional[str] = None) -> str:
        """
        Create an access token.

        Raises:
            InvalidPayloadError: subject_id is missing
        """
        if not subject_id:
            raise InvalidPayloadError()

        return self._sign(
            {"sub": str(subject_id), "email": email, "role": role or "user"},
            self.access_token_expire,
        )

    def issue_refresh(self, subject_id: Any) -> str:
        """Create a refresh token. Lifetime is fixed at 30 days."""
        if not subject_id:
            raise InvalidPayloadError()

        return self._sign(
            {"sub": str(subject_id), "type": REFRESH_TOKEN_TYPE},
            self.refresh_token_expire,
        )

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, issuer, audience and validity window.

        Raises:
            TokenMalformedError: bad structure, signature, issuer or audience
            TokenExpiredError: now is at or past the exp claim
            TokenNotYetValidError: now is before the nbf claim
        """
        if not isinstance(token, str) or not token:
            raise TokenMalformedError()

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                # Time checks run against the injected clock below
                options={
                    "verify_exp": False,
                    "verify_nbf": False,
                    "require_aud": True,
                    "require_iss": True,
                },
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            raise TokenMalformedError(details={"reason": str(e)})

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenMalformedError("Token has no expiry claim")

        now = self._clock().timestamp()

        if now >= exp:
            raise TokenExpiredError(details={"expiredAt": _from_timestamp(exp).isoformat()})

        nbf = claims.get("nbf")
        if isinstance(nbf, (int, float)) and now < nbf:
            raise TokenNotYetValidError(details={"notBefore": _from_timestamp(nbf).isoformat()})

        return claims

    def verify_access(self, token: str) -> Dict[str, Any]:
        """Verify a token and reject refresh tokens presented as access tokens."""
        claims = self.verify(token)
        if claims.get("type") == REFRESH_TOKEN_TYPE:
            raise TokenMalformedError(
                "Refresh tokens cannot be used for authentication",
                code="REFRESH_TOKEN_NOT_ALLOWED",
            )
        return claims

    def decode(self, token: str) -> Dict[str, Any]:
        """
        Read claims without checking the signature.

        Only for inspecting expiry. Never use the result for authorization.
        """
        if not isinstance(token, str) or not token:
            raise TokenMalformedError()

        try:
            return jwt.get_unverified_claims(token)
        except JWTError as e:
            raise TokenMalformedError("Token could not be decoded", details={"reason": str(e)})

    def expires_at(self, token: str) -> datetime:
        """Expiry of a token as an aware datetime."""
        exp = self.decode(token).get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenMalformedError("Token has no expiry claim")
        return _from_timestamp(exp)

    def is_refresh_token(self, token: str) -> bool:
        try:
            return self.verify(token).get("type") == REFRESH_TOKEN_TYPE
        except TokenError:
            return False

    def remaining_seconds(self, token: str) -> int:
        """Seconds until the token expires, 0 if expired or unreadable."""
        try:
            exp = self.decode(token).get("exp")
        except TokenMalformedError:
            return 0

        if not isinstance(exp, (int, float)):
            return 0

        remaining = int(exp - self._clock().timestamp())
        return remaining if remaining > 0 else 0

    @staticmethod
    def extract_from_header(header: Optional[str]) -> Optional[str]:
        """
        Extract the token from an Authorization header.

        Only the exact "Bearer <token>" form is accepted (case-sensitive
        scheme, one space). Anything else returns None.
        """
        if not isinstance(header, str) or not header.startswith(BEARER_PREFIX):
            return None

        token = header[len(BEARER_PREFIX):]

        if not token or " " in token:
            return None

        return token

    def cookie_options(self) -> Dict[str, Any]:
        """
        Cookie attributes for the auth cookie.

        Keys match Starlette's Response.set_cookie keyword arguments.
        """
        return {
            "max_age": int(self.access_token_expire.total_seconds()),
            "httponly": True,
            "secure": self.is_production,
            "samesite": "strict",
            "path": "/",
        }


def _from_timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)
