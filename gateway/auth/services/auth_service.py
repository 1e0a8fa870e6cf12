"""
Authentication orchestration.

Composes the token signer, password hasher, session policy and user
repository into the account flows: register, login, logout, password change,
token refresh, profile management and per-request verification.

A request is authenticated only when its token passes signature checks AND
a live session backs it. Signature validity alone never authorizes.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId

from common.auth.errors import (
    ForbiddenError,
    InvalidCredentialsError,
    MissingFieldError,
    NotFoundError,
    SessionInvalidError,
    TokenError,
    TokenExpiredError,
    TokenMalformedError,
    ValidationError,
    WeakInputError,
)
from common.auth.jwt_auth import REFRESH_TOKEN_TYPE, JWTAuth
from common.auth.password_hasher import PasswordHasher
from common.utils.clock import Clock, utcnow
from gateway.auth.services.session_policy import SessionPolicy
from gateway.auth.services.token_hasher import TokenHasher
from gateway.auth.validators import (
    DEFAULT_PREFERENCES,
    normalize_email,
    validate_email,
    validate_profile_updates,
    validate_username,
)
from gateway.user.services.user_repository import UserRepository, to_public_user

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    """State of a presented token, in the order checks are applied."""
    NO_TOKEN = "no_token"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    REVOKED = "revoked"
    VALID = "valid"


class AuthService:
    """
    Account and session flows.
    """

    def __init__(
        self,
        users: UserRepository,
        jwt_auth: JWTAuth,
        password_hasher: PasswordHasher,
        session_policy: SessionPolicy,
        clock: Clock = utcnow,
    ):
        """
        Initialize AuthService.

        Args:
            users: User persistence
            jwt_auth: Token issuer/verifier
            password_hasher: Password hashing and strength rules
            session_policy: Session lifecycle rules
            clock: Source of "now"
        """
        self._users = users
        self._jwt_auth = jwt_auth
        self._hasher = password_hasher
        self._policy = session_policy
        self._clock = clock

    # =========================================================================
    # Request authentication
    # =========================================================================

    def resolve_token(
        self,
        authorization_header: Optional[str] = None,
        cookie_token: Optional[str] = None,
    ) -> Optional[str]:
        """
        Pick the token presented with a request.

        The Authorization header wins over the cookie.
        """
        header_token = JWTAuth.extract_from_header(authorization_header)

        if header_token:
            if cookie_token and cookie_token != header_token:
                logger.debug("Authorization header and cookie carry different tokens, using header")
            return header_token

        return cookie_token or None

    async def authenticate(
        self,
        authorization_header: Optional[str] = None,
        cookie_token: Optional[str] = None,
    ) -> Tuple[dict, str]:
        """
        Authenticate a request from its header and cookie.

        Returns:
            tuple of (public_user, token)

        Raises:
            SessionInvalidError: no token presented, or no live session for it
            TokenError: token is malformed, expired or not yet valid
        """
        token = self.resolve_token(authorization_header, cookie_token)

        if not token:
            raise SessionInvalidError("Authentication required", code="TOKEN_MISSING")

        try:
            user = await self.verify_auth(token)
        except (TokenError, SessionInvalidError) as e:
            logger.warning(f"Authentication rejected: {e.code}")
            raise

        return user, token

    async def verify_auth(self, token: str) -> dict:
        """
        Verify a token and the session behind it.

        Returns:
            The authenticated user, freshly loaded, password hash excluded
        """
        if not token:
            raise SessionInvalidError("Authentication required", code="TOKEN_MISSING")

        claims = self._jwt_auth.verify_access(token)
        session = await self._policy.require_valid(token)

        if str(session.get("userId")) != claims.get("sub"):
            raise SessionInvalidError()

        user = await self._load_user(claims.get("sub"))
        if user is None or user.get("isActive") is False:
            raise SessionInvalidError("User no longer exists or is disabled", code="USER_UNAVAILABLE")

        return to_public_user(user)

    async def classify(self, token: Optional[str]) -> TokenState:
        """Where a token stops in the verification chain. Never raises for bad tokens."""
        if not token:
            return TokenState.NO_TOKEN

        try:
            self._jwt_auth.verify_access(token)
        except TokenExpiredError:
            return TokenState.EXPIRED
        except TokenError:
            return TokenState.MALFORMED

        session = await self._policy.store.get_by_token(token)
        if session is None:
            return TokenState.REVOKED

        return TokenState.VALID

    # =========================================================================
    # Account flows
    # =========================================================================

    async def register(self, username: str, email: str, password: str) -> Dict[str, Any]:
        """
        Create an account.

        Issues an access token but opens no session: the token is rejected by
        verify_auth until the user logs in.

        Returns:
            dict with user and token

        Raises:
            ValidationError: username or email invalid (all problems in details.errors)
            MissingFieldError: password missing
            WeakInputError: password fails strength rules (all problems in details.errors)
            EmailTakenError / UsernameTakenError: already registered
        """
        errors = validate_username(username) + validate_email(email)
        if errors:
            raise ValidationError("Invalid registration data", details={"errors": errors})

        if not isinstance(password, str) or not password:
            raise MissingFieldError("Password is required", details={"fields": ["password"]})

        strength = self._hasher.validate_strength(password)
        if not strength.is_valid:
            raise WeakInputError(details={"errors": strength.errors})

        email = normalize_email(email)

        conflict = await self._users.find_conflict(email=email, username=username)
        if conflict:
            raise conflict

        user = await self._users.create({
            "username": username,
            "email": email,
            "passwordHash": self._hasher.hash(password),
            "role": "user",
            "avatar": None,
            "preferences": dict(DEFAULT_PREFERENCES),
            "isActive": True,
            "lastLogin": None,
        })

        token = self._jwt_auth.issue(user["_id"], email, "user")

        logger.info(f"User registered: {user['_id']}")
        return {"user": to_public_user(user), "token": token}

    async def login(
        self,
        email: str,
        password: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Check credentials and open a session.

        Unknown email and wrong password fail identically.

        Returns:
            dict with user, token, refreshToken and expiresAt

        Raises:
            MissingFieldError: email or password missing
            InvalidCredentialsError: no such user or wrong password
            ForbiddenError: account is disabled (code ACCOUNT_DISABLED)
        """
        if not email or not password:
            raise MissingFieldError("Email and password are required", details={"fields": ["email", "password"]})

        if not isinstance(email, str) or not isinstance(password, str):
            raise InvalidCredentialsError()

        user = await self._users.find_by_email(normalize_email(email), include_password=True)

        if not user or not user.get("passwordHash") or not self._hasher.compare(password, user["passwordHash"]):
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()

        if user.get("isActive") is False:
            logger.warning(f"Login attempt on disabled account {user['_id']}")
            raise ForbiddenError("Account is disabled", code="ACCOUNT_DISABLED")

        token = self._jwt_auth.issue(user["_id"], user.get("email"), user.get("role"))
        refresh_token = self._jwt_auth.issue_refresh(user["_id"])

        session = await self._policy.on_login(
            user["_id"], token, ip_address, user_agent, refresh_token=refresh_token,
        )

        updated =await self._users.update_by_id(user["_id"], {"lastLogin": self._clock()})
        if updated is None:
            updated = user

        logger.info(f"User {user['_id']} logged in")
        return {
            "user": to_public_user(updated),
            "token": token,
            "refreshToken": refresh_token,
            "expiresAt": session["expiresAt"],
        }

    async def logout(self, token: str) -> bool:
        """
        End the session for a token.

        The token itself stays signature-valid but can no longer pass
        verify_auth because its session is gone.

        Returns:
            False if there was no session for the token
        """
        if not token:
            raise MissingFieldError("Token is required", details={"fields": ["token"]})

        logged_out = await self._policy.on_logout(token)
        if logged_out:
            logger.info("Session logged out")
        return logged_out

    async def logout_all(self, user_id: Union[str, ObjectId]) -> int:
        return await self._policy.on_logout_all(user_id)

    async def change_password(
        self,
        user_id: Union[str, ObjectId],
        current_password: str,
        new_password: str,
    ) -> int:
        """
        Replace the password and end every session of the user.

        The session used to make the request is ended too.

        Returns:
            Number of sessions revoked

        Raises:
            MissingFieldError: either password missing
            NotFoundError: no such user
            InvalidCredentialsError: current password wrong (code CURRENT_PASSWORD_INCORRECT)
            ValidationError: new password equals the current one (code PASSWORD_UNCHANGED)
            WeakInputError: new password fails strength rules
        """
        if not current_password or not new_password:
            raise MissingFieldError(
                "Current and new password are required",
                details={"fields": ["currentPassword", "newPassword"]},
            )

        user = await self._users.find_by_id(user_id, include_password=True)
        if not user:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        password_hash = user.get("passwordHash")
        if not password_hash or not self._hasher.compare(current_password, password_hash):
            raise InvalidCredentialsError("Current password is incorrect", code="CURRENT_PASSWORD_INCORRECT")

        if current_password == new_password:
            raise ValidationError(
                "New password must differ from the current password",
                code="PASSWORD_UNCHANGED",
            )

        strength = self._hasher.validate_strength(new_password)
        if not strength.is_valid:
            raise WeakInputError(details={"errors": strength.errors})

        await self._users.update_by_id(user_id, {"passwordHash": self._hasher.hash(new_password)})

        return await self._policy.on_password_change(user_id)

    async def refresh_token(
        self,
        refresh_token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Issue a new access token from a refresh token.

        The refresh token is reused as-is, not rotated. It only works while
        the login session it was issued with is live; that session moves to
        the new access token and the previous access token stops working.
        ip_address and user_agent are accepted for the call signature but the
        session keeps the device it was opened from.

        Returns:
            dict with token and expiresAt

        Raises:
            MissingFieldError: no refresh token
            TokenMalformedError: not a valid refresh token (code NOT_A_REFRESH_TOKEN)
            TokenExpiredError: refresh token has expired
            SessionInvalidError: user no longer exists or is disabled (USER_UNAVAILABLE),
                or the login session is gone (REFRESH_REVOKED)
        """
        if not refresh_token:
            raise MissingFieldError("Refresh token is required", details={"fields": ["refreshToken"]})

        try:
            claims = self._jwt_auth.verify(refresh_token)
        except TokenMalformedError as e:
            raise TokenMalformedError("Invalid refresh token", code="NOT_A_REFRESH_TOKEN", details=e.details)

        if claims.get("type") != REFRESH_TOKEN_TYPE:
            raise TokenMalformedError("Invalid refresh token", code="NOT_A_REFRESH_TOKEN")

        user = await self._load_user(claims.get("sub"))
        if user is None or user.get("isActive") is False:
            raise SessionInvalidError("User no longer exists or is disabled", code="USER_UNAVAILABLE")

        token = self._jwt_auth.issue(user["_id"], user.get("email"), user.get("role"))
        try:
            session = await self._policy.on_refresh(refresh_token, token)
        except SessionInvalidError:
            logger.warning(f"Refresh rejected for user {user['_id']}: session ended")
            raise

        logger.info(f"Access token refreshed for user {user['_id']}")
        return {"token": token, "expiresAt": session["expiresAt"]}

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self, user_id: Union[str, ObjectId]) -> dict:
        user = await self._users.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")
        return to_public_user(user)

    async def update_profile(self, user_id: Union[str, ObjectId], updates: Dict[str, Any]) -> dict:
        """
        Update username, email, avatar or preferences.

        Preferences are merged into the stored ones, not replaced.

        Raises:
            ValidationError: unknown field or invalid value
            EmailTakenError / UsernameTakenError: value belongs to another user
            NotFoundError: no such user
        """
        cleaned = validate_profile_updates(updates)

        user = await self._users.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        conflict = await self._users.find_conflict(
            email=cleaned.get("email"),
            username=cleaned.get("username"),
            exclude_id=user["_id"],
        )
        if conflict:
            raise conflict

        if "preferences" in cleaned:
            cleaned["preferences"] = {
                **DEFAULT_PREFERENCES,
                **(user.get("preferences") or {}),
                **cleaned["preferences"],
            }

        updated = await self._users.update_by_id(user["_id"], cleaned)
        if updated is None:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        logger.info(f"Profile updated for user {user['_id']}: {', '.join(sorted(cleaned))}")
        return to_public_user(updated)

    async def deactivate_user(self, user_id: Union[str, ObjectId]) -> int:
        """
        Disable an account and end all of its sessions.

        Returns:
            Number of sessions revoked
        """
        updated = await self._users.update_by_id(user_id, {"isActive": False})
        if updated is None:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        return await self._policy.on_user_disabled(user_id)

    # =========================================================================
    # Sessions
    # =========================================================================

    async def list_sessions(
        self,
        user_id: Union[str, ObjectId],
        current_token: Optional[str] = None,
    ) -> List[dict]:
        """Active sessions of a user, most recently used first."""
        current_hash = TokenHasher.hash_token(current_token) if current_token else None
        sessions = await self._policy.store.get_active_by_user(user_id)
        return [_public_session(s, current_hash) for s in sessions]

    async def revoke_session(
        self,
        user_id: Union[str, ObjectId],
        session_id: str,
        current_token: Optional[str] = None,
    ) -> bool:
        """
        End one of the user's other sessions.

        Raises:
            ValidationError: session_id is the calling session (code CANNOT_REVOKE_CURRENT)
            NotFoundError: no such active session for this user
        """
        store = self._policy.store

        session = await store.get_by_id(user_id, session_id)
        if not session or not session.get("isActive"):
            raise NotFoundError("Session not found", code="SESSION_NOT_FOUND")

        if current_token and session["tokenHash"] == TokenHasher.hash_token(current_token):
            raise ValidationError(
                "Cannot revoke the current session, log out instead",
                code="CANNOT_REVOKE_CURRENT",
            )

        await store.revoke(session, "manual")
        await store.delete_by_id(user_id, session_id)
        return True

    async def session_info(self, token: str) -> dict:
        """Details of the session behind a token, with seconds left before it expires."""
        session = await self._policy.store.get_by_token(token)
        if session is None:
            raise SessionInvalidError()

        info = _public_session(session, TokenHasher.hash_token(token))
        info["remainingSeconds"] = self._jwt_auth.remaining_seconds(token)
        return info

    def cookie_options(self) -> Dict[str, Any]:
        return self._jwt_auth.cookie_options()

    async def _load_user(self, user_id: Any) -> Optional[dict]:
        try:
            return await self._users.find_by_id(user_id)
        except ValidationError:
            # Subject is not a valid id
            return None


def _public_session(session: dict, current_hash: Optional[str] = None) -> dict:
    """API shape of a session. Never includes the token hash."""
    return {
        "id": str(session["_id"]),
        "device": session.get("device"),
        "ipAddress": session.get("ipAddress"),
        "createdAt": session.get("createdAt"),
        "lastActivity": session.get("lastActivity"),
        "expiresAt": session.get("expiresAt"),
        "isCurrent": current_hash is not None and session.get("tokenHash") == current_hash,
    }
