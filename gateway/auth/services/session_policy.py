"""
Session lifecycle rules.

Wraps SessionStore with the rules applied on login, logout, password change
and account deactivation.
"""

import logging
from typing import Optional, Union

from bson import ObjectId

from common.auth.errors import NotFoundError, SessionInvalidError
from gateway.auth.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class SessionPolicy:
    """
    Applies cross-cutting session rules on top of the store.
    """

    def __init__(self, store: SessionStore, max_sessions: int = SessionStore.DEFAULT_MAX_SESSIONS):
        """
        Args:
            store: Session storage
            max_sessions: Active sessions allowed per user before the oldest is evicted
        """
        self._store = store
        self.max_sessions = max_sessions

    @property
    def store(self) -> SessionStore:
        return self._store

    async def on_login(
        self,
        user_id: Union[str, ObjectId],
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> dict:
        """Create the session, then evict the oldest beyond the per-user limit."""
        session = await self._store.create(user_id, token, ip_address, user_agent, refresh_token)
        await self._store.limit_concurrent(user_id, self.max_sessions)
        return session

    async def on_refresh(self, refresh_token: str, token: str) -> dict:
        """
        Rebind the login session of a refresh token to a new access token.

        Logout, logout-all, password change and deactivation all end that
        session, so a refresh token dies with it.

        Raises:
            SessionInvalidError: no live session was opened with this refresh token
        """
        session = await self._store.renew(refresh_token, token)
        if session is None:
            raise SessionInvalidError("Refresh token is no longer valid", code="REFRESH_REVOKED")
        return session

    async def on_logout(self, token: str) -> bool:
        """
        Revoke and immediately delete the session for a token.

        Returns:
            False if there was no session to log out of
        """
        try:
            await self._store.revoke(token, "logout")
        except NotFoundError:
            logger.debug("Logout for a token with no session")
            return False

        await self._store.delete_by_token(token)
        return True

    async def on_logout_all(self, user_id: Union[str, ObjectId]) -> int:
        revoked = await self._store.revoke_all_by_user(user_id, "logout")
        await self._store.delete_all_by_user(user_id)
        logger.info(f"User {user_id} logged out of {revoked} sessions")
        return revoked

    async def on_password_change(self, user_id: Union[str, ObjectId]) -> int:
        """Invalidate every session of the user, the current one included."""
        revoked = await self._store.revoke_all_by_user(user_id, "security")
        await self._store.delete_all_by_user(user_id)
        logger.info(f"Password changed for user {user_id}, {revoked} sessions revoked")
        return revoked

    async def on_user_disabled(self, user_id: Union[str, ObjectId]) -> int:
        revoked = await self._store.revoke_all_by_user(user_id, "security")
        await self._store.delete_all_by_user(user_id)
        logger.info(f"User {user_id} disabled, {revoked} sessions revoked")
        return revoked

    async def require_valid(self, token: str) -> dict:
        """
        Get the usable session for a token and record activity on it.

        Raises:
            SessionInvalidError: no session, or it was revoked or has expired
        """
        session = await self._store.get_by_token(token)

        if session is None:
            raise SessionInvalidError()

        try:
            return await self._store.touch(token)
        except NotFoundError:
            # Deleted between lookup and touch
            raise SessionInvalidError()

    async def sweep(self) -> int:
        return await self._store.sweep_expired()
