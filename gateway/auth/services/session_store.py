"""
Session storage for JWT-backed sessions.

One document per issued access token in the `sessions` collection. Tokens are
never stored in clear: every lookup hashes the presented token first and
queries by `tokenHash`.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Union

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.auth.errors import (
    ConflictError,
    MissingFieldError,
    NotFoundError,
    ValidationError,
)
from common.auth.jwt_auth import JWTAuth
from common.database.errors import storage_errors
from common.database.ids import to_object_id
from common.utils.clock import Clock, as_utc, utcnow
from gateway.auth.services.device_detector import DeviceDetector
from gateway.auth.services.token_hasher import TokenHasher

logger = logging.getLogger(__name__)

REVOKE_REASONS = ("logout", "expired", "security", "manual")
UNKNOWN = "unknown"


def expired_filter(now: datetime) -> dict:
    """Sessions past their expiry."""
    return {"expiresAt": {"$lt": now}}


def stale_revoked_filter(now: datetime, retention: timedelta) -> dict:
    """Revoked sessions older than the retention window."""
    return {"isActive": False, "revokedAt": {"$lt": now - retention}}


class SessionStore:
    """
    Handles session CRUD operations.

    Every session lives exactly as long as the access token it backs:
    `expiresAt` is always the `exp` claim of the token behind `tokenHash`.
    Sessions opened by a login also hold the hash of the refresh token issued
    with it; renewing swaps in a new access token and its expiry together.
    """

    DEFAULT_MAX_SESSIONS = 5
    REVOKED_RETENTION_DAYS = 30

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        jwt_auth: JWTAuth,
        device_detector: Optional[DeviceDetector] = None,
        clock: Clock = utcnow,
        revoked_retention_days: int = REVOKED_RETENTION_DAYS,
    ):
        """
        Initialize SessionStore.

        Args:
            db: MongoDB database connection
            jwt_auth: Used to read the expiry of the token a session is created for
            device_detector: Service for parsing User-Agent
            clock: Source of "now"
            revoked_retention_days: How long revoked sessions are kept before sweeping
        """
        self._sessions = db["sessions"]
        self._jwt_auth = jwt_auth
        self._device_detector = device_detector or DeviceDetector()
        self._clock = clock
        self._revoked_retention = timedelta(days=revoked_retention_days)

    @storage_errors("sessions")
    async def ensure_indexes(self) -> None:
        await self._sessions.create_index("tokenHash", unique=True)
        await self._sessions.create_index([("userId", ASCENDING), ("isActive", ASCENDING)])
        await self._sessions.create_index("expiresAt")
        await self._sessions.create_index("refreshTokenHash")

    @storage_errors("sessions")
    async def create(
        self,
        user_id: Union[str, ObjectId],
        token: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> dict:
        """
        Create a session for a freshly issued token.

        Args:
            user_id: Owner of the session
            token: The access token the session backs
            ip_address: Client IP address
            user_agent: Client User-Agent header
            refresh_token: Refresh token issued alongside, allowed to renew this session

        Returns:
            The stored session document

        Raises:
            MissingFieldError: user_id or token missing
            TokenMalformedError: token has no readable exp claim
            ValidationError: token is already expired
            ConflictError: a session already exists for this token
        """
        if not user_id or not token:
            raise MissingFieldError(
                "user_id and token are required",
                details={"fields": [name for name, value in (("user_id", user_id), ("token", token)) if not value]},
            )

        now = self._clock()
        expires_at = self._jwt_auth.expires_at(token)

        if expires_at <= now:
            raise ValidationError(
                "Session expiry must be in the future",
                code="SESSION_ALREADY_EXPIRED",
                details={"expiresAt": expires_at.isoformat()},
            )

        user_agent = user_agent or UNKNOWN

        session = {
            "userId": to_object_id(user_id, "user_id"),
            "tokenHash": TokenHasher.hash_token(token),
            "refreshTokenHash": TokenHasher.hash_token(refresh_token) if refresh_token else None,
            "ipAddress": ip_address or UNKNOWN,
            "userAgent": user_agent,
            "device": self._device_detector.detect(user_agent),
            "isActive": True,
            "lastActivity": now,
            "expiresAt": expires_at,
            "revokedAt": None,
            "revokedReason": None,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self._sessions.insert_one(session)
        except DuplicateKeyError:
            raise ConflictError("A session already exists for this token", code="SESSION_EXISTS")

        session["_id"] = result.inserted_id
        logger.info(f"Session {session['_id']} created for user {user_id}")
        return session

    @storage_errors("sessions")
    async def get_by_token(self, token: str) -> Optional[dict]:
        """
        Find the active session for a token.

        A session found past its expiry is revoked with reason "expired"
        before returning None, so this read writes to storage. Do not cache it.
        """
        if not token:
            return None

        session = await self._sessions.find_one({
            "tokenHash": TokenHasher.hash_token(token),
            "isActive": True,
        })

        if not session:
            return None

        if as_utc(session["expiresAt"]) <= self._clock():
            try:
                await self.revoke(session, "expired")
            except NotFoundError:
                # Swept concurrently
                pass
            logger.info(f"Session {session['_id']} expired on lookup")
            return None

        return session

    @storage_errors("sessions")
    async def renew(self, refresh_token: str, token: str) -> Optional[dict]:
        """
        Move the live session opened with a refresh token onto a new access token.

        The old access token stops matching the session. Returns None when no
        usable session carries the refresh token: it was logged out, revoked,
        swept, or its access token has already expired.

        Raises:
            TokenMalformedError: token has no readable exp claim
        """
        if not refresh_token or not token:
            return None

        now = self._clock()
        expires_at = self._jwt_auth.expires_at(token)

        session = await self._sessions.find_one_and_update(
            {
                "refreshTokenHash": TokenHasher.hash_token(refresh_token),
                "isActive": True,
                "revokedAt": None,
                "expiresAt": {"$gt": now},
            },
            {"$set": {
                "tokenHash": TokenHasher.hash_token(token),
                "expiresAt": expires_at,
                "lastActivity": now,
                "updatedAt": now,
            }},
            return_document=ReturnDocument.AFTER,
        )

        if session:
            logger.info(f"Session {session['_id']} renewed")

        return session

    @storage_errors("sessions")
    async def get_by_id(self, user_id: Union[str, ObjectId], session_id: Union[str, ObjectId]) -> Optional[dict]:
        """Find a session by id, scoped to its owner."""
        return await self._sessions.find_one({
            "_id": to_object_id(session_id, "session_id"),
            "userId": to_object_id(user_id, "user_id"),
        })

    @storage_errors("sessions")
    async def get_active_by_user(self, user_id: Union[str, ObjectId]) -> list[dict]:
        """
        Get all active, unexpired sessions for a user.

        Returns:
            Sessions sorted by lastActivity, most recent first
        """
        cursor = self._sessions.find({
            "userId": to_object_id(user_id, "user_id"),
            "isActive": True,
            "expiresAt": {"$gt": self._clock()},
        }).sort("lastActivity", DESCENDING)

        return await cursor.to_list(length=None)

    @storage_errors("sessions")
    async def count_active_by_user(self, user_id: Union[str, ObjectId]) -> int:
        return await self._sessions.count_documents({
            "userId": to_object_id(user_id, "user_id"),
            "isActive": True,
            "expiresAt": {"$gt": self._clock()},
        })

    @storage_errors("sessions")
    async def touch(self, token: str) -> dict:
        """
        Update the lastActivity timestamp for a session.

        Raises:
            NotFoundError: no session for this token
        """
        now = self._clock()

        session = await self._sessions.find_one_and_update(
            {"tokenHash": TokenHasher.hash_token(token)},
            {"$set": {"lastActivity": now, "updatedAt": now}},
            return_document=ReturnDocument.AFTER,
        )

        if not session:
            raise NotFoundError("Session not found", code="SESSION_NOT_FOUND")

        return session

    @storage_errors("sessions")
    async def revoke(self, session_or_token: Union[dict, str], reason: str = "manual") -> dict:
        """
        Mark a session inactive.

        The first revocation wins: revoking an already revoked session returns
        it unchanged, keeping its original revokedAt and revokedReason.

        Args:
            session_or_token: Session document (with _id) or the raw token
            reason: One of logout, expired, security, manual

        Raises:
            ValidationError: unknown reason
            NotFoundError: no such session
        """
        if reason not in REVOKE_REASONS:
            raise ValidationError(
                f"Invalid revoke reason: {reason}",
                code="INVALID_REVOKE_REASON",
                details={"allowed": list(REVOKE_REASONS)},
            )

        if isinstance(session_or_token, dict):
            query = {"_id": session_or_token["_id"]}
        else:
            query = {"tokenHash": TokenHasher.hash_token(session_or_token)}

        now = self._clock()

        session = await self._sessions.find_one_and_update(
            {**query, "revokedAt": None},
            {"$set": {
                "isActive": False,
                "revokedAt": now,
                "revokedReason": reason,
                "updatedAt": now,
            }},
            return_document=ReturnDocument.AFTER,
        )

        if session:
            logger.info(f"Session {session['_id']} revoked ({reason})")
            return session

        existing = await self._sessions.find_one(query)
        if not existing:
            raise NotFoundError("Session not found", code="SESSION_NOT_FOUND")

        return existing

    @storage_errors("sessions")
    async def revoke_all_by_user(self, user_id: Union[str, ObjectId], reason: str = "security") -> int:
        """Revoke every not-yet-revoked session of a user. Returns the number revoked."""
        if reason not in REVOKE_REASONS:
            raise ValidationError(
                f"Invalid revoke reason: {reason}",
                code="INVALID_REVOKE_REASON",
                details={"allowed": list(REVOKE_REASONS)},
            )

        now = self._clock()

        result = await self._sessions.update_many(
            {"userId": to_object_id(user_id, "user_id"), "revokedAt": None},
            {"$set": {
                "isActive": False,
                "revokedAt": now,
                "revokedReason": reason,
                "updatedAt": now,
            }},
        )

        if result.modified_count > 0:
            logger.info(f"Revoked {result.modified_count} sessions for user {user_id} ({reason})")

        return result.modified_count

    @storage_errors("sessions")
    async def delete_by_token(self, token: str) -> bool:
        result = await self._sessions.delete_one({"tokenHash": TokenHasher.hash_token(token)})
        return result.deleted_count > 0

    @storage_errors("sessions")
    async def delete_by_id(self, user_id: Union[str, ObjectId], session_id: Union[str, ObjectId]) -> bool:
        """
        Remove a specific session of a user.

        Returns:
            True if removed, False if not found
        """
        result = await self._sessions.delete_one({
            "_id": to_object_id(session_id, "session_id"),
            "userId": to_object_id(user_id, "user_id"),
        })

        if result.deleted_count > 0:
            logger.info(f"Session {session_id} deleted for user {user_id}")
            return True

        return False

    @storage_errors("sessions")
    async def delete_all_by_user(self, user_id: Union[str, ObjectId]) -> int:
        result = await self._sessions.delete_many({"userId": to_object_id(user_id, "user_id")})

        if result.deleted_count > 0:
            logger.info(f"Deleted {result.deleted_count} sessions for user {user_id}")

        return result.deleted_count

    @storage_errors("sessions")
    async def sweep_expired(self) -> int:
        """
        Delete expired sessions and revoked sessions past the retention window.

        Returns:
            Number of sessions removed
        """
        now = self._clock()

        result = await self._sessions.delete_many({
            "$or": [
                expired_filter(now),
                stale_revoked_filter(now, self._revoked_retention),
            ]
        })

        if result.deleted_count > 0:
            logger.info(f"Swept {result.deleted_count} sessions")

        return result.deleted_count

    @storage_errors("sessions")
    async def limit_concurrent(
        self,
        user_id: Union[str, ObjectId],
        max_sessions: int = DEFAULT_MAX_SESSIONS,
    ) -> int:
        """
        Delete the oldest active sessions until at most max_sessions remain.

        Returns:
            Number of sessions evicted
        """
        if max_sessions < 1:
            raise ValidationError(
                "max_sessions must be at least 1",
                code="INVALID_SESSION_LIMIT",
                details={"maxSessions": max_sessions},
            )

        cursor = self._sessions.find(
            {
                "userId": to_object_id(user_id, "user_id"),
                "isActive": True,
                "expiresAt": {"$gt": self._clock()},
            },
            {"_id": 1, "createdAt": 1},
        ).sort([("createdAt", ASCENDING), ("_id", ASCENDING)])
        sessions = await cursor.to_list(length=None)

        excess = len(sessions) - max_sessions
        if excess <= 0:
            return 0

        evicted_ids = [s["_id"] for s in sessions[:excess]]
        result = await self._sessions.delete_many({"_id": {"$in": evicted_ids}})

        logger.info(f"Evicted {result.deleted_count} oldest sessions for user {user_id} (limit {max_sessions})")
        return result.deleted_count

    def is_valid(self, session: Optional[dict]) -> bool:
        """Active, not revoked, and not past expiry."""
        if not session:
            return False

        return (
            session.get("isActive") is True
            and session.get("revokedAt") is None
            and session.get("expiresAt") is not None
            and self._clock() < as_utc(session["expiresAt"])
        )
