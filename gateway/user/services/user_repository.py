"""
User persistence.

Thin data access over the `users` collection. Uniqueness of email and
username is enforced by unique indexes as a backstop to the service-level
checks.
"""

import logging
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.auth.errors import ConflictError, EmailTakenError, UsernameTakenError
from common.database.errors import storage_errors
from common.database.ids import to_object_id
from common.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

# Projection hiding the password hash from ordinary reads
_PUBLIC_PROJECTION = {"passwordHash": 0}

_PUBLIC_FIELDS = (
    "username",
    "email",
    "avatar",
    "role",
    "preferences",
    "isActive",
    "lastLogin",
    "createdAt",
    "updatedAt",
)


def _conflict_from_duplicate(error: DuplicateKeyError) -> ConflictError:
    details = error.details or {}
    fields = set(details.get("keyPattern", {})) | set(details.get("keyValue", {}))

    if not fields:
        message = str(error)
        fields = {field for field in ("email", "username") if field in message}

    if "email" in fields:
        return EmailTakenError()
    if "username" in fields:
        return UsernameTakenError()
    return ConflictError()


def to_public_user(user: Optional[dict]) -> Optional[dict]:
    """API shape of a user document, without the password hash."""
    if user is None:
        return None

    public = {"id": str(user["_id"])}
    for field in _PUBLIC_FIELDS:
        public[field] = user.get(field)
    return public


class UserRepository:
    """
    Reads and writes user documents.
    """

    def __init__(self, db: AsyncIOMotorDatabase, clock: Clock = utcnow):
        """
        Initialize UserRepository.

        Args:
            db: MongoDB database connection
            clock: Source of "now" for timestamps
        """
        self._users_collection = db["users"]
        self._clock = clock

    @storage_errors("users")
    async def ensure_indexes(self) -> None:
        await self._users_collection.create_index("email", unique=True)
        await self._users_collection.create_index("username", unique=True)

    @storage_errors("users")
    async def find_by_email_or_username(self, email: str, username: str) -> Optional[dict]:
        """Any user holding either value. Registration uses find_conflict, which also says which one clashed."""
        return await self._users_collection.find_one(
            {"$or": [{"email": email}, {"username": username}]},
            _PUBLIC_PROJECTION,
        )

    @storage_errors("users")
    async def find_by_email(self, email: str, include_password: bool = False) -> Optional[dict]:
        projection = None if include_password else _PUBLIC_PROJECTION
        return await self._users_collection.find_one({"email": email}, projection)

    @storage_errors("users")
    async def find_by_id(
        self,
        user_id: Union[str, ObjectId],
        include_password: bool = False,
    ) -> Optional[dict]:
        projection = None if include_password else _PUBLIC_PROJECTION
        return await self._users_collection.find_one(
            {"_id": to_object_id(user_id, "user_id")},
            projection,
        )

    @storage_errors("users")
    async def find_conflict(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        exclude_id: Optional[Union[str, ObjectId]] = None,
    ) -> Optional[ConflictError]:
        """
        Check whether email or username belong to another user.

        Email is checked first, so a request colliding on both reports the email.

        Returns:
            The conflict error to raise, or None
        """
        for field, value, error_cls in (
            ("email", email, EmailTakenError),
            ("username", username, UsernameTakenError),
        ):
            if value is None:
                continue

            query: Dict[str, Any] = {field: value}
            if exclude_id is not None:
                query["_id"] = {"$ne": to_object_id(exclude_id, "user_id")}

            if await self._users_collection.find_one(query, {"_id": 1}):
                return error_cls()

        return None

    @storage_errors("users")
    async def create(self, user_doc: dict) -> dict:
        """
        Insert a new user.

        Returns:
            The stored document, password hash removed

        Raises:
            EmailTakenError / UsernameTakenError: unique index violated
        """
        now = self._clock()
        doc = {**user_doc, "createdAt": now, "updatedAt": now}

        try:
            result = await self._users_collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise _conflict_from_duplicate(e)

        doc["_id"] = result.inserted_id
        doc.pop("passwordHash", None)

        logger.info(f"User created: {result.inserted_id}")
        return doc

    @storage_errors("users")
    async def update_by_id(self, user_id: Union[str, ObjectId], updates: dict) -> Optional[dict]:
        """
        Apply a $set update.

        Returns:
            The updated document without password hash, or None if no such user
        """
        try:
            return await self._users_collection.find_one_and_update(
                {"_id": to_object_id(user_id, "user_id")},
                {"$set": {**updates, "updatedAt": self._clock()}},
                projection=_PUBLIC_PROJECTION,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise _conflict_from_duplicate(e)
