"""Unit tests for UserRepository."""

import pytest
from unittest.mock import AsyncMock
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, NetworkTimeout

from common.auth.errors import (
    ConflictError,
    EmailTakenError,
    InternalError,
    UsernameTakenError,
    ValidationError,
)
from gateway.user.services.user_repository import UserRepository, to_public_user


def _user_doc(**overrides):
    doc = {
        "username": "alice",
        "email": "alice@x.com",
        "passwordHash": "$2b$04$hash",
        "avatar": None,
        "role": "user",
        "preferences": {"theme": "auto", "language": "es", "notifications": True},
        "isActive": True,
        "lastLogin": None,
    }
    doc.update(overrides)
    return doc


# ─────────────────────────────────────────────────────────────────
# create / find
# ─────────────────────────────────────────────────────────────────


class TestCreateAndFind:
    @pytest.mark.asyncio
    async def test_create_sets_timestamps_and_hides_hash(self, user_repository, clock):
        user = await user_repository.create(_user_doc())

        assert isinstance(user["_id"], ObjectId)
        assert user["createdAt"] == clock()
        assert user["updatedAt"] == clock()
        assert "passwordHash" not in user

    @pytest.mark.asyncio
    async def test_reads_hide_hash_unless_asked(self, user_repository):
        created = await user_repository.create(_user_doc())

        public = await user_repository.find_by_id(str(created["_id"]))
        private = await user_repository.find_by_id(created["_id"], include_password=True)

        assert "passwordHash" not in public
        assert private["passwordHash"] == "$2b$04$hash"

    @pytest.mark.asyncio
    async def test_find_by_email(self, user_repository):
        await user_repository.create(_user_doc())

        assert (await user_repository.find_by_email("alice@x.com"))["username"] == "alice"
        assert "passwordHash" in await user_repository.find_by_email("alice@x.com", include_password=True)
        assert await user_repository.find_by_email("bob@x.com") is None

    @pytest.mark.asyncio
    async def test_find_by_email_or_username(self, user_repository):
        await user_repository.create(_user_doc())

        assert await user_repository.find_by_email_or_username("other@x.com", "alice") is not None
        assert await user_repository.find_by_email_or_username("alice@x.com", "other") is not None
        assert await user_repository.find_by_email_or_username("other@x.com", "other") is None

    @pytest.mark.asyncio
    async def test_find_by_invalid_id(self, user_repository):
        with pytest.raises(ValidationError):
            await user_repository.find_by_id("not-an-id")


# ─────────────────────────────────────────────────────────────────
# Uniqueness
# ─────────────────────────────────────────────────────────────────


class TestUniqueness:
    @pytest.mark.asyncio
    async def test_email_conflict_reported_before_username(self, user_repository):
        await user_repository.create(_user_doc())

        conflict = await user_repository.find_conflict(email="alice@x.com", username="alice")

        assert isinstance(conflict, EmailTakenError)

    @pytest.mark.asyncio
    async def test_username_conflict(self, user_repository):
        await user_repository.create(_user_doc())

        conflict = await user_repository.find_conflict(email="new@x.com", username="alice")

        assert isinstance(conflict, UsernameTakenError)

    @pytest.mark.asyncio
    async def test_own_values_are_not_conflicts(self, user_repository):
        created = await user_repository.create(_user_doc())

        conflict = await user_repository.find_conflict(
            email="alice@x.com", username="alice", exclude_id=created["_id"],
        )

        assert conflict is None

    @pytest.mark.asyncio
    async def test_unique_index_backs_up_the_checks(self, user_repository):
        await user_repository.ensure_indexes()
        await user_repository.create(_user_doc())

        with pytest.raises(UsernameTakenError):
            await user_repository.create(_user_doc(email="other@x.com"))

        with pytest.raises(EmailTakenError):
            await user_repository.create(_user_doc(username="other"))

    @pytest.mark.asyncio
    async def test_duplicate_without_key_details_falls_back_to_message(self, mock_db, mock_collection, clock):
        mock_collection.insert_one = AsyncMock(
            side_effect=DuplicateKeyError("E11000 duplicate key error index: email_1")
        )
        repository = UserRepository(mock_db, clock=clock)

        with pytest.raises(EmailTakenError):
            await repository.create(_user_doc())

    @pytest.mark.asyncio
    async def test_unrecognized_duplicate_is_generic_conflict(self, mock_db, mock_collection, clock):
        mock_collection.insert_one = AsyncMock(side_effect=DuplicateKeyError("E11000 duplicate key error"))
        repository = UserRepository(mock_db, clock=clock)

        with pytest.raises(ConflictError) as exc_info:
            await repository.create(_user_doc())

        assert exc_info.value.code == "CONFLICT"


# ─────────────────────────────────────────────────────────────────
# update
# ─────────────────────────────────────────────────────────────────


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_returns_new_document(self, user_repository, clock):
        created = await user_repository.create(_user_doc())
        later = clock.advance(hours=1)

        updated = await user_repository.update_by_id(created["_id"], {"avatar": "https://x/a.png"})

        assert updated["avatar"] == "https://x/a.png"
        assert updated["updatedAt"] == later
        assert updated["createdAt"] == created["createdAt"]
        assert "passwordHash" not in updated

    @pytest.mark.asyncio
    async def test_update_missing_user(self, user_repository):
        assert await user_repository.update_by_id(ObjectId(), {"avatar": None}) is None

    @pytest.mark.asyncio
    async def test_update_into_taken_username(self, user_repository):
        await user_repository.ensure_indexes()
        await user_repository.create(_user_doc())
        bob = await user_repository.create(_user_doc(username="bob", email="bob@x.com"))

        with pytest.raises(UsernameTakenError):
            await user_repository.update_by_id(bob["_id"], {"username": "alice"})

    @pytest.mark.asyncio
    async def test_storage_failure(self, mock_db, mock_collection, clock):
        mock_collection.find_one_and_update = AsyncMock(side_effect=NetworkTimeout("timed out"))
        repository = UserRepository(mock_db, clock=clock)

        with pytest.raises(InternalError) as exc_info:
            await repository.update_by_id(ObjectId(), {"avatar": None})

        assert exc_info.value.details == {"operation": "update_by_id"}


class TestToPublicUser:
    def test_public_shape(self, clock):
        oid = ObjectId()
        public = to_public_user({"_id": oid, **_user_doc(), "createdAt": clock(), "updatedAt": clock()})

        assert public["id"] == str(oid)
        assert "passwordHash" not in public
        assert "_id" not in public
        assert set(public) == {
            "id", "username", "email", "avatar", "role", "preferences",
            "isActive", "lastLogin", "createdAt", "updatedAt",
        }

    def test_none(self):
        assert to_public_user(None) is None
