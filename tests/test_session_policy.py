"""Unit tests for SessionPolicy and the SessionSweeper task."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from common.auth.errors import InternalError, NotFoundError, SessionInvalidError
from gateway.auth.services.session_policy import SessionPolicy
from gateway.auth.services.session_sweeper import SessionSweeper
from gateway.auth.services.token_hasher import TokenHasher


# ─────────────────────────────────────────────────────────────────
# Login / logout
# ─────────────────────────────────────────────────────────────────


class TestOnLogin:
    @pytest.mark.asyncio
    async def test_creates_session(self, session_policy, jwt_auth, sample_user_id):
        token = jwt_auth.issue(sample_user_id)

        session = await session_policy.on_login(sample_user_id, token, "10.0.0.1", "curl/8.0")

        assert session["tokenHash"] == TokenHasher.hash_token(token)
        assert session["ipAddress"] == "10.0.0.1"

    @pytest.mark.asyncio
    async def test_sixth_login_evicts_the_oldest(self, session_store, jwt_auth, clock, sample_user_id):
        policy = SessionPolicy(session_store, max_sessions=5)
        tokens = []
        for _ in range(6):
            token = jwt_auth.issue(sample_user_id)
            await policy.on_login(sample_user_id, token)
            tokens.append(token)
            clock.advance(seconds=1)

        assert await session_store.count_active_by_user(sample_user_id) == 5
        assert await session_store.get_by_token(tokens[0]) is None
        assert await session_store.get_by_token(tokens[-1]) is not None

    @pytest.mark.asyncio
    async def test_limit_applies_per_user(self, session_store, jwt_auth, sample_user_id):
        policy = SessionPolicy(session_store, max_sessions=1)
        other_user = str(ObjectId())

        await policy.on_login(sample_user_id, jwt_auth.issue(sample_user_id))
        await policy.on_login(other_user, jwt_auth.issue(other_user))

        assert await session_store.count_active_by_user(sample_user_id) == 1
        assert await session_store.count_active_by_user(other_user) == 1


class TestOnRefresh:
    @pytest.mark.asyncio
    async def test_rebinds_login_session(self, session_policy, session_store, jwt_auth, sample_user_id):
        refresh = jwt_auth.issue_refresh(sample_user_id)
        await session_policy.on_login(sample_user_id, jwt_auth.issue(sample_user_id), refresh_token=refresh)
        token = jwt_auth.issue(sample_user_id)

        session = await session_policy.on_refresh(refresh, token)

        assert session["tokenHash"] == TokenHasher.hash_token(token)
        assert await session_store.count_active_by_user(sample_user_id) == 1

    @pytest.mark.asyncio
    async def test_ended_session_rejects_refresh(self, session_policy, jwt_auth, sample_user_id):
        refresh = jwt_auth.issue_refresh(sample_user_id)
        await session_policy.on_login(sample_user_id, jwt_auth.issue(sample_user_id), refresh_token=refresh)
        await session_policy.on_password_change(sample_user_id)

        with pytest.raises(SessionInvalidError) as exc_info:
            await session_policy.on_refresh(refresh, jwt_auth.issue(sample_user_id))

        assert exc_info.value.code == "REFRESH_REVOKED"


class TestOnLogout:
    @pytest.mark.asyncio
    async def test_logout_removes_session(self, session_policy, session_store, fake_db, jwt_auth, sample_user_id):
        token = jwt_auth.issue(sample_user_id)
        await session_policy.on_login(sample_user_id, token)

        assert await session_policy.on_logout(token) is True
        assert fake_db["sessions"].docs == []

    @pytest.mark.asyncio
    async def test_logout_without_session(self, session_policy, jwt_auth, sample_user_id):
        assert await session_policy.on_logout(jwt_auth.issue(sample_user_id)) is False

    @pytest.mark.asyncio
    async def test_logout_revokes_before_deleting(self):
        store = MagicMock()
        store.revoke = AsyncMock()
        store.delete_by_token = AsyncMock(return_value=True)
        calls = MagicMock()
        calls.attach_mock(store.revoke, "revoke")
        calls.attach_mock(store.delete_by_token, "delete_by_token")

        await SessionPolicy(store).on_logout("tok")

        assert [c[0] for c in calls.mock_calls] == ["revoke", "delete_by_token"]
        store.revoke.assert_awaited_once_with("tok", "logout")

    @pytest.mark.asyncio
    async def test_logout_all(self, session_policy, session_store, jwt_auth, sample_user_id):
        for _ in range(3):
            await session_policy.on_login(sample_user_id, jwt_auth.issue(sample_user_id))

        assert await session_policy.on_logout_all(sample_user_id) == 3
        assert await session_store.count_active_by_user(sample_user_id) == 0


# ─────────────────────────────────────────────────────────────────
# Security events
# ─────────────────────────────────────────────────────────────────


class TestSecurityEvents:
    @pytest.mark.asyncio
    async def test_password_change_revokes_every_session(self, sample_user_id):
        store = MagicMock()
        store.revoke_all_by_user = AsyncMock(return_value=2)
        store.delete_all_by_user = AsyncMock(return_value=2)

        revoked = await SessionPolicy(store).on_password_change(sample_user_id)

        assert revoked == 2
        store.revoke_all_by_user.assert_awaited_once_with(sample_user_id, "security")
        store.delete_all_by_user.assert_awaited_once_with(sample_user_id)

    @pytest.mark.asyncio
    async def test_disabled_user_loses_all_sessions(self, session_policy, session_store, jwt_auth, sample_user_id):
        tokens = [jwt_auth.issue(sample_user_id) for _ in range(2)]
        for token in tokens:
            await session_policy.on_login(sample_user_id, token)

        assert await session_policy.on_user_disabled(sample_user_id) == 2
        for token in tokens:
            with pytest.raises(SessionInvalidError):
                await session_policy.require_valid(token)


# ─────────────────────────────────────────────────────────────────
# require_valid
# ─────────────────────────────────────────────────────────────────


class TestRequireValid:
    @pytest.mark.asyncio
    async def test_returns_touched_session(self, session_policy, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)
        await session_policy.on_login(sample_user_id, token)
        later = clock.advance(minutes=10)

        session = await session_policy.require_valid(token)

        assert session["lastActivity"] == later

    @pytest.mark.asyncio
    async def test_unknown_token(self, session_policy, jwt_auth, sample_user_id):
        with pytest.raises(SessionInvalidError):
            await session_policy.require_valid(jwt_auth.issue(sample_user_id))

    @pytest.mark.asyncio
    async def test_expired_session(self, session_policy, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)
        await session_policy.on_login(sample_user_id, token)
        clock.advance(days=7)

        with pytest.raises(SessionInvalidError):
            await session_policy.require_valid(token)

    @pytest.mark.asyncio
    async def test_session_deleted_between_lookup_and_touch(self):
        store = MagicMock()
        store.get_by_token = AsyncMock(return_value={"_id": ObjectId()})
        store.touch = AsyncMock(side_effect=NotFoundError("Session not found"))

        with pytest.raises(SessionInvalidError):
            await SessionPolicy(store).require_valid("tok")


# ─────────────────────────────────────────────────────────────────
# SessionSweeper
# ─────────────────────────────────────────────────────────────────


class TestSessionSweeper:
    @pytest.mark.asyncio
    async def test_run_once_returns_sweep_count(self):
        policy = MagicMock()
        policy.sweep = AsyncMock(return_value=4)

        assert await SessionSweeper(policy).run_once() == 4

    @pytest.mark.asyncio
    async def test_run_once_survives_failures(self):
        policy = MagicMock()
        policy.sweep = AsyncMock(side_effect=InternalError("Storage failure in sessions"))

        assert await SessionSweeper(policy).run_once() == 0

    @pytest.mark.asyncio
    async def test_loop_sweeps_until_stopped(self):
        policy = MagicMock()
        policy.sweep = AsyncMock(return_value=0)
        sweeper = SessionSweeper(policy, interval_seconds=0.01)

        sweeper.start()
        assert sweeper.is_running
        await asyncio.sleep(0.05)
        await sweeper.stop()

        assert not sweeper.is_running
        assert policy.sweep.await_count >= 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        policy = MagicMock()
        policy.sweep = AsyncMock(return_value=0)
        sweeper = SessionSweeper(policy, interval_seconds=60)

        sweeper.start()
        task = sweeper._task
        sweeper.start()

        assert sweeper._task is task
        await sweeper.stop()

    @pytest.mark.asyncio
    async def test_disabled_sweeper_never_starts(self):
        sweeper = SessionSweeper(MagicMock(), enabled=False)

        sweeper.start()

        assert not sweeper.is_running
        await sweeper.stop()
