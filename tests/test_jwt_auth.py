"""Unit tests for JWTAuth token issuing and verification."""

import pytest
from datetime import timedelta
from jose import jwt

from common.auth.errors import (
    InvalidPayloadError,
    TokenExpiredError,
    TokenMalformedError,
    TokenNotYetValidError,
)
from common.auth.jwt_auth import JWTAuth, parse_duration
from tests.conftest import TEST_SECRET


# ─────────────────────────────────────────────────────────────────
# parse_duration
# ─────────────────────────────────────────────────────────────────


class TestParseDuration:
    @pytest.mark.parametrize("value,expected", [
        ("7d", timedelta(days=7)),
        ("24h", timedelta(hours=24)),
        ("60m", timedelta(minutes=60)),
        ("3600s", timedelta(seconds=3600)),
    ])
    def test_parses_supported_units(self, value, expected):
        assert parse_duration(value) == expected

    def test_unparseable_value_falls_back_to_seven_days(self):
        assert parse_duration("forever") == timedelta(days=7)

    def test_no_default_raises(self):
        with pytest.raises(ValueError):
            parse_duration("1w", default=None)


# ─────────────────────────────────────────────────────────────────
# issue / verify
# ─────────────────────────────────────────────────────────────────


class TestIssueAndVerify:
    def test_verify_succeeds_right_after_issue(self, jwt_auth, sample_user_id):
        token = jwt_auth.issue(sample_user_id, "alice@x.com", "user")

        claims = jwt_auth.verify(token)

        assert claims["sub"] == sample_user_id
        assert claims["email"] == "alice@x.com"
        assert claims["role"] == "user"
        assert claims["iss"] == "gemini-api-server"
        assert claims["aud"] == "gemini-api-client"

    def test_expiry_matches_configured_lifetime(self, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)

        assert jwt_auth.expires_at(token) == clock() + timedelta(days=7)

    def test_role_defaults_to_user(self, jwt_auth, sample_user_id):
        claims = jwt_auth.verify(jwt_auth.issue(sample_user_id))

        assert claims["role"] == "user"

    def test_tokens_issued_in_the_same_second_differ(self, jwt_auth, sample_user_id):
        assert jwt_auth.issue(sample_user_id) != jwt_auth.issue(sample_user_id)

    def test_issue_requires_subject(self, jwt_auth):
        with pytest.raises(InvalidPayloadError):
            jwt_auth.issue(None)

    def test_expired_once_clock_passes_expiry(self, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)

        clock.advance(days=7, seconds=-1)
        jwt_auth.verify(token)

        clock.advance(seconds=1)
        with pytest.raises(TokenExpiredError):
            jwt_auth.verify(token)

    def test_wrong_secret_is_malformed(self, jwt_auth, clock, sample_user_id):
        other = JWTAuth(secret="another-secret", clock=clock)
        token = other.issue(sample_user_id)

        with pytest.raises(TokenMalformedError):
            jwt_auth.verify(token)

    def test_wrong_audience_is_malformed(self, jwt_auth, clock, sample_user_id):
        other = JWTAuth(secret=TEST_SECRET, audience="someone-else", clock=clock)

        with pytest.raises(TokenMalformedError):
            jwt_auth.verify(other.issue(sample_user_id))

    def test_wrong_issuer_is_malformed(self, jwt_auth, clock, sample_user_id):
        other = JWTAuth(secret=TEST_SECRET, issuer="someone-else", clock=clock)

        with pytest.raises(TokenMalformedError):
            jwt_auth.verify(other.issue(sample_user_id))

    def test_garbage_is_malformed(self, jwt_auth):
        with pytest.raises(TokenMalformedError):
            jwt_auth.verify("not.a.jwt")

    def test_empty_token_is_malformed(self, jwt_auth):
        with pytest.raises(TokenMalformedError):
            jwt_auth.verify("")

    def test_not_before_in_future(self, jwt_auth, clock, sample_user_id):
        now = int(clock().timestamp())
        token = jwt.encode(
            {
                "sub": sample_user_id,
                "iat": now,
                "nbf": now + 60,
                "exp": now + 3600,
                "iss": "gemini-api-server",
                "aud": "gemini-api-client",
            },
            TEST_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenNotYetValidError):
            jwt_auth.verify(token)

        clock.advance(seconds=60)
        assert jwt_auth.verify(token)["sub"] == sample_user_id

    def test_missing_secret_is_rejected(self):
        with pytest.raises(ValueError):
            JWTAuth(secret="")


class TestRefreshTokens:
    def test_refresh_token_lives_thirty_days(self, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue_refresh(sample_user_id)

        assert jwt_auth.expires_at(token) == clock() + timedelta(days=30)
        assert jwt_auth.is_refresh_token(token) is True

    def test_access_token_is_not_a_refresh_token(self, jwt_auth, sample_user_id):
        assert jwt_auth.is_refresh_token(jwt_auth.issue(sample_user_id)) is False

    def test_garbage_is_not_a_refresh_token(self, jwt_auth):
        assert jwt_auth.is_refresh_token("garbage") is False

    def test_verify_access_rejects_refresh_token(self, jwt_auth, sample_user_id):
        with pytest.raises(TokenMalformedError) as exc_info:
            jwt_auth.verify_access(jwt_auth.issue_refresh(sample_user_id))

        assert exc_info.value.code == "REFRESH_TOKEN_NOT_ALLOWED"


# ─────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────


class TestHelpers:
    def test_decode_reads_claims_without_verifying(self, clock, sample_user_id):
        other = JWTAuth(secret="another-secret", clock=clock)
        jwt_auth = JWTAuth(secret=TEST_SECRET, clock=clock)

        assert jwt_auth.decode(other.issue(sample_user_id))["sub"] == sample_user_id

    def test_decode_rejects_garbage(self, jwt_auth):
        with pytest.raises(TokenMalformedError):
            jwt_auth.decode("garbage")

    def test_remaining_seconds(self, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)

        clock.advance(days=6)

        assert jwt_auth.remaining_seconds(token) == 86400

    def test_remaining_seconds_is_zero_when_expired_or_unreadable(self, jwt_auth, clock, sample_user_id):
        token = jwt_auth.issue(sample_user_id)
        clock.advance(days=8)

        assert jwt_auth.remaining_seconds(token) == 0
        assert jwt_auth.remaining_seconds("garbage") == 0

    @pytest.mark.parametrize("header,expected", [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer abc.def.ghi", None),
        ("Bearer ", None),
        ("Bearer  abc", None),
        ("Bearer abc def", None),
        ("Token abc", None),
        ("", None),
        (None, None),
    ])
    def test_extract_from_header(self, header, expected):
        assert JWTAuth.extract_from_header(header) == expected

    def test_cookie_options(self, clock):
        options = JWTAuth(secret=TEST_SECRET, expires_in="24h", is_production=True, clock=clock).cookie_options()

        assert options == {
            "max_age": 86400,
            "httponly": True,
            "secure": True,
            "samesite": "strict",
            "path": "/",
        }

    def test_cookie_not_secure_outside_production(self, jwt_auth):
        assert jwt_auth.cookie_options()["secure"] is False
