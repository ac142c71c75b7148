"""Tests for session credential helpers.

JWT issuing and decoding, bearer/cookie extraction, and cookie management.
"""

import uuid
from datetime import timedelta

import jwt
import pytest
from fastapi import Response
from hypothesis import given
from hypothesis import settings as hypothesis_settings
from hypothesis import strategies as st
from starlette.requests import Request

from app.core.auth import (
    clear_auth_cookie,
    decode_session,
    issue_session,
    session_token_from_request,
    set_auth_cookie,
)
from app.core.config import settings
from app.models.user import User

# Test-only secret for JWT tests
_TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow
_OTHER_SECRET = "another-secret-key-that-is-at-least-32-characters"  # nosec B105  # gitleaks:allow


def _user(kind: str = "guest", email: str | None = None) -> User:
    return User(
        id=uuid.uuid4(),
        kind=kind,
        email=email,
        device_id="device-1",
        display_name="Alice",
        auth_provider="guest",
        session_count=1,
    )


def _request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


class TestIssueSession:
    """Tests for issue_session()."""

    def test_round_trips_through_decode(self):
        """A freshly issued credential decodes to the same identity."""
        user = _user(kind="claimed", email="b@example.com")
        token = issue_session(user, secret=_TEST_SECRET)

        claims = decode_session(token, secret=_TEST_SECRET)

        assert claims.user_id == user.id
        assert claims.kind == "claimed"
        assert claims.email == "b@example.com"
        assert claims.expires_at > claims.issued_at

    def test_contains_required_claims(self):
        """JWT has sub, kind, aud, iss, exp, iat, jti claims."""
        token = issue_session(_user(), secret=_TEST_SECRET)
        payload = jwt.decode(
            token,
            _TEST_SECRET,
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        for claim in ("sub", "kind", "aud", "iss", "exp", "iat", "jti"):
            assert claim in payload, f"Missing claim: {claim}"
        assert "email" not in payload

    def test_uses_configured_ttl(self):
        """Default lifetime comes from settings."""
        claims = decode_session(
            issue_session(_user(), secret=_TEST_SECRET), secret=_TEST_SECRET
        )
        lifetime = claims.expires_at - claims.issued_at
        assert lifetime == timedelta(minutes=settings.session_ttl_minutes)

    @hypothesis_settings(max_examples=25)
    @given(st.integers(min_value=2, max_value=10))
    def test_every_credential_is_fresh(self, count: int):
        """Credentials for the same identity within a second all differ."""
        user = _user()
        tokens = {issue_session(user, secret=_TEST_SECRET) for _ in range(count)}
        assert len(tokens) == count

    def test_rejects_missing_user(self):
        """No identity, no credential."""
        with pytest.raises(ValueError, match="incomplete identity"):
            issue_session(None, secret=_TEST_SECRET)

    def test_rejects_user_without_id(self):
        """Unsaved identity has no id to put in sub."""
        user = _user()
        user.id = None  # type: ignore[assignment]
        with pytest.raises(ValueError, match="incomplete identity"):
            issue_session(user, secret=_TEST_SECRET)

    def test_rejects_missing_secret(self, monkeypatch: pytest.MonkeyPatch):
        """An unconfigured secret never signs anything."""
        from pydantic import SecretStr

        monkeypatch.setattr(settings, "auth_secret", SecretStr(""))
        with pytest.raises(ValueError, match="AUTH_SECRET"):
            issue_session(_user())


class TestDecodeSession:
    """Tests for decode_session()."""

    def test_rejects_wrong_secret(self):
        """Signature is verified."""
        token = issue_session(_user(), secret=_TEST_SECRET)
        with pytest.raises(jwt.InvalidTokenError):
            decode_session(token, secret=_OTHER_SECRET)

    def test_rejects_expired_credential(self):
        """exp is enforced."""
        token = issue_session(
            _user(), secret=_TEST_SECRET, expires_delta=timedelta(seconds=-1)
        )
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_session(token, secret=_TEST_SECRET)

    def test_rejects_missing_jti(self):
        """Credentials minted elsewhere without jti are refused."""
        token = jwt.encode(
            {
                "sub": str(uuid.uuid4()),
                "aud": settings.auth_audience,
                "iss": settings.auth_issuer,
                "iat": 1_700_000_000,
                "exp": 4_000_000_000,
            },
            _TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(jwt.MissingRequiredClaimError):
            decode_session(token, secret=_TEST_SECRET)

    def test_rejects_non_uuid_subject(self):
        """sub must be an identity id."""
        token = jwt.encode(
            {
                "sub": "not-a-uuid",
                "aud": settings.auth_audience,
                "iss": settings.auth_issuer,
                "iat": 1_700_000_000,
                "exp": 4_000_000_000,
                "jti": "x",
            },
            _TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError, match="subject"):
            decode_session(token, secret=_TEST_SECRET)

    def test_rejects_garbage(self):
        """Malformed input is an invalid token, not a crash."""
        with pytest.raises(jwt.InvalidTokenError):
            decode_session("not.a.jwt", secret=_TEST_SECRET)


class TestSessionTokenFromRequest:
    """Tests for session_token_from_request()."""

    def test_reads_bearer_header(self):
        """Mobile clients send the credential as a bearer token."""
        request = _request({"Authorization": "Bearer abc.def.ghi"})
        assert session_token_from_request(request) == "abc.def.ghi"

    def test_bearer_scheme_is_case_insensitive(self):
        """Scheme casing doesn't matter."""
        request = _request({"Authorization": "bearer abc"})
        assert session_token_from_request(request) == "abc"

    def test_reads_cookie(self):
        """Web clients carry the httpOnly cookie."""
        request = _request({"Cookie": f"{settings.auth_cookie_name}=from-cookie"})
        assert session_token_from_request(request) == "from-cookie"

    def test_header_wins_over_cookie(self):
        """The explicit header takes precedence."""
        request = _request(
            {
                "Authorization": "Bearer from-header",
                "Cookie": f"{settings.auth_cookie_name}=from-cookie",
            }
        )
        assert session_token_from_request(request) == "from-header"

    def test_ignores_other_schemes(self):
        """Basic auth is not a session credential."""
        request = _request({"Authorization": "Basic dXNlcjpwYXNz"})
        assert session_token_from_request(request) is None

    def test_returns_none_without_credential(self):
        """Nothing presented."""
        assert session_token_from_request(_request()) is None


class TestAuthCookie:
    """Tests for set_auth_cookie() / clear_auth_cookie()."""

    def test_set_cookie_is_http_only(self):
        """The session cookie is not readable from JavaScript."""
        response = Response()
        set_auth_cookie(response, "tok")
        header = response.headers["set-cookie"]
        assert header.startswith(f"{settings.auth_cookie_name}=tok")
        assert "HttpOnly" in header
        assert "Path=/" in header

    def test_clear_cookie_expires_it(self):
        """Clearing sets an immediately expiring cookie."""
        response = Response()
        clear_auth_cookie(response)
        header = response.headers["set-cookie"]
        assert header.startswith(f'{settings.auth_cookie_name}=""')
        assert "Max-Age=0" in header
