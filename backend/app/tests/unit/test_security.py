############################################################
#
# bloghut - Community Blogging Platform
#
# test_security.py: Unit tests for hashing, sessions, CSRF and reset tokens
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for the security helpers."""

import time
from types import SimpleNamespace

import pytest
from itsdangerous import URLSafeTimedSerializer

from backend.app.db.models import UserRole
from backend.app.security.csrf import get_csrf_token, rotate_csrf_token, validate_csrf_token
from backend.app.security.password_hash import hash_password, verify_password
from backend.app.security.sessions import (
    REDIRECT_KEY,
    dump_session,
    flash,
    load_session,
    pop_flashes,
    pop_redirect,
    start_user_session,
)
from backend.app.security.tokens import make_reset_token, read_reset_token, token_matches_user
from backend.app.settings import get_settings


def _request(session=None):
    """Stand-in for a Starlette request: only the session is used."""
    return SimpleNamespace(session={} if session is None else session)


class TestPasswordHash:
    """Tests for Argon2 password hashing."""

    def test_hash_and_verify(self):
        hashed = hash_password("secret123")
        assert hashed.startswith("$argon2id$")
        assert verify_password("secret123", hashed)
        assert not verify_password("secret124", hashed)

    def test_salted(self):
        """The same password hashes differently each time."""
        assert hash_password("secret123") != hash_password("secret123")

    def test_malformed_hash_is_a_mismatch(self):
        assert not verify_password("secret123", "not-a-hash")
        assert not verify_password("secret123", "")


class TestSessionCookie:
    """Tests for the signed session cookie."""

    def test_round_trip(self):
        data = {"user_id": 7, "username": "alice"}
        assert load_session(dump_session(data)) == data

    def test_tampered_cookie_gives_empty_session(self):
        cookie = dump_session({"user_id": 7})
        forged = cookie.rsplit(".", 1)[0] + "." + "A" * 27
        assert load_session(forged) == {}

    def test_foreign_key_rejected(self):
        forged = URLSafeTimedSerializer("some-other-key", salt="session").dumps({"user_id": 1})
        assert load_session(forged) == {}

    def test_idle_session_expires(self, monkeypatch):
        """A plain session older than the lifetime is dropped."""
        cookie = dump_session({"user_id": 7})
        later = time.time() + get_settings().session_max_age + 60
        monkeypatch.setattr(time, "time", lambda: later)
        assert load_session(cookie) == {}

    def test_remembered_session_outlives_idle_limit(self, monkeypatch):
        cookie = dump_session({"user_id": 7, "remember": True})
        later = time.time() + get_settings().session_max_age + 60
        monkeypatch.setattr(time, "time", lambda: later)
        assert load_session(cookie)["user_id"] == 7


class TestSessionHelpers:
    """Tests for login state and flash messages."""

    def test_start_session_keeps_flashes_and_redirect(self):
        request = _request({"flash": [{"message": "hi", "category": "success"}],
                            REDIRECT_KEY: "/posts/3", "csrf_token": "old"})
        user = SimpleNamespace(id=5, username="alice", role=UserRole.ADMIN)
        start_user_session(request, user, remember=True)
        assert request.session["user_id"] == 5
        assert request.session["role"] == "admin"
        assert request.session["remember"] is True
        assert request.session[REDIRECT_KEY] == "/posts/3"
        assert "csrf_token" not in request.session
        assert pop_flashes(request) == [{"message": "hi", "category": "success"}]

    def test_flashes_are_one_shot(self):
        request = _request()
        flash(request, "Saved", "success")
        flash(request, "Careful", "warning")
        assert [f["message"] for f in pop_flashes(request)] == ["Saved", "Careful"]
        assert pop_flashes(request) == []

    @pytest.mark.parametrize("target", ["https://evil.example/", "//evil.example/", ""])
    def test_redirect_must_be_local(self, target):
        request = _request({REDIRECT_KEY: target})
        assert pop_redirect(request, "/posts") == "/posts"

    def test_local_redirect_honoured(self):
        request = _request({REDIRECT_KEY: "/posts/create"})
        assert pop_redirect(request) == "/posts/create"


class TestCsrf:
    """Tests for synchronizer tokens."""

    def test_token_is_stable_within_session(self):
        request = _request()
        token = get_csrf_token(request)
        assert len(token) == 64
        assert get_csrf_token(request) == token

    def test_validate(self):
        request = _request()
        token = get_csrf_token(request)
        assert validate_csrf_token(request, token)
        assert not validate_csrf_token(request, "0" * 64)
        assert not validate_csrf_token(request, None)

    def test_no_session_token_fails(self):
        assert not validate_csrf_token(_request(), "anything")

    def test_rotation_invalidates_old_token(self):
        request = _request()
        old = get_csrf_token(request)
        new = rotate_csrf_token(request)
        assert old != new
        assert not validate_csrf_token(request, old)


class TestResetTokens:
    """Tests for password reset tokens."""

    def test_token_identifies_user(self):
        user = SimpleNamespace(id=3, password_hash=hash_password("secret123"))
        token = make_reset_token(user)
        assert read_reset_token(token) == 3
        assert token_matches_user(token, user)

    def test_token_dies_with_password_change(self):
        """Tokens are single-use: resetting the password changes the fingerprint."""
        user = SimpleNamespace(id=3, password_hash=hash_password("secret123"))
        token = make_reset_token(user)
        user.password_hash = hash_password("another1")
        assert not token_matches_user(token, user)

    def test_garbage_token(self):
        assert read_reset_token("garbage") is None
