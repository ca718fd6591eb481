"""Tests for conniptions.auth -- passwords, token management, rate limiting, and auth helpers."""

import inspect
import time

import pytest
from fastapi import HTTPException

from conniptions.auth import (
    TOKEN_TTL_SECONDS,
    _LOGIN_RATE_LIMIT,
    _login_attempts,
    _prune_expired_tokens,
    _valid_tokens,
    check_login_rate_limit,
    check_password,
    generate_token,
    get_token_from_request,
    hash_password,
    resolve_token,
)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

class TestPasswords:

    def test_hash_roundtrip(self):
        hashed = hash_password("hunter2")
        assert hashed != "hunter2"
        assert check_password("hunter2", hashed)
        assert not check_password("hunter3", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash_is_rejected(self):
        assert check_password("anything", "not-a-bcrypt-hash") is False

    def test_long_password_is_accepted(self):
        long_password = "x" * 200
        assert check_password(long_password, hash_password(long_password))


# ---------------------------------------------------------------------------
# Token generation and verification
# ---------------------------------------------------------------------------

class TestTokens:

    def test_generate_returns_hex_string(self):
        token = generate_token("alice")
        assert isinstance(token, str)
        assert len(token) == 64  # 32 bytes hex-encoded
        int(token, 16)

    def test_token_resolves_to_username(self):
        token = generate_token("alice")
        assert resolve_token(token) == "alice"

    def test_unknown_token(self):
        generate_token("alice")
        assert resolve_token("not-a-real-token") is None
        assert resolve_token(None) is None

    def test_multiple_tokens_are_unique(self):
        tokens = {generate_token("alice") for _ in range(20)}
        assert len(tokens) == 20


class TestTokenExpiry:

    def test_expired_token_pruned(self):
        token = generate_token("alice")
        _valid_tokens[token] = ("alice", time.monotonic() - TOKEN_TTL_SECONDS - 10)
        _prune_expired_tokens()
        assert token not in _valid_tokens

    def test_expired_token_does_not_resolve(self):
        token = generate_token("alice")
        _valid_tokens[token] = ("alice", time.monotonic() - TOKEN_TTL_SECONDS - 10)
        assert resolve_token(token) is None

    def test_fresh_token_not_pruned(self):
        token = generate_token("alice")
        resolve_token(token)
        assert token in _valid_tokens


class TestTimingSafeComparison:

    def test_uses_hmac_compare_digest(self):
        source = inspect.getsource(resolve_token)
        assert "hmac.compare_digest" in source


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class TestRateLimiting:

    def test_allows_requests_up_to_limit(self):
        for _ in range(_LOGIN_RATE_LIMIT):
            check_login_rate_limit("192.168.1.1")

    def test_blocks_after_threshold(self):
        ip = "10.0.0.1"
        for _ in range(_LOGIN_RATE_LIMIT):
            check_login_rate_limit(ip)
        with pytest.raises(HTTPException) as exc_info:
            check_login_rate_limit(ip)
        assert exc_info.value.status_code == 429

    def test_different_ips_independent(self):
        for _ in range(_LOGIN_RATE_LIMIT):
            check_login_rate_limit("1.1.1.1")
        check_login_rate_limit("2.2.2.2")

    def test_rate_limit_window_expires(self):
        ip = "10.0.0.2"
        for _ in range(_LOGIN_RATE_LIMIT):
            check_login_rate_limit(ip)
        # Backdate all attempts so they fall outside the window
        _login_attempts[ip] = [time.monotonic() - 120.0 for _ in _login_attempts[ip]]
        check_login_rate_limit(ip)


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

class TestGetTokenFromRequest:

    def test_extracts_bearer_token(self):
        class FakeRequest:
            headers = {"Authorization": "Bearer abc123"}
        assert get_token_from_request(FakeRequest()) == "abc123"

    def test_returns_none_without_bearer(self):
        class FakeRequest:
            headers = {"Authorization": "Basic abc123"}
        assert get_token_from_request(FakeRequest()) is None

    def test_returns_none_without_header(self):
        class FakeRequest:
            headers = {}
        assert get_token_from_request(FakeRequest()) is None
