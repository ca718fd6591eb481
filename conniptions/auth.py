"""Authentication module: password hashing, token management, rate limiting, and auth dependencies."""

import hmac
import os
import secrets
import time
from collections import defaultdict

import bcrypt
from fastapi import HTTPException
from pydantic import BaseModel, Field
from starlette.requests import Request

# --- Configuration ---

BCRYPT_ROUNDS = int(os.environ.get("CONNIPTIONS_BCRYPT_ROUNDS", "12"))
_BCRYPT_MAX_BYTES = 72

# Token storage: token -> (username, creation timestamp (monotonic))
_valid_tokens: dict[str, tuple[str, float]] = {}
TOKEN_TTL_SECONDS = int(os.environ.get("CONNIPTIONS_TOKEN_TTL", str(7 * 24 * 60 * 60)))

# Login rate limiting: IP -> list of attempt timestamps
_login_attempts: dict[str, list[float]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5        # max attempts
_LOGIN_RATE_WINDOW = 60.0    # per this many seconds


# --- Passwords ---

def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password with bcrypt. CPU-bound; call via asyncio.to_thread()."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def check_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


# --- Token Management ---

def generate_token(username: str) -> str:
    """Create a new auth token for ``username`` and store it."""
    token = secrets.token_hex(32)
    _valid_tokens[token] = (username, time.monotonic())
    return token


def _prune_expired_tokens() -> None:
    """Remove tokens older than TOKEN_TTL_SECONDS and stale rate-limit entries."""
    now = time.monotonic()
    expired = [t for t, (_, created_at) in _valid_tokens.items()
               if now - created_at > TOKEN_TTL_SECONDS]
    for t in expired:
        del _valid_tokens[t]

    # Prune stale rate-limit entries (last attempt older than the window)
    stale_ips = [
        ip for ip, attempts in _login_attempts.items()
        if attempts and attempts[-1] < now - _LOGIN_RATE_WINDOW
    ]
    for ip in stale_ips:
        del _login_attempts[ip]


def resolve_token(token: str | None) -> str | None:
    """Return the username a token was issued to, or None. Uses constant-time comparison."""
    if token is None:
        return None
    _prune_expired_tokens()
    for stored_token, (username, _) in _valid_tokens.items():
        if hmac.compare_digest(token, stored_token):
            return username
    return None


# --- Rate Limiting ---

def check_login_rate_limit(client_ip: str) -> None:
    """Raise 429 if the IP has exceeded the login rate limit."""
    now = time.monotonic()
    attempts = _login_attempts[client_ip]
    cutoff = now - _LOGIN_RATE_WINDOW
    _login_attempts[client_ip] = [t for t in attempts if t > cutoff]
    if len(_login_attempts[client_ip]) >= _LOGIN_RATE_LIMIT:
        raise HTTPException(status_code=429, detail="Too many login attempts. Try again later.")
    _login_attempts[client_ip].append(now)


# --- Request Helpers ---

class CredentialsRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=256)


def get_token_from_request(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


async def require_user(request: Request) -> str:
    """FastAPI dependency that enforces authentication and returns the username."""
    username = resolve_token(get_token_from_request(request))
    if username is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return username


async def optional_user(request: Request) -> str | None:
    """FastAPI dependency for endpoints that work signed in or out."""
    return resolve_token(get_token_from_request(request))
