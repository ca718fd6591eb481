"""Shared fixtures for the Conniptions test suite."""

import random
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient

# Ensure the project root is on sys.path so the 'conniptions' package resolves
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from conniptions.puzzles import Group, Puzzle  # noqa: E402
from conniptions.session import PuzzleSession  # noqa: E402
from conniptions.timers import ClockScheduler  # noqa: E402


COLORS = ["RED", "BLUE", "YELLOW", "GREEN"]
LANGUAGES = ["PYTHON", "RUST", "GO", "SWIFT"]
PASTA = ["PENNE", "LINGUINE", "FARFALLE", "FUSILLI"]
PLANETS = ["MERCURY", "VENUS", "EARTH", "MARS"]


class FakeClock:
    """Manually advanced monotonic clock for ClockScheduler."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _fast_state():
    """Cheap bcrypt and a clean token/rate-limit store for every test."""
    from conniptions.auth import _login_attempts, _valid_tokens

    _valid_tokens.clear()
    _login_attempts.clear()
    with patch("conniptions.auth.BCRYPT_ROUNDS", 4):
        yield
    _valid_tokens.clear()
    _login_attempts.clear()


@pytest.fixture
def puzzle():
    return Puzzle(
        id="test-puzzle",
        date="July 29, 2025",
        groups=[
            Group("COLORS", 0, COLORS),
            Group("LANGUAGES", 1, LANGUAGES),
            Group("PASTA", 2, PASTA),
            Group("PLANETS", 3, PLANETS),
        ],
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(puzzle, clock):
    """A seeded session whose timers run off the fake clock."""
    return PuzzleSession(puzzle, rng=random.Random(1234), scheduler=ClockScheduler(clock))


def select(session, *words):
    """Replace the current selection with ``words``."""
    session.deselect()
    for w in words:
        session.toggle_word(w)


def guess(session, *words):
    select(session, *words)
    session.submit_guess()


@pytest.fixture
def app(tmp_path):
    """The FastAPI app with a temp-dir account store and an empty game registry."""
    from conniptions.account_store import AccountStore
    from conniptions.game_registry import GameRegistry

    store = AccountStore(tmp_path / "accounts.json")
    with patch("conniptions.server._account_store", store), \
         patch("conniptions.server.game_registry", GameRegistry()):
        from conniptions.server import app as fastapi_app
        yield fastapi_app


@pytest.fixture
async def client(app):
    """Async HTTP client for testing REST endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
