import asyncio
import logging
import os
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from starlette.requests import Request

from .account_store import AccountStore
from .auth import (
    CredentialsRequest,
    check_login_rate_limit,
    check_password,
    generate_token,
    hash_password,
    optional_user,
    require_user,
)
from .game_registry import GameRegistry, LiveGame, is_valid_game_id
from .puzzles import default_puzzle_id, get_puzzle, list_puzzles

logger = logging.getLogger(__name__)

app = FastAPI()

# --- CORS Configuration ---

def _get_cors_origins() -> list[str]:
    """Get CORS origins from environment variable or use default."""
    cors_origins_str = os.environ.get("CONNIPTIONS_CORS_ORIGINS", "http://localhost:5173")
    origins = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]
    return origins if origins else ["http://localhost:5173"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("CONNIPTIONS_DATA_DIR", BASE_DIR / "data"))

_account_store = AccountStore(DATA_DIR / "accounts.json")
game_registry = GameRegistry()


@app.get("/health")
async def health():
    return {"status": "ok"}


# --- Accounts ---

@app.post("/signup", status_code=201)
async def signup(req: CredentialsRequest):
    password_hash = await asyncio.to_thread(hash_password, req.password)
    created = await _account_store.create_user(req.username, password_hash)
    if not created:
        raise HTTPException(status_code=409, detail="Username exists")
    return {"token": generate_token(req.username)}


@app.post("/login")
async def login(req: CredentialsRequest, request: Request):
    client_ip = request.client.host if request.client else "unknown"
    check_login_rate_limit(client_ip)
    password_hash = await _account_store.get_password_hash(req.username)
    ok = password_hash is not None and await asyncio.to_thread(
        check_password, req.password, password_hash
    )
    if not ok:
        logger.warning("Failed login for %r from %s", req.username, client_ip)
        raise HTTPException(status_code=401, detail="Invalid")
    return {"token": generate_token(req.username)}


@app.get("/me")
async def me(username: str = Depends(require_user)):
    return {"username": username}


class ProgressRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    puzzle_id: str = Field(..., alias="puzzleId", min_length=1, max_length=100)
    solved: bool = True


@app.post("/progress")
async def post_progress(req: ProgressRequest, username: str = Depends(require_user)):
    await _account_store.record_progress(username, req.puzzle_id, req.solved)
    return {"ok": True}


@app.get("/progress")
async def get_progress(username: str = Depends(require_user)):
    return await _account_store.solved_puzzles(username)


# --- Puzzles ---

@app.get("/puzzles")
async def api_list_puzzles():
    return list_puzzles()


@app.get("/puzzles/{puzzle_id}")
async def api_get_puzzle(puzzle_id: str):
    puzzle = get_puzzle(puzzle_id)
    if not puzzle:
        raise HTTPException(status_code=404, detail="Puzzle not found")
    # The grouping itself stays server-side
    return {"id": puzzle.id, "date": puzzle.date, "word_count": len(puzzle.words)}


# --- Games ---

class NewGameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    puzzle_id: str | None = Field(None, alias="puzzleId", max_length=100)


class ToggleRequest(BaseModel):
    word: str = Field(..., min_length=1, max_length=100)


def _get_game(game_id: str) -> LiveGame:
    if not is_valid_game_id(game_id):
        raise HTTPException(status_code=400, detail="Invalid game ID format")
    game = game_registry.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


def _game_view(game_id: str, game: LiveGame) -> dict:
    return {"game_id": game_id, **game.session.view()}


@app.post("/games", status_code=201)
async def api_new_game(req: NewGameRequest | None = None):
    puzzle_id = (req.puzzle_id if req else None) or default_puzzle_id()
    puzzle = get_puzzle(puzzle_id) if puzzle_id else None
    if not puzzle:
        raise HTTPException(status_code=404, detail="Puzzle not found")
    game_id, game = game_registry.create(puzzle)
    return _game_view(game_id, game)


@app.get("/games/{game_id}")
async def api_get_game(game_id: str):
    return _game_view(game_id, _get_game(game_id))


@app.post("/games/{game_id}/toggle")
async def api_toggle(game_id: str, req: ToggleRequest):
    game = _get_game(game_id)
    game.session.toggle_word(req.word)
    return _game_view(game_id, game)


@app.post("/games/{game_id}/submit")
async def api_submit(game_id: str, username: str | None = Depends(optional_user)):
    game = _get_game(game_id)
    game.session.submit_guess()
    if game.session.won and username and not game.reported:
        try:
            await _account_store.record_progress(username, game.session.puzzle.id, True)
            game.reported = True
        except Exception:
            logger.exception("Failed to record progress for %s", username)
    return _game_view(game_id, game)


@app.post("/games/{game_id}/shuffle")
async def api_shuffle(game_id: str):
    game = _get_game(game_id)
    game.session.shuffle()
    return _game_view(game_id, game)


@app.post("/games/{game_id}/deselect")
async def api_deselect(game_id: str):
    game = _get_game(game_id)
    game.session.deselect()
    return _game_view(game_id, game)


@app.delete("/games/{game_id}")
async def api_delete_game(game_id: str):
    if not is_valid_game_id(game_id):
        raise HTTPException(status_code=400, detail="Invalid game ID format")
    if not game_registry.discard(game_id):
        raise HTTPException(status_code=404, detail="Game not found")
    return {"ok": True}
