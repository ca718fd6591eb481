import logging
import re
import time
from dataclasses import dataclass, field
from uuid import uuid4

from .puzzles import Puzzle
from .session import PuzzleSession

logger = logging.getLogger(__name__)

TTL_SECONDS = 30 * 60  # 30 minutes idle
MAX_GAMES = 500

_GAME_ID_RE = re.compile(r"^[0-9a-f]{8,}$")


def is_valid_game_id(game_id: str) -> bool:
    return isinstance(game_id, str) and bool(_GAME_ID_RE.match(game_id))


@dataclass
class LiveGame:
    session: PuzzleSession
    last_seen: float = field(default_factory=time.monotonic)
    # Set once the win has been reported to the progress store
    reported: bool = False


class GameRegistry:
    """Live puzzle sessions keyed by game id.

    Idle games expire after ``TTL_SECONDS``; when more than ``max_games`` are
    live the least recently used one is evicted.
    """

    def __init__(self, ttl: float = TTL_SECONDS, max_games: int = MAX_GAMES):
        self.ttl = ttl
        self.max_games = max_games
        self._games: dict[str, LiveGame] = {}

    def __len__(self) -> int:
        return len(self._games)

    def create(self, puzzle: Puzzle) -> tuple[str, LiveGame]:
        self._prune_expired()
        while len(self._games) >= self.max_games:
            oldest_id = min(self._games, key=lambda k: self._games[k].last_seen)
            del self._games[oldest_id]
            logger.info("Evicting game %s (over limit)", oldest_id)

        game_id = uuid4().hex
        game = LiveGame(session=PuzzleSession(puzzle))
        self._games[game_id] = game
        logger.info("Started game %s on puzzle %s", game_id, puzzle.id)
        return game_id, game

    def get(self, game_id: str) -> LiveGame | None:
        """Return a live game and mark it as used, or None if expired/missing."""
        game = self._games.get(game_id)
        if game is None:
            return None
        now = time.monotonic()
        age = now - game.last_seen
        if age > self.ttl:
            del self._games[game_id]
            logger.info("Game %s expired (%.0fs idle)", game_id, age)
            return None
        game.last_seen = now
        return game

    def discard(self, game_id: str) -> bool:
        return self._games.pop(game_id, None) is not None

    def _prune_expired(self) -> None:
        now = time.monotonic()
        expired = [gid for gid, g in self._games.items() if now - g.last_seen > self.ttl]
        for gid in expired:
            del self._games[gid]
        if expired:
            logger.info("Pruned %d expired games", len(expired))
