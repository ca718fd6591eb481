import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .constants import GROUP_COUNT, GROUP_SIZE

logger = logging.getLogger(__name__)

PUZZLES_DIR = Path(
    os.environ.get("CONNIPTIONS_PUZZLES_DIR", Path(__file__).parent / "puzzle_data")
)

# ---------------------------------------------------------------------------
# Puzzle definition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Group:
    name: str
    difficulty: int
    words: tuple[str, ...]

    def __post_init__(self):
        # Accept any sequence from callers but store a tuple
        object.__setattr__(self, "words", tuple(self.words))
        if not isinstance(self.name, str) or not self.name:
            raise ValueError("Group name must be a non-empty string")
        if len(self.words) != GROUP_SIZE:
            raise ValueError(
                f"Group '{self.name}' must have exactly {GROUP_SIZE} words, got {len(self.words)}"
            )
        for word in self.words:
            if not isinstance(word, str) or not word:
                raise ValueError(f"Group '{self.name}' contains an empty word")
        if len(set(self.words)) != GROUP_SIZE:
            raise ValueError(f"Group '{self.name}' contains duplicate words")

    @property
    def word_set(self) -> frozenset[str]:
        return frozenset(self.words)

    def to_dict(self) -> dict:
        return {"name": self.name, "difficulty": self.difficulty, "words": list(self.words)}


@dataclass(frozen=True)
class Puzzle:
    """An immutable set of four groups of four words.

    Difficulty ranks are unique within a puzzle (0 is easiest) and are only
    used to order groups for display. No word may appear in two groups.
    """

    id: str
    groups: tuple[Group, ...]
    date: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "groups", tuple(self.groups))
        if len(self.groups) != GROUP_COUNT:
            raise ValueError(
                f"Puzzle must have exactly {GROUP_COUNT} groups, got {len(self.groups)}"
            )
        difficulties = [g.difficulty for g in self.groups]
        if sorted(difficulties) != list(range(GROUP_COUNT)):
            raise ValueError(
                f"Group difficulties must be unique ranks 0-{GROUP_COUNT - 1}, got {difficulties}"
            )
        words = self.words
        if len(set(words)) != len(words):
            raise ValueError("Puzzle word list contains duplicates")

    @property
    def words(self) -> list[str]:
        return [w for g in self.groups for w in g.words]

    @classmethod
    def from_dict(cls, data: dict) -> "Puzzle":
        groups = [
            Group(
                name=g["name"],
                difficulty=g.get("difficulty", idx),
                words=g["words"],
            )
            for idx, g in enumerate(data["groups"])
        ]
        return cls(id=data["id"], groups=groups, date=data.get("date"))


# ---------------------------------------------------------------------------
# Puzzle loading
# ---------------------------------------------------------------------------

def _load_puzzles(puzzles_dir: Path = PUZZLES_DIR) -> dict[str, Puzzle]:
    puzzles = {}
    for f in sorted(Path(puzzles_dir).glob("*.json")):
        try:
            p = Puzzle.from_dict(json.loads(f.read_text(encoding="utf-8")))
            puzzles[p.id] = p
        except (KeyError, TypeError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError
            logger.warning("Skipping %s: %s", f.name, exc)
    return puzzles


PUZZLES = _load_puzzles()


def get_puzzle(puzzle_id: str) -> Puzzle | None:
    return PUZZLES.get(puzzle_id)


def list_puzzles() -> list[dict]:
    return [{"id": p.id, "date": p.date} for p in sorted(PUZZLES.values(), key=lambda p: p.id)]


def default_puzzle_id() -> str | None:
    """Puzzle served when a client does not ask for one.

    ``CONNIPTIONS_DEFAULT_PUZZLE`` wins when it names a loaded puzzle;
    otherwise the highest id (ids are ISO dates) is used.
    """
    configured = os.environ.get("CONNIPTIONS_DEFAULT_PUZZLE")
    if configured and configured in PUZZLES:
        return configured
    if configured:
        logger.warning("CONNIPTIONS_DEFAULT_PUZZLE=%s is not a loaded puzzle", configured)
    return max(PUZZLES) if PUZZLES else None
