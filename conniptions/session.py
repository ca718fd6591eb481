"""Puzzle session engine: selection, guess evaluation and win/loss detection.

One :class:`PuzzleSession` holds all mutable state for a single attempt at
one :class:`~conniptions.puzzles.Puzzle`. A UI drives it only through
``toggle_word``, ``submit_guess``, ``shuffle`` and ``deselect`` and then
reads the session to render.

Calls whose preconditions do not hold (wrong selection size, a word that is
not on the board, any call after the game ended) are ignored rather than
raised. Callers are expected to disable those controls from the state they
observe.
"""

from __future__ import annotations

import logging
import random
from enum import Enum

from .constants import (
    GROUP_SIZE,
    GUESS_KEY_SEPARATOR,
    MAX_MISTAKES,
    MESSAGE_TTL,
    MSG_ALREADY_GUESSED,
    MSG_ONE_AWAY,
    SHAKE_TTL,
)
from .puzzles import Group, Puzzle
from .timers import ClockScheduler, Scheduler, TransientValue

logger = logging.getLogger(__name__)


class GameStatus(str, Enum):
    PLAYING = "playing"
    WON = "won"
    LOST = "lost"


def guess_key(words) -> str:
    """Order-independent key for a selection, used to spot repeat guesses."""
    return GUESS_KEY_SEPARATOR.join(sorted(words))


def fisher_yates(items, rng: random.Random) -> list:
    """Return a shuffled copy of ``items`` using ``rng`` as the only source of randomness."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


class PuzzleSession:
    def __init__(
        self,
        puzzle: Puzzle,
        rng: random.Random | None = None,
        scheduler: Scheduler | None = None,
        max_mistakes: int = MAX_MISTAKES,
    ):
        self.puzzle = puzzle
        self.max_mistakes = max_mistakes
        self._rng = rng if rng is not None else random.Random()
        self._scheduler = scheduler if scheduler is not None else ClockScheduler()

        self._order: list[str] = fisher_yates(puzzle.words, self._rng)
        self._selected: list[str] = []
        self._solved: list[Group] = []
        self._mistakes = 0
        self._seen_guesses: set[str] = set()
        self._message = TransientValue(self._scheduler)
        self._shaking = TransientValue(self._scheduler, empty=frozenset())

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def order(self) -> tuple[str, ...]:
        return tuple(self._order)

    @property
    def selected(self) -> tuple[str, ...]:
        return tuple(self._selected)

    @property
    def solved_groups(self) -> tuple[Group, ...]:
        return tuple(self._solved)

    @property
    def mistakes(self) -> int:
        return self._mistakes

    @property
    def mistakes_remaining(self) -> int:
        return self.max_mistakes - self._mistakes

    @property
    def seen_guesses(self) -> frozenset[str]:
        return frozenset(self._seen_guesses)

    @property
    def won(self) -> bool:
        return len(self._solved) == len(self.puzzle.groups)

    @property
    def lost(self) -> bool:
        return self._mistakes >= self.max_mistakes

    @property
    def status(self) -> GameStatus:
        if self.won:
            return GameStatus.WON
        if self.lost:
            return GameStatus.LOST
        return GameStatus.PLAYING

    @property
    def playing(self) -> bool:
        return self.status is GameStatus.PLAYING

    @property
    def message(self) -> str | None:
        self._scheduler.run_pending()
        return self._message.value

    @property
    def shaking(self) -> frozenset[str]:
        self._scheduler.run_pending()
        return self._shaking.value

    def unsolved_groups(self) -> list[Group]:
        return [g for g in self.puzzle.groups if g not in self._solved]

    def display_groups(self) -> list[Group]:
        """Groups shown above the grid, easiest first.

        Solved groups while playing or after a win; every group once the game
        is lost so the player can see the answer.
        """
        groups = self.puzzle.groups if self.lost else self._solved
        return sorted(groups, key=lambda g: g.difficulty)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def toggle_word(self, word: str) -> None:
        self._scheduler.run_pending()
        if not self.playing or word not in self._order:
            return
        if word in self._selected:
            self._selected.remove(word)
        elif len(self._selected) < GROUP_SIZE:
            self._selected.append(word)
        else:
            return
        self._message.clear()

    def deselect(self) -> None:
        self._scheduler.run_pending()
        # A losing selection stays on the board
        if not self.playing or not self._selected:
            return
        self._selected.clear()
        self._message.clear()

    def shuffle(self) -> None:
        self._scheduler.run_pending()
        if not self.playing:
            return
        self._order = fisher_yates(self._order, self._rng)

    def submit_guess(self) -> None:
        self._scheduler.run_pending()
        if not self.playing or len(self._selected) != GROUP_SIZE:
            return

        key = guess_key(self._selected)
        if key in self._seen_guesses:
            self._message.set(MSG_ALREADY_GUESSED, MESSAGE_TTL)
            return
        self._seen_guesses.add(key)
        self._message.clear()

        selection = frozenset(self._selected)
        unsolved = self.unsolved_groups()

        # An exact match always wins over one-away
        for group in unsolved:
            if group.word_set == selection:
                self._solve(group)
                return

        self._mistakes += 1
        one_away = any(len(g.word_set & selection) == GROUP_SIZE - 1 for g in unsolved)
        if one_away:
            # Keep the selection so the player can adjust it
            if not self.lost:
                self._message.set(MSG_ONE_AWAY, MESSAGE_TTL)
        else:
            self._shaking.set(selection, SHAKE_TTL)
            self._selected.clear()

        if self.lost:
            logger.info("Puzzle %s lost after %d mistakes", self.puzzle.id, self._mistakes)

    def _solve(self, group: Group) -> None:
        self._solved.append(group)
        self._order = [w for w in self._order if w not in group.word_set]
        self._selected.clear()
        if self.won:
            logger.info("Puzzle %s won with %d mistakes", self.puzzle.id, self._mistakes)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def view(self) -> dict:
        """JSON-ready snapshot for rendering.

        Unsolved groups are never included unless the game is lost.
        """
        return {
            "puzzle_id": self.puzzle.id,
            "date": self.puzzle.date,
            "status": self.status.value,
            "order": list(self._order),
            "selected": list(self._selected),
            "solved_groups": [g.to_dict() for g in self._solved],
            "display_groups": [g.to_dict() for g in self.display_groups()],
            "mistakes": self._mistakes,
            "mistakes_remaining": self.mistakes_remaining,
            "max_mistakes": self.max_mistakes,
            "message": self.message,
            "shaking": sorted(self.shaking),
        }
