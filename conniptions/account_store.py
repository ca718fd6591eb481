"""Account storage: user credentials and solved-puzzle progress.

One JSON document holds both tables::

    {
      "users":    {username: {"password_hash": str, "created_at": iso-str}},
      "progress": {username: {puzzle_id: {"solved": bool, "updated_at": iso-str}}}
    }

Progress is upserted per (user, puzzle_id). Writes are atomic (temp file +
``os.replace``) and serialized through an ``asyncio.Lock``.
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)


def _empty() -> dict:
    return {"users": {}, "progress": {}}


class AccountStore:
    def __init__(self, filepath: str | Path):
        self.filepath = Path(filepath).resolve()
        self._data: dict[str, dict] = _empty()
        self._lock = asyncio.Lock()
        self._load_sync()

    def _load_sync(self):
        """Synchronous load, called from __init__."""
        if not self.filepath.exists():
            return
        try:
            with open(self.filepath) as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt %s, starting fresh", self.filepath.name)
            return
        if not isinstance(data, dict):
            logger.warning("Unexpected layout in %s, starting fresh", self.filepath.name)
            return
        self._data = {
            "users": data.get("users") or {},
            "progress": data.get("progress") or {},
        }

    def _save_sync(self):
        """Synchronous save; must be called via asyncio.to_thread()."""
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(self.filepath.parent), suffix=".tmp"
        )
        try:
            with os.fdopen(tmp_fd, "w") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self.filepath)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    async def _save(self):
        await asyncio.to_thread(self._save_sync)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, username: str, password_hash: str) -> bool:
        """Add a user. Returns False if the username is already taken."""
        async with self._lock:
            if username in self._data["users"]:
                return False
            self._data["users"][username] = {
                "password_hash": password_hash,
                "created_at": datetime.now().isoformat(),
            }
            await self._save()
        logger.info("Created user %s", username)
        return True

    async def get_password_hash(self, username: str) -> str | None:
        async with self._lock:
            user = self._data["users"].get(username)
        return user["password_hash"] if user else None

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def record_progress(self, username: str, puzzle_id: str, solved: bool) -> None:
        async with self._lock:
            entries = self._data["progress"].setdefault(username, {})
            entries[puzzle_id] = {
                "solved": bool(solved),
                "updated_at": datetime.now().isoformat(),
            }
            await self._save()

    async def solved_puzzles(self, username: str) -> list[str]:
        async with self._lock:
            entries = dict(self._data["progress"].get(username, {}))
        return sorted(pid for pid, entry in entries.items() if entry.get("solved"))
