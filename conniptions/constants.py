"""Game constants and advisory texts.

Pure data module -- no imports, no logic. Safe to import from any
conniptions module without risk of circular dependencies.
"""

# ── Puzzle shape ──────────────────────────────────────────────────────

GROUP_COUNT = 4
GROUP_SIZE = 4
MAX_MISTAKES = 4

# Joins the sorted words of a selection into a guess-key.
GUESS_KEY_SEPARATOR = "|"

# ── Transient signals (seconds) ───────────────────────────────────────

MESSAGE_TTL = 1.5
SHAKE_TTL = 0.5

# ── Advisory messages ─────────────────────────────────────────────────

MSG_ALREADY_GUESSED = "Already guessed"
MSG_ONE_AWAY = "One away..."
