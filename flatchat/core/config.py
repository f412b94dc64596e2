import os
from pathlib import Path

"""
Central configuration for the flat-file chat service.
Storage paths, presence timing and HTTP settings live here.

Every value can be overridden through a FLATCHAT_* environment variable so a
deployment never has to edit this file. Stores and services accept explicit
paths/limits as arguments; these constants are only their defaults.
"""

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(
            f"Environment variable {name}={raw!r} is not an integer. "
            f"Unset it or fix the value."
        )


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(
            f"Environment variable {name}={raw!r} is not a number of seconds. "
            f"Unset it or fix the value."
        )


def _env_mode(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw, 8)
    except ValueError:
        raise RuntimeError(
            f"Environment variable {name}={raw!r} is not an octal file mode (e.g. 0660)."
        )


# ---- Storage ----
DATA_DIR = Path(os.getenv("FLATCHAT_DATA_DIR", str(PROJECT_ROOT / "chat_data")))
CHAT_FILE_NAME = "chat.log"      # one JSON record per line
USERS_FILE_NAME = "users.json"   # roster snapshot, rewritten on every change
CHAT_FILE = DATA_DIR / CHAT_FILE_NAME
USERS_FILE = DATA_DIR / USERS_FILE_NAME

# Shared by every process serving the same data directory.
FILE_MODE = _env_mode("FLATCHAT_FILE_MODE", 0o660)
DIR_MODE = _env_mode("FLATCHAT_DIR_MODE", 0o770)

# ---- Locking ----
LOCK_TIMEOUT_SECONDS = _env_float("FLATCHAT_LOCK_TIMEOUT_SECONDS", 5.0)
LOCK_RETRY_INTERVAL_SECONDS = 0.02

# ---- Presence ----
INACTIVITY_SECONDS = _env_int("FLATCHAT_INACTIVITY_SECONDS", 30 * 60)  # 30 minutes
SYSTEM_AUTHOR = "SYSTEM"

# ---- Log reading ----
# Max lines read from the tail of the chat log on each poll. Older messages
# past this window are not returned even if they are newer than the horizon.
POLL_LIMIT = _env_int("FLATCHAT_POLL_LIMIT", 2000)
TAIL_CHUNK_SIZE = 4096

# ---- Text limits ----
MAX_MESSAGE_CHARS = 1000
MAX_NICKNAME_CHARS = 24

# ---- HTTP ----
SESSION_COOKIE_NAME = "flatchat_session"
SESSION_HEADER_NAME = "X-Session-Token"
HOST = os.getenv("FLATCHAT_HOST", "0.0.0.0")
PORT = _env_int("FLATCHAT_PORT", 8000)

# ---- Logging ----
LOG_LEVEL = os.getenv("FLATCHAT_LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("FLATCHAT_LOG_FILE") or None
