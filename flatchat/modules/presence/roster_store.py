"""
roster_store.py

The set of users currently in the room, kept as one JSON document:

    {"v": 1, "entries": [{"nick", "session", "joined_at", "last_seen"}, ...]}

A bare JSON list of entries is also read, for files written by older
deployments.

Lock discipline:
- Locks are taken on a sidecar file (<roster>.lock), never on the roster
  itself, because save_all() replaces the roster file by rename.
- load_all(): shared lock, read, unlock.
- save_all(): exclusive lock, write temp file, os.replace, unlock.

Readers therefore see the complete old set or the complete new set.
Callers mutate with load -> change in memory -> save; that sequence is NOT
atomic as a whole (see presence_policy for why that is acceptable).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Optional, Union

from flatchat.core.config import DIR_MODE, FILE_MODE, USERS_FILE
from flatchat.core.errors import store_unavailable
from flatchat.core.file_locks import EXCLUSIVE, SHARED, locked
from flatchat.core.observability import get_logger
from flatchat.core.storage_utils import atomic_write_text, ensure_file, load_json
from flatchat.modules.chat.models import RECORD_VERSION, PresenceEntry

logger = get_logger("storage.roster")

EMPTY_DOCUMENT = json.dumps({"v": RECORD_VERSION, "entries": []})


def _entry_records(document: Any) -> List[Any]:
    if isinstance(document, list):
        return document
    if isinstance(document, dict) and document.get("v", RECORD_VERSION) == RECORD_VERSION:
        entries = document.get("entries")
        if isinstance(entries, list):
            return entries
    return []


class RosterStore:
    def __init__(
        self,
        path: Union[str, Path] = USERS_FILE,
        *,
        file_mode: Optional[int] = FILE_MODE,
        dir_mode: Optional[int] = DIR_MODE,
        lock_timeout: Optional[float] = None,
    ):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")
        self.file_mode = file_mode
        self.dir_mode = dir_mode
        self.lock_timeout = lock_timeout

    def ensure(self) -> None:
        """Create an empty roster (and the lock file) if missing."""
        try:
            ensure_file(self.lock_path, "", mode=self.file_mode, dir_mode=self.dir_mode)
            if ensure_file(self.path, EMPTY_DOCUMENT, mode=self.file_mode, dir_mode=self.dir_mode):
                logger.info(f"Created roster at {self.path}")
        except OSError as exc:
            raise store_unavailable(self.path, exc) from exc

    def load_all(self) -> List[PresenceEntry]:
        """
        Every entry in the file, in file order.
        Missing, empty or corrupt content yields []; bad entries are dropped.
        """
        try:
            with self._open_lock() as fh:
                with locked(fh, SHARED, self.lock_timeout):
                    document = load_json(self.path, default_factory=list)
        except OSError as exc:
            logger.error(f"Read of {self.path} failed: {exc}")
            raise store_unavailable(self.path, exc) from exc

        entries: List[PresenceEntry] = []
        for record in _entry_records(document):
            try:
                entries.append(PresenceEntry.from_record(record))
            except ValueError as exc:
                logger.debug(f"Dropping malformed roster entry: {exc}")
        return entries

    def save_all(self, entries: Iterable[PresenceEntry]) -> None:
        document = {"v": RECORD_VERSION, "entries": [e.to_record() for e in entries]}
        data = json.dumps(document, ensure_ascii=False)
        try:
            with self._open_lock() as fh:
                with locked(fh, EXCLUSIVE, self.lock_timeout):
                    atomic_write_text(self.path, data, mode=self.file_mode)
        except OSError as exc:
            logger.error(f"Write of {self.path} failed: {exc}")
            raise store_unavailable(self.path, exc) from exc

    def _open_lock(self):
        if not self.lock_path.parent.exists():
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        # "a" creates the lock file on first use and never truncates it.
        return open(self.lock_path, "a")
