# flatchat/modules/chat/record_store.py
"""
Append-only chat log on a flat file.

One JSON record per line (see models.Message). Lock discipline per call:

- append(): exclusive lock, write one line, flush, unlock.
- clear():  exclusive lock, truncate to zero, unlock.
- read_since(): shared lock for the whole tail scan.

Readers may overlap each other but never an exclusive writer, so no reader
ever sees a half-written record. Nothing is cached between calls.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Union

from flatchat.core.config import (
    CHAT_FILE,
    DIR_MODE,
    FILE_MODE,
    POLL_LIMIT,
    TAIL_CHUNK_SIZE,
)
from flatchat.core.errors import store_unavailable
from flatchat.core.file_locks import EXCLUSIVE, SHARED, locked
from flatchat.core.observability import PerformanceTimer, get_logger
from flatchat.core.storage_utils import ensure_file
from flatchat.modules.chat.models import Message

logger = get_logger("storage.records")


class RecordStore:
    def __init__(
        self,
        path: Union[str, Path] = CHAT_FILE,
        *,
        poll_limit: int = POLL_LIMIT,
        chunk_size: int = TAIL_CHUNK_SIZE,
        file_mode: Optional[int] = FILE_MODE,
        dir_mode: Optional[int] = DIR_MODE,
        lock_timeout: Optional[float] = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.path = Path(path)
        self.poll_limit = poll_limit
        self.chunk_size = chunk_size
        self.file_mode = file_mode
        self.dir_mode = dir_mode
        self.lock_timeout = lock_timeout

    def ensure(self) -> None:
        """Create the log file (and its directory) if missing."""
        try:
            if ensure_file(self.path, "", mode=self.file_mode, dir_mode=self.dir_mode):
                logger.info(f"Created chat log at {self.path}")
        except OSError as exc:
            raise store_unavailable(self.path, exc) from exc

    def append(self, message: Message) -> None:
        data = (message.to_line() + "\n").encode("utf-8")
        try:
            with open(self.path, "ab") as fh:
                with locked(fh, EXCLUSIVE, self.lock_timeout):
                    fh.write(data)
                    fh.flush()
        except OSError as exc:
            logger.error(f"Append to {self.path} failed: {exc}")
            raise store_unavailable(self.path, exc) from exc

    def clear(self) -> None:
        try:
            with open(self.path, "ab") as fh:
                with locked(fh, EXCLUSIVE, self.lock_timeout):
                    fh.truncate(0)
                    fh.flush()
        except OSError as exc:
            logger.error(f"Truncate of {self.path} failed: {exc}")
            raise store_unavailable(self.path, exc) from exc
        logger.info("Chat log cleared")

    def read_since(self, min_timestamp: int, max_lines: Optional[int] = None) -> List[Message]:
        """
        Messages with timestamp >= min_timestamp, oldest first.

        Only the last `max_lines` lines of the file are considered (default:
        the store's poll_limit; zero or negative means the whole file). A
        qualifying message older than that window is not returned.
        """
        if max_lines is None:
            max_lines = self.poll_limit

        with PerformanceTimer(logger, "tail_scan", path=str(self.path)):
            raw_lines = self._tail_lines(max_lines)

        messages: List[Message] = []
        skipped = 0
        for raw in raw_lines:
            try:
                message = Message.from_line(raw.decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                skipped += 1
                continue
            if message.timestamp >= min_timestamp:
                messages.append(message)

        if skipped:
            logger.debug(f"Skipped {skipped} malformed line(s) in {self.path}")
        return messages

    def _tail_lines(self, max_lines: int) -> List[bytes]:
        try:
            with open(self.path, "rb") as fh:
                with locked(fh, SHARED, self.lock_timeout):
                    return self._scan_backward(fh, max_lines)
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.error(f"Read of {self.path} failed: {exc}")
            raise store_unavailable(self.path, exc) from exc

    def _scan_backward(self, fh, max_lines: int) -> List[bytes]:
        pos = os.fstat(fh.fileno()).st_size
        if pos == 0:
            return []

        bounded = max_lines > 0
        buffer = b""
        # One newline more than wanted guarantees max_lines complete lines
        # once the leading partial segment is dropped.
        while pos > 0 and (not bounded or buffer.count(b"\n") <= max_lines):
            start = max(pos - self.chunk_size, 0)
            fh.seek(start)
            buffer = fh.read(pos - start) + buffer
            pos = start

        segments = buffer.split(b"\n")
        if pos > 0:
            segments = segments[1:]
        if not buffer.endswith(b"\n"):
            # Torn trailing write.
            segments = segments[:-1]
        lines = [seg for seg in segments if seg.strip()]
        if bounded:
            lines = lines[-max_lines:]
        return lines
