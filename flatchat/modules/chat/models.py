"""
Value types stored on disk: chat messages and presence entries.

Both are frozen dataclasses with validated construction from their on-disk
records. Decoding raises ValueError for anything malformed; stores catch it
and skip the offending line/entry.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from typing import Any, Dict

RECORD_VERSION = 1


def _require_int(record: Dict[str, Any], key: str) -> int:
    value = record.get(key)
    # bool is an int subclass; a True timestamp is garbage, not 1.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r} must be an integer, got {value!r}")
    return value


def _require_str(record: Dict[str, Any], key: str) -> str:
    value = record.get(key)
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {value!r}")
    return value


@dataclass(frozen=True)
class Message:
    """One line of the chat log."""
    timestamp: int
    author: str
    text: str

    def to_record(self) -> Dict[str, Any]:
        return {"v": RECORD_VERSION, "ts": self.timestamp, "nick": self.author, "text": self.text}

    def to_line(self) -> str:
        # ensure_ascii keeps every record a single line whatever the text holds.
        return json.dumps(self.to_record(), ensure_ascii=True, separators=(",", ":"))

    def to_public(self) -> Dict[str, Any]:
        """Shape returned to clients by poll."""
        return {"ts": self.timestamp, "nick": self.author, "text": self.text}

    @classmethod
    def from_record(cls, record: Any) -> "Message":
        if not isinstance(record, dict):
            raise ValueError("message record must be an object")
        version = record.get("v", RECORD_VERSION)
        if version != RECORD_VERSION:
            raise ValueError(f"unsupported message record version {version!r}")
        return cls(
            timestamp=_require_int(record, "ts"),
            author=_require_str(record, "nick"),
            text=_require_str(record, "text"),
        )

    @classmethod
    def from_line(cls, line: str) -> "Message":
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
        except RecursionError as exc:
            raise ValueError("JSON nested too deeply") from exc
        return cls.from_record(record)


@dataclass(frozen=True)
class PresenceEntry:
    """A user who is currently in the room."""
    nickname: str
    token: str
    joined_at: int
    last_seen: int

    @property
    def nick_key(self) -> str:
        return nick_key(self.nickname)

    def seen_at(self, now: int) -> "PresenceEntry":
        return replace(self, last_seen=now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "nick": self.nickname,
            "session": self.token,
            "joined_at": self.joined_at,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_record(cls, record: Any) -> "PresenceEntry":
        if not isinstance(record, dict):
            raise ValueError("presence record must be an object")
        nickname = _require_str(record, "nick")
        token = _require_str(record, "session")
        if not nickname or not token:
            raise ValueError("presence record needs a nickname and a session token")
        return cls(
            nickname=nickname,
            token=token,
            joined_at=_require_int(record, "joined_at"),
            last_seen=_require_int(record, "last_seen"),
        )


def nick_key(nickname: str) -> str:
    """Comparison key for live-unique nicknames."""
    return nickname.casefold()
