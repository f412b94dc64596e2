"""
Session/request layer for the chat room.

Four operations consumed by clients: login, post, poll, logout.
A session is nothing but the opaque token handed out by login; everything
known about it (nickname, join time, last activity) lives in the roster
file. The service holds no per-request state, so any number of processes
can serve the same data directory.

Session lifecycle per token:
    Anonymous --login--> Joined --logout / lapse--> gone
A returning nickname always gets a new token and a new visibility horizon.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from flatchat.core import config
from flatchat.core.errors import ChatError, ChatRefusal
from flatchat.core.observability import get_logger
from flatchat.modules.chat.models import Message, PresenceEntry, nick_key
from flatchat.modules.chat.record_store import RecordStore
from flatchat.modules.common.io_guards import sanitize_chat_input, sanitize_nickname
from flatchat.modules.presence.presence_policy import PresencePolicy
from flatchat.modules.presence.roster_store import RosterStore

logger = get_logger("session")

Clock = Callable[[], float]


@dataclass(frozen=True)
class Session:
    token: str
    nickname: str
    joined_at: int


@dataclass
class PollResult:
    messages: List[Message] = field(default_factory=list)
    online_users: List[str] = field(default_factory=list)

    @property
    def online_count(self) -> int:
        return len(self.online_users)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "messages": [m.to_public() for m in self.messages],
            "online_count": self.online_count,
            "online_users": list(self.online_users),
        }


def generate_session_token() -> str:
    """Generate a unique opaque session token."""
    return str(uuid.uuid4())


class ChatService:
    def __init__(
        self,
        records: RecordStore,
        roster: RosterStore,
        *,
        inactivity_seconds: int = config.INACTIVITY_SECONDS,
        max_message_chars: int = config.MAX_MESSAGE_CHARS,
        clock: Clock = time.time,
    ):
        self.records = records
        self.roster = roster
        self.policy = PresencePolicy(records, roster, inactivity_seconds)
        self.max_message_chars = max_message_chars
        self._clock = clock

    @classmethod
    def from_data_dir(cls, data_dir: Union[str, Path, None] = None, **kwargs) -> "ChatService":
        """Build a service over <data_dir>/chat.log and <data_dir>/users.json."""
        data_dir = Path(data_dir) if data_dir is not None else config.DATA_DIR
        records = RecordStore(
            data_dir / config.CHAT_FILE_NAME,
            poll_limit=kwargs.pop("poll_limit", config.POLL_LIMIT),
        )
        roster = RosterStore(data_dir / config.USERS_FILE_NAME)
        return cls(records, roster, **kwargs)

    def ensure_storage(self) -> None:
        self.records.ensure()
        self.roster.ensure()

    def now(self) -> int:
        return int(self._clock())

    # =========================
    # Operations
    # =========================

    def login(self, nickname: Any, replaces: Optional[str] = None) -> Session:
        """
        Join the room as `nickname`. A still-live session named by
        `replaces` is ended only if the new login succeeds.
        """
        nick = sanitize_nickname(nickname)
        if not nick:
            raise ChatError(ChatRefusal.EMPTY_NICKNAME, "Nickname is required")
        if nick_key(nick) == nick_key(config.SYSTEM_AUTHOR):
            raise ChatError(ChatRefusal.DUPLICATE_NICKNAME, f"Nickname '{nick}' is reserved")

        token = generate_session_token()
        entry = self.policy.on_join(nick, token, self.now(), replaces=replaces)
        return Session(token=entry.token, nickname=entry.nickname, joined_at=entry.joined_at)

    def post(self, token: Optional[str], text: Any) -> Message:
        self._require_token(token)
        rendered = sanitize_chat_input(text, self.max_message_chars)
        if not rendered:
            raise ChatError(ChatRefusal.EMPTY_MESSAGE, "Message is empty")

        entry, _ = self._resolve(token)
        message = Message(timestamp=self.now(), author=entry.nickname, text=rendered)
        self.records.append(message)
        logger.debug(f"Message from '{entry.nickname}' ({len(rendered)} chars)")
        return message

    def poll(self, token: Optional[str]) -> PollResult:
        self._require_token(token)
        entry, online = self._resolve(token)
        messages = self.records.read_since(entry.joined_at)
        return PollResult(messages=messages, online_users=[e.nickname for e in online])

    def logout(self, token: Optional[str]) -> Optional[PresenceEntry]:
        if not token:
            return None
        return self.policy.on_leave(token, self.now())

    # =========================
    # Helpers
    # =========================

    @staticmethod
    def _require_token(token: Optional[str]) -> None:
        if not token:
            raise ChatError(ChatRefusal.NOT_AUTHENTICATED, "Not logged in")

    def _resolve(self, token: str) -> Tuple[PresenceEntry, List[PresenceEntry]]:
        """
        Live roster entry for `token` with last_seen refreshed, plus the
        pruned roster it was found in. Raises SESSION_EXPIRED on a miss.
        """
        entry, online = self.policy.touch(token, self.now())
        if entry is None:
            logger.info("Session expired or unknown; client must log in again")
            raise ChatError(ChatRefusal.SESSION_EXPIRED, "Session expired")
        return entry, online
