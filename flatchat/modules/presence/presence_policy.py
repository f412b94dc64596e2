"""
presence_policy.py

Rules that tie the roster to the chat log:

- Entries whose last_seen is more than `inactivity_seconds` old are expired
  and pruned on every operation that reads the roster.
- Nicknames are live-unique: compared case-insensitively against surviving
  entries only, so a nickname is free again once its holder leaves or lapses.
- Join and leave are announced in the log as SYSTEM messages.
- When the roster becomes empty, the log is cleared.

Concurrency contract: each roster mutation is load -> change -> save with a
lock around each file access, not around the whole sequence. Two logins
racing for the same free nickname can both succeed; their entries carry
distinct tokens, and later prunes/leaves operate by token, so the roster
stays consistent per session. A lost update of last_seen only shortens that
user's remaining idle allowance.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from flatchat.core.config import INACTIVITY_SECONDS, SYSTEM_AUTHOR
from flatchat.core.errors import ChatError, ChatRefusal
from flatchat.core.observability import get_logger
from flatchat.modules.chat.models import Message, PresenceEntry, nick_key
from flatchat.modules.chat.record_store import RecordStore
from flatchat.modules.common.io_guards import escape_text
from flatchat.modules.presence.roster_store import RosterStore

logger = get_logger("presence")


def prune_expired(
    entries: Iterable[PresenceEntry],
    now: int,
    inactivity_seconds: int = INACTIVITY_SECONDS,
) -> Tuple[List[PresenceEntry], bool]:
    """Return (survivors, changed). Pure: touches no file."""
    entries = list(entries)
    survivors = [e for e in entries if now - e.last_seen <= inactivity_seconds]
    return survivors, len(survivors) != len(entries)


def find_by_token(entries: Iterable[PresenceEntry], token: str) -> Optional[PresenceEntry]:
    for entry in entries:
        if entry.token == token:
            return entry
    return None


class PresencePolicy:
    def __init__(
        self,
        records: RecordStore,
        roster: RosterStore,
        inactivity_seconds: int = INACTIVITY_SECONDS,
    ):
        self.records = records
        self.roster = roster
        self.inactivity_seconds = inactivity_seconds

    # -------- roster views --------

    def prune(self, entries: Iterable[PresenceEntry], now: int) -> Tuple[List[PresenceEntry], bool]:
        return prune_expired(entries, now, self.inactivity_seconds)

    def active_roster(self, now: int) -> List[PresenceEntry]:
        """Load, prune, persist the prune if it removed anyone."""
        survivors, changed = self.prune(self.roster.load_all(), now)
        if changed:
            self.roster.save_all(survivors)
            logger.info(f"Pruned inactive users; {len(survivors)} remain")
        return survivors

    # -------- side effects --------

    def on_empty_room(self, now: int) -> bool:
        """Clear the chat log if nobody is left. Returns True when it cleared."""
        if self.active_roster(now):
            return False
        self.records.clear()
        logger.info("Room is empty; chat log cleared")
        return True

    def on_join(
        self,
        nickname: str,
        token: str,
        now: int,
        replaces: Optional[str] = None,
    ) -> PresenceEntry:
        """
        Add a new entry for `nickname`.

        `replaces` names a session held by the same client; it is removed in
        the same roster write, and only once the new nickname is accepted.
        """
        entries = self.roster.load_all()
        survivors, changed = self.prune(entries, now)

        replaced = find_by_token(survivors, replaces) if replaces else None
        others = [e for e in survivors if replaced is None or e.token != replaced.token]

        wanted = nick_key(nickname)
        if any(e.nick_key == wanted for e in others):
            if changed:
                self.roster.save_all(survivors)
            raise ChatError(ChatRefusal.DUPLICATE_NICKNAME, f"Nickname '{nickname}' is already online")

        if not others and (changed or replaced is not None):
            # Nobody who could see the old log is left.
            self.records.clear()
            logger.info("Room emptied; chat log cleared before join")
        elif replaced is not None:
            self.records.append(self._system_message(now, f"{replaced.nickname} left"))

        entry = PresenceEntry(nickname=nickname, token=token, joined_at=now, last_seen=now)
        self.roster.save_all(others + [entry])
        self.records.append(self._system_message(now, f"{nickname} joined"))
        logger.info(f"User '{nickname}' joined ({len(others) + 1} online)")
        return entry

    def on_leave(self, token: str, now: int) -> Optional[PresenceEntry]:
        entries = self.roster.load_all()
        survivors, changed = self.prune(entries, now)

        leaving = find_by_token(survivors, token)
        if leaving is not None:
            survivors = [e for e in survivors if e.token != token]
        if leaving is not None or changed:
            self.roster.save_all(survivors)

        if leaving is not None:
            self.records.append(self._system_message(now, f"{leaving.nickname} left"))
            logger.info(f"User '{leaving.nickname}' left ({len(survivors)} online)")

        self.on_empty_room(now)
        return leaving

    def touch(self, token: str, now: int) -> Tuple[Optional[PresenceEntry], List[PresenceEntry]]:
        """
        Refresh last_seen for `token`.

        Returns (entry, roster) with the refreshed entry, or (None, roster)
        when the token has no live entry. In the latter case an emptied room
        is cleared, since the caller's lapse may have been the last one.
        """
        entries = self.roster.load_all()
        survivors, changed = self.prune(entries, now)

        current = find_by_token(survivors, token)
        if current is None:
            if changed:
                self.roster.save_all(survivors)
            if not survivors:
                self.on_empty_room(now)
            return None, survivors

        refreshed = current.seen_at(now)
        survivors = [refreshed if e.token == token else e for e in survivors]
        self.roster.save_all(survivors)
        return refreshed, survivors

    @staticmethod
    def _system_message(now: int, text: str) -> Message:
        # Nicknames are stored raw; inside message text they must be rendered like any other text.
        return Message(timestamp=now, author=SYSTEM_AUTHOR, text=escape_text(text))
