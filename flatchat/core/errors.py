"""
CHAT ERROR TAXONOMY

Every failure a chat operation can report to its caller.
Each refusal carries a stable wire code and the HTTP status it maps to.
"""

from __future__ import annotations

from enum import Enum


class ChatRefusal(Enum):
    EMPTY_NICKNAME = ("empty_nickname", 400)
    DUPLICATE_NICKNAME = ("duplicate_nickname", 409)
    EMPTY_MESSAGE = ("empty_message", 400)
    NOT_AUTHENTICATED = ("not_authenticated", 401)
    SESSION_EXPIRED = ("session_expired", 401)
    STORE_UNAVAILABLE = ("store_unavailable", 503)

    def __init__(self, code: str, http_status: int):
        self.code = code
        self.http_status = http_status

    @property
    def ends_session(self) -> bool:
        """Client must drop its local session state and log in again."""
        return self in (ChatRefusal.NOT_AUTHENTICATED, ChatRefusal.SESSION_EXPIRED)


class ChatError(RuntimeError):
    def __init__(self, refusal: ChatRefusal, details: str):
        self.refusal = refusal
        self.details = details
        super().__init__(f"[{refusal.code}] {details}")


def store_unavailable(path, exc: BaseException) -> ChatError:
    return ChatError(ChatRefusal.STORE_UNAVAILABLE, f"{path}: {exc}")
