"""
io_guards.py

Input guardrails applied to user text before it reaches storage.

Stored messages are the canonical rendered form, so everything a client
would otherwise have to do (trim, length cap, HTML escaping, smileys) is
done once here:

- Nickname normalization
- Chat text normalization
"""

from __future__ import annotations

import html
from typing import Any

from flatchat.core.config import MAX_MESSAGE_CHARS, MAX_NICKNAME_CHARS

# Longer forms first so ":-)" is not consumed as ":" + "-)".
SMILEYS = (
    (":-)", "\U0001F60A"), (":)", "\U0001F60A"),
    (";-)", "\U0001F609"), (";)", "\U0001F609"),
    (":-D", "\U0001F604"), (":D", "\U0001F604"),
    (":-(", "\U0001F641"), (":(", "\U0001F641"),
    (":-P", "\U0001F61B"), (":P", "\U0001F61B"),
    (":-O", "\U0001F62E"), (":O", "\U0001F62E"),
    (":-|", "\U0001F610"), (":|", "\U0001F610"),
    (":-/", "\U0001F615"), (":/", "\U0001F615"),
)


def _to_str(text: Any) -> str:
    if isinstance(text, str):
        return text
    return str(text or "")


def clamp_text(text: Any, limit: int) -> str:
    """Clamp text to `limit` characters. A non-positive limit disables clamping."""
    s = _to_str(text)
    if limit <= 0 or len(s) <= limit:
        return s
    return s[:limit]


def clamp_rendered(text: str, limit: int) -> str:
    """
    Clamp already-escaped text without leaving half an entity (e.g. "&am")
    dangling at the end.
    """
    s = clamp_text(text, limit)
    if len(s) == len(text):
        return s
    amp = s.rfind("&")
    if amp != -1 and ";" not in s[amp:]:
        s = s[:amp]
    return s


def escape_text(text: str) -> str:
    """HTML-escape text that is stored as-is, without smiley substitution."""
    return html.escape(_to_str(text), quote=True)


def smileys_to_emoji(text: str) -> str:
    for smiley, emoji in SMILEYS:
        text = text.replace(smiley, emoji)
    return text


def sanitize_nickname(nick: Any) -> str:
    """
    Trim a requested nickname and cap it at MAX_NICKNAME_CHARS.
    Returns "" for blank input; the caller decides what that means.
    """
    return clamp_text(_to_str(nick).strip(), MAX_NICKNAME_CHARS).strip()


def sanitize_chat_input(text: Any, limit: int = MAX_MESSAGE_CHARS) -> str:
    """
    Turn raw client text into the stored rendered form.

    - Converts non-strings to string and trims whitespace
    - Caps length at `limit` characters
    - Replaces smileys with emoji
    - HTML-escapes, then re-caps so the stored text never exceeds `limit`

    Smileys are substituted before escaping: ";)" would otherwise match the
    tail of an entity such as "&#x27;)".
    """
    s = clamp_text(_to_str(text).strip(), limit)
    if not s:
        return ""
    rendered = html.escape(smileys_to_emoji(s), quote=True)
    return clamp_rendered(rendered, limit)
