import pytest

from flatchat.modules.common.io_guards import (
    clamp_rendered,
    clamp_text,
    escape_text,
    sanitize_chat_input,
    sanitize_nickname,
    smileys_to_emoji,
)


class TestNickname:

    @pytest.mark.parametrize("raw,expected", [
        ("  bob  ", "bob"),
        ("", ""),
        ("   ", ""),
        (None, ""),
        (42, "42"),
        ("n" * 30, "n" * 24),
    ])
    def test_sanitize_nickname(self, raw, expected):
        assert sanitize_nickname(raw) == expected

    def test_cut_does_not_leave_trailing_space(self):
        assert sanitize_nickname("a" * 23 + " b") == "a" * 23


class TestChatInput:

    def test_escapes_markup_and_quotes(self):
        assert sanitize_chat_input("<a href=\"x\">'</a>") == "&lt;a href=&quot;x&quot;&gt;&#x27;&lt;/a&gt;"

    @pytest.mark.parametrize("raw,expected", [
        (":)", "\U0001F60A"),
        (":-)", "\U0001F60A"),
        (";)", "\U0001F609"),
        (":D :(", "\U0001F604 \U0001F641"),
    ])
    def test_smileys(self, raw, expected):
        assert sanitize_chat_input(raw) == expected

    def test_smiley_after_quote_survives_escaping(self):
        assert sanitize_chat_input("it's ok ;)") == "it&#x27;s ok \U0001F609"

    def test_blank_is_empty(self):
        assert sanitize_chat_input(" \n\t ") == ""
        assert sanitize_chat_input(None) == ""

    def test_length_cap_holds_after_escaping(self):
        out = sanitize_chat_input("<" * 600, limit=1000)

        assert len(out) <= 1000
        assert out.endswith("&lt;")

    def test_length_cap_plain(self):
        assert sanitize_chat_input("x" * 2000, limit=10) == "x" * 10


class TestClamp:

    def test_clamp_text(self):
        assert clamp_text("abcdef", 3) == "abc"
        assert clamp_text("abc", 0) == "abc"

    def test_clamp_rendered_drops_partial_entity(self):
        assert clamp_rendered("ab&amp;", 5) == "ab"
        assert clamp_rendered("ab&amp;c", 7) == "ab&amp;"

    def test_escape_text_has_no_smileys(self):
        assert escape_text("<:)>") == "&lt;:)&gt;"

    def test_smileys_to_emoji_leaves_plain_text(self):
        assert smileys_to_emoji("no faces here") == "no faces here"
