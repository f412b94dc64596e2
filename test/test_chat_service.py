"""
Session layer tests: the four client operations and the room scenarios.
"""

import pytest

from flatchat.core.errors import ChatError, ChatRefusal
from flatchat.modules.chat.chat_service import ChatService

from conftest import T0


def _refusal(fn, *args):
    with pytest.raises(ChatError) as exc_info:
        fn(*args)
    return exc_info.value.refusal


def _texts(result):
    return [m.text for m in result.messages]


class TestLogin:

    def test_login_returns_session(self, service, roster):
        session = service.login("  alice  ")

        assert session.nickname == "alice"
        assert session.joined_at == T0
        assert session.token
        assert [e.token for e in roster.load_all()] == [session.token]

    def test_tokens_are_unique(self, service):
        assert service.login("a").token != service.login("b").token

    @pytest.mark.parametrize("nick", ["", "   ", None])
    def test_blank_nickname(self, service, nick):
        assert _refusal(service.login, nick) == ChatRefusal.EMPTY_NICKNAME

    def test_duplicate_nickname(self, service):
        service.login("Alice")
        assert _refusal(service.login, "aLICE") == ChatRefusal.DUPLICATE_NICKNAME

    def test_system_nickname_is_reserved(self, service):
        assert _refusal(service.login, "system") == ChatRefusal.DUPLICATE_NICKNAME

    def test_long_nickname_is_cut(self, service):
        assert service.login("x" * 40).nickname == "x" * 24


class TestPost:

    def test_post_requires_token(self, service):
        assert _refusal(service.post, None, "hi") == ChatRefusal.NOT_AUTHENTICATED

    @pytest.mark.parametrize("text", ["", "   \n\t "])
    def test_empty_message(self, service, text):
        token = service.login("alice").token
        assert _refusal(service.post, token, text) == ChatRefusal.EMPTY_MESSAGE

    def test_unknown_token_is_expired(self, service):
        assert _refusal(service.post, "made-up", "hi") == ChatRefusal.SESSION_EXPIRED

    def test_post_stores_rendered_text(self, service):
        token = service.login("alice").token

        message = service.post(token, "  <b>hi</b> :) ")

        assert message.author == "alice"
        assert message.text == "&lt;b&gt;hi&lt;/b&gt; \U0001F60A"
        assert _texts(service.poll(token))[-1] == message.text

    def test_post_caps_length(self, service):
        token = service.login("alice").token
        assert len(service.post(token, "a" * 5000).text) == 1000

    def test_post_refreshes_last_seen(self, service, roster, clock):
        token = service.login("alice").token
        clock.advance(1000)

        service.post(token, "still here")
        clock.advance(1000)

        assert service.poll(token).online_users == ["alice"]
        assert roster.load_all()[0].last_seen == clock.now


class TestPoll:

    def test_poll_requires_token(self, service):
        assert _refusal(service.poll, "") == ChatRefusal.NOT_AUTHENTICATED

    def test_poll_lists_online_users(self, service, clock):
        a = service.login("alice").token
        clock.advance(1)
        service.login("bob")

        result = service.poll(a)

        assert result.online_users == ["alice", "bob"]
        assert result.online_count == 2
        assert result.to_dict()["online_count"] == 2

    def test_poll_prunes_lapsed_users(self, service, roster, clock):
        a = service.login("alice").token
        clock.advance(1000)
        b = service.login("bob").token
        clock.advance(900)

        result = service.poll(b)

        assert result.online_users == ["bob"]
        assert [e.token for e in roster.load_all()] == [b]
        assert _refusal(service.poll, a) == ChatRefusal.SESSION_EXPIRED

    def test_joiner_never_sees_earlier_messages(self, service, clock):
        a = service.login("alice").token
        clock.advance(1)
        service.post(a, "before bob")
        clock.advance(1)

        b = service.login("bob").token
        clock.advance(1)
        service.post(a, "after bob")

        assert _texts(service.poll(b)) == ["bob joined", "after bob"]
        assert _texts(service.poll(a)) == ["alice joined", "before bob", "bob joined", "after bob"]

    def test_rejoin_after_expiry_resets_horizon(self, service, clock):
        a = service.login("alice").token
        clock.advance(1)
        service.login("bob")
        clock.advance(1)
        carol = service.login("carol").token

        clock.advance(1000)
        service.post(carol, "while alice is away")
        clock.advance(900)  # alice and bob lapse; carol was active at T0+1002

        assert _refusal(service.poll, a) == ChatRefusal.SESSION_EXPIRED
        again = service.login("alice")

        assert again.joined_at == clock.now
        assert _texts(service.poll(again.token)) == ["alice joined"]


class TestLogout:

    def test_logout_without_token_is_a_no_op(self, service):
        assert service.logout(None) is None

    def test_logout_twice(self, service):
        service.login("bob")
        token = service.login("alice").token

        assert service.logout(token).nickname == "alice"
        assert service.logout(token) is None

    def test_token_is_dead_after_logout(self, service):
        service.login("bob")
        token = service.login("alice").token
        service.logout(token)

        assert _refusal(service.poll, token) == ChatRefusal.SESSION_EXPIRED
        assert _refusal(service.post, token, "hi") == ChatRefusal.SESSION_EXPIRED

    def test_nickname_free_after_logout(self, service):
        service.login("bob")
        service.logout(service.login("alice").token)
        assert service.login("ALICE").nickname == "ALICE"


class TestScenarios:

    def test_two_users_chat_then_room_is_wiped(self, service, records, clock):
        a = service.login("A").token
        clock.advance(5)
        b = service.login("B").token
        service.post(b, "hi")
        clock.advance(1)

        assert "hi" in _texts(service.poll(a))

        service.logout(a)
        service.logout(b)

        assert records.read_since(0, max_lines=0) == []

    def test_idle_user_expires(self, service, roster, records, clock):
        a = service.login("A").token
        clock.advance(1801)

        assert _refusal(service.poll, a) == ChatRefusal.SESSION_EXPIRED
        assert roster.load_all() == []
        assert records.read_since(0) == []

    def test_idle_exactly_at_threshold_is_still_present(self, service, clock):
        a = service.login("A").token
        clock.advance(1800)
        assert service.poll(a).online_users == ["A"]

    def test_from_data_dir(self, tmp_path, clock):
        svc = ChatService.from_data_dir(tmp_path / "room", clock=clock, poll_limit=5)
        svc.ensure_storage()

        token = svc.login("zoe").token
        for i in range(10):
            svc.post(token, f"m{i}")

        assert (tmp_path / "room" / "chat.log").exists()
        assert _texts(svc.poll(token)) == [f"m{i}" for i in range(5, 10)]
