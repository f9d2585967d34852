"""Tests for perch.updates, perch.request and perch.response."""

import pytest

from perch.request import Request
from perch.response import Response, empty, to_response
from perch.updates import (
    FOREIGN_COMMAND,
    CallbackQuery,
    Chat,
    Command,
    InlineQuery,
    Message,
    Unknown,
    User,
    Verb,
    addressed_elsewhere,
    parse_update,
    split_command,
)


class TestSplitCommand:
    def test_plain(self) -> None:
        assert split_command("/start") == ("start", "")

    def test_with_args(self) -> None:
        assert split_command("/ban  alice  spam") == ("ban", "alice  spam")

    def test_addressed_to_this_bot(self) -> None:
        assert split_command("/start@MyBot now", "mybot") == ("start", "now")

    def test_addressed_to_other_bot(self) -> None:
        assert split_command("/start@other_bot", "mybot") is None

    def test_not_a_command(self) -> None:
        assert split_command("hello") is None
        assert split_command("/") is None


class TestParseUpdate:
    def test_text_message(self) -> None:
        update = parse_update(
            {"update_id": 1, "message": {"message_id": 3, "text": "hi", "from": {"id": 7}, "chat": {"id": 9}}}
        )
        assert update == Message(text="hi", user=User(id=7), chat=Chat(id=9), message_id=3)
        assert update.verb is Verb.TEXT

    def test_command(self) -> None:
        update = parse_update({"message": {"text": "/orders show 5", "chat": {"id": 9}}})
        assert isinstance(update, Command)
        assert update.name == "orders"
        assert update.payload == "orders show 5"
        assert update.text == "/orders show 5"

    def test_command_for_other_bot(self) -> None:
        data = {"message": {"text": "/ban@other_bot 5"}}
        update = parse_update(data, bot_username="mine")
        assert update == Unknown(kind=FOREIGN_COMMAND, raw=data)
        assert update.verb is Verb.UNKNOWN

    def test_command_for_this_bot(self) -> None:
        update = parse_update({"message": {"text": "/ban@Mine 5"}}, bot_username="mine")
        assert update == Command(name="ban", args="5")

    def test_addressed_command_without_bot_username(self) -> None:
        update = parse_update({"message": {"text": "/ban@other_bot 5"}})
        assert isinstance(update, Command)

    def test_addressed_elsewhere(self) -> None:
        assert addressed_elsewhere("/start@other_bot now", "mybot")
        assert not addressed_elsewhere("/start@MyBot", "mybot")
        assert not addressed_elsewhere("/start", "mybot")
        assert not addressed_elsewhere("hello@other_bot", "mybot")
        assert not addressed_elsewhere("/start@other_bot", None)

    def test_callback_query(self) -> None:
        update = parse_update(
            {"callback_query": {"id": "q1", "data": "orders show 5", "from": {"id": 7}, "message": {"chat": {"id": 9}}}}
        )
        assert update == CallbackQuery(data="orders show 5", user=User(id=7), chat=Chat(id=9), query_id="q1")
        assert update.verb is Verb.CALLBACK_QUERY

    def test_inline_query(self) -> None:
        update = parse_update({"inline_query": {"id": "i1", "query": "cats", "from": {"id": 7}}})
        assert isinstance(update, InlineQuery)
        assert update.payload == "cats"
        assert update.chat is None

    def test_unknown(self) -> None:
        update = parse_update({"update_id": 5, "poll": {"id": "p"}})
        assert isinstance(update, Unknown)
        assert update.kind == "poll"
        assert update.verb is Verb.UNKNOWN
        assert update.payload == ""

    def test_message_without_text_is_unknown(self) -> None:
        update = parse_update({"message": {"photo": []}})
        assert isinstance(update, Unknown)


class TestRequest:
    def test_accessors(self) -> None:
        request = Request(Message(text="hi", user=User(id=1), chat=Chat(id=2)))
        assert request.verb is Verb.TEXT
        assert request.payload == "hi"
        assert request.user_id == 1
        assert request.chat_id == 2

    def test_missing_identity(self) -> None:
        request = Request(Unknown(kind="poll"))
        assert request.user_id is None
        assert request.chat_id is None

    def test_attributes_are_copied(self) -> None:
        request = Request(Message(text="hi"))
        tagged = request.with_attribute("locale", "en")
        assert tagged.attribute("locale") == "en"
        assert request.attribute("locale") is None

    def test_param_and_bound(self) -> None:
        request = Request(Message(text="hi"), params={"id": "5", "page": None}, bindings={"id": 5})
        assert request.param("id") == "5"
        assert request.param("page", "1") == "1"
        assert request.bound("id") == 5
        assert request.bound("missing", 0) == 0


class TestResponse:
    def test_with_methods_return_new(self) -> None:
        response = Response(text="a")
        changed = response.with_text("b").with_status(201).with_params(parse_mode="HTML")
        assert response.text == "a"
        assert (changed.text, changed.status, changed.params) == ("b", 201, {"parse_mode": "HTML"})

    def test_header_lookup(self) -> None:
        response = Response().with_header("Retry-After", "5").with_header("retry-after", "6")
        assert response.header("RETRY-AFTER") == "6"
        assert response.header("missing") is None

    def test_empty(self) -> None:
        assert empty().is_empty
        assert empty().ok
        assert not Response(text="x").is_empty

    def test_to_response(self) -> None:
        assert to_response("hi") == Response(text="hi")
        assert to_response(None) == empty()
        response = Response(text="x")
        assert to_response(response) is response
        mapped = to_response({"text": "t", "method": "answerCallbackQuery", "show_alert": True})
        assert mapped == Response(text="t", method="answerCallbackQuery", params={"show_alert": True})

    def test_to_response_rejects_other(self) -> None:
        with pytest.raises(TypeError):
            to_response(42)
