"""Typed update envelope.

An inbound update is one of a closed set of frozen variants. Each variant
has a fixed field set and exposes the two things the router needs: a
``verb`` (the update kind) and a ``payload`` (the text that route patterns
are matched against).

Unrecognised update kinds become ``Unknown`` so new Bot API features do
not break dispatch.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class Verb(StrEnum):
    """Update-kind tag carried by every update and answered by routes."""

    TEXT = "text"
    COMMAND = "command"
    CALLBACK_QUERY = "callback_query"
    INLINE_QUERY = "inline_query"
    UNKNOWN = "unknown"

    # Route-only wildcard: answers every update kind.
    ANY = "any"


@dataclass(frozen=True, slots=True)
class User:
    id: int
    username: str | None = None
    first_name: str = ""
    is_bot: bool = False


@dataclass(frozen=True, slots=True)
class Chat:
    id: int
    type: str = "private"
    title: str | None = None


@dataclass(frozen=True, slots=True)
class Message:
    """A plain text message."""

    text: str
    user: User | None = None
    chat: Chat | None = None
    message_id: int = 0

    @property
    def verb(self) -> Verb:
        return Verb.TEXT

    @property
    def payload(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class Command:
    """A ``/command args`` message.

    ``name`` is stored without the leading slash or ``@botname`` suffix.
    """

    name: str
    args: str = ""
    user: User | None = None
    chat: Chat | None = None
    message_id: int = 0

    @property
    def verb(self) -> Verb:
        return Verb.COMMAND

    @property
    def payload(self) -> str:
        if self.args:
            return f"{self.name} {self.args}"
        return self.name

    @property
    def text(self) -> str:
        return f"/{self.payload}"


@dataclass(frozen=True, slots=True)
class CallbackQuery:
    """An inline-keyboard button press."""

    data: str
    user: User | None = None
    chat: Chat | None = None
    query_id: str = ""

    @property
    def verb(self) -> Verb:
        return Verb.CALLBACK_QUERY

    @property
    def payload(self) -> str:
        return self.data


@dataclass(frozen=True, slots=True)
class InlineQuery:
    query: str
    user: User | None = None
    query_id: str = ""

    @property
    def verb(self) -> Verb:
        return Verb.INLINE_QUERY

    @property
    def payload(self) -> str:
        return self.query

    @property
    def chat(self) -> Chat | None:
        return None


@dataclass(frozen=True, slots=True)
class Unknown:
    """Any update kind perch does not model explicitly."""

    kind: str
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def verb(self) -> Verb:
        return Verb.UNKNOWN

    @property
    def payload(self) -> str:
        return ""

    @property
    def user(self) -> User | None:
        return None

    @property
    def chat(self) -> Chat | None:
        return None


type Update = Message | Command | CallbackQuery | InlineQuery | Unknown


# -- Parsing --


FOREIGN_COMMAND = "foreign_command"
"""``Unknown.kind`` for a command addressed to another bot (``/start@other_bot``)."""


def addressed_elsewhere(text: str, bot_username: str | None) -> bool:
    """True if *text* is a command for a bot other than *bot_username*."""
    if not bot_username or not text.startswith("/"):
        return False
    head = text[1:].partition(" ")[0]
    target = head.partition("@")[2]
    return bool(target) and target.lower() != bot_username.lower()


def split_command(text: str, bot_username: str | None = None) -> tuple[str, str] | None:
    """Split ``/name@bot args`` into ``(name, args)``.

    Returns ``None`` when *text* is not a command, or when the command is
    addressed to a different bot than *bot_username*.
    """
    if not text.startswith("/") or len(text) < 2:
        return None
    head, _, args = text[1:].partition(" ")
    name, _, target = head.partition("@")
    if not name:
        return None
    if target and bot_username and target.lower() != bot_username.lower():
        return None
    return name, args.strip()


def _user(data: Mapping[str, Any] | None) -> User | None:
    if not data:
        return None
    return User(
        id=int(data["id"]),
        username=data.get("username"),
        first_name=data.get("first_name", ""),
        is_bot=bool(data.get("is_bot", False)),
    )


def _chat(data: Mapping[str, Any] | None) -> Chat | None:
    if not data:
        return None
    return Chat(id=int(data["id"]), type=data.get("type", "private"), title=data.get("title"))


def parse_update(data: Mapping[str, Any], *, bot_username: str | None = None) -> Update:
    """Build a typed update from a Bot API style JSON object.

    Example::

        parse_update({"message": {"message_id": 1, "text": "/start",
                                  "chat": {"id": 7}, "from": {"id": 7}}})
        # -> Command(name="start", ...)
    """
    message = data.get("message")
    if message is not None and "text" in message:
        user = _user(message.get("from"))
        chat = _chat(message.get("chat"))
        message_id = int(message.get("message_id", 0))
        text = message["text"]
        if addressed_elsewhere(text, bot_username):
            return Unknown(kind=FOREIGN_COMMAND, raw=data)
        command = split_command(text, bot_username)
        if command is not None:
            name, args = command
            return Command(name=name, args=args, user=user, chat=chat, message_id=message_id)
        return Message(text=text, user=user, chat=chat, message_id=message_id)

    callback = data.get("callback_query")
    if callback is not None:
        origin = callback.get("message") or {}
        return CallbackQuery(
            data=callback.get("data", ""),
            user=_user(callback.get("from")),
            chat=_chat(origin.get("chat")),
            query_id=str(callback.get("id", "")),
        )

    inline = data.get("inline_query")
    if inline is not None:
        return InlineQuery(
            query=inline.get("query", ""),
            user=_user(inline.get("from")),
            query_id=str(inline.get("id", "")),
        )

    kind = next((key for key in data if key != "update_id"), "unknown")
    return Unknown(kind=kind, raw=data)
