"""Shared pytest configuration for perch tests."""

import pytest

from perch.updates import CallbackQuery, Chat, Command, Message, User


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def user() -> User:
    return User(id=7, username="alice", first_name="Alice")


@pytest.fixture
def message(user: User):
    """Factory for text messages from ``user``."""

    def make(text: str) -> Message:
        return Message(text=text, user=user, chat=Chat(id=user.id))

    return make


@pytest.fixture
def command(user: User):
    def make(name: str, args: str = "") -> Command:
        return Command(name=name, args=args, user=user, chat=Chat(id=user.id))

    return make


@pytest.fixture
def callback(user: User):
    def make(data: str) -> CallbackQuery:
        return CallbackQuery(data=data, user=user, chat=Chat(id=user.id))

    return make
