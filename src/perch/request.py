"""Immutable dispatch request.

Wraps the inbound update with what routing learned about it: the matched
route and the captured parameters. Middleware that wants to pass data
downstream uses ``with_attribute()``, which returns a new Request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from perch.updates import Chat, Update, User, Verb

if TYPE_CHECKING:
    from perch.routing.route import Route


@dataclass(frozen=True, slots=True)
class Request:
    """A single update travelling through the pipeline."""

    update: Update
    route: Route | None = None
    params: Mapping[str, str | None] = field(default_factory=dict)
    bindings: Mapping[str, Any] = field(default_factory=dict)
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def verb(self) -> Verb:
        return self.update.verb

    @property
    def payload(self) -> str:
        return self.update.payload

    @property
    def user(self) -> User | None:
        return self.update.user

    @property
    def chat(self) -> Chat | None:
        return self.update.chat

    @property
    def user_id(self) -> int | None:
        user = self.update.user
        return user.id if user is not None else None

    @property
    def chat_id(self) -> int | None:
        chat = self.update.chat
        return chat.id if chat is not None else None

    def param(self, name: str, default: Any = None) -> Any:
        """Return a captured route parameter (raw string form)."""
        value = self.params.get(name)
        return default if value is None else value

    def bound(self, name: str, default: Any = None) -> Any:
        """Return a route parameter after model/enum binding."""
        value = self.bindings.get(name)
        return default if value is None else value

    def with_route(
        self,
        route: Route,
        params: Mapping[str, str | None],
        bindings: Mapping[str, Any] | None = None,
    ) -> Request:
        """Attach the matched route, its raw captures, and the bound values."""
        return replace(
            self,
            route=route,
            params=dict(params),
            bindings=dict(params if bindings is None else bindings),
        )

    def with_attribute(self, name: str, value: Any) -> Request:
        return replace(self, attributes={**self.attributes, name: value})

    def attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)
