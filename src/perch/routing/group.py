"""Route group context: attribute merging across nested groups.

Registration code enters groups to share a prefix, a name prefix,
middleware, constraints, or a default controller::

    with router.group(prefix="admin", name="admin.", middleware=["auth"]):
        router.command("ban {user}", ban).name("ban")   # "admin ban {user}", "admin.ban"

The context is an explicit stack owned by one Router. It exists only
while routes are being registered.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, replace

from perch.errors import GroupStackUnderflow
from perch.middleware.spec import MiddlewareLike, MiddlewareSpec, parse_all
from perch.routing import pattern as _pattern


@dataclass(frozen=True, slots=True)
class GroupAttributes:
    """What a single group block declares.

    ``None`` for ``controller``, ``with_trashed`` and ``scope_bindings``
    means "inherit from the enclosing group".
    """

    prefix: str = ""
    name: str = ""
    middleware: tuple[MiddlewareSpec, ...] = ()
    without_middleware: tuple[MiddlewareSpec, ...] = ()
    where: Mapping[str, str] = field(default_factory=dict)
    controller: type | str | None = None
    with_trashed: bool | None = None
    scope_bindings: bool | None = None

    @classmethod
    def create(
        cls,
        *,
        prefix: str = "",
        name: str = "",
        middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        without_middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        where: Mapping[str, str] | None = None,
        controller: type | str | None = None,
        with_trashed: bool | None = None,
        scope_bindings: bool | None = None,
    ) -> GroupAttributes:
        return cls(
            prefix=prefix,
            name=name,
            middleware=parse_all(middleware),
            without_middleware=parse_all(without_middleware),
            where=dict(where or {}),
            controller=controller,
            with_trashed=with_trashed,
            scope_bindings=scope_bindings,
        )


@dataclass(frozen=True, slots=True)
class EffectiveAttributes:
    """The folded attributes of every group currently entered."""

    prefix: str = ""
    name: str = ""
    middleware: tuple[MiddlewareSpec, ...] = ()
    without_middleware: tuple[MiddlewareSpec, ...] = ()
    where: Mapping[str, str] = field(default_factory=dict)
    controller: type | str | None = None
    with_trashed: bool = False
    scope_bindings: bool | None = None

    def merge(self, attrs: GroupAttributes) -> EffectiveAttributes:
        """Combine these (parent) attributes with a child group's own.

        - prefix: joined with a single separator
        - name: raw concatenation (callers supply the trailing ``.``)
        - middleware: parent first, duplicates kept
        - where: child overrides parent per parameter name
        """
        return replace(
            self,
            prefix=_pattern.join(self.prefix, attrs.prefix),
            name=self.name + attrs.name,
            middleware=(*self.middleware, *attrs.middleware),
            without_middleware=(*self.without_middleware, *attrs.without_middleware),
            where={**self.where, **attrs.where},
            controller=attrs.controller if attrs.controller is not None else self.controller,
            with_trashed=attrs.with_trashed if attrs.with_trashed is not None else self.with_trashed,
            scope_bindings=(
                attrs.scope_bindings if attrs.scope_bindings is not None else self.scope_bindings
            ),
        )


class GroupContext:
    """Stack of group frames, pushed and popped as group blocks nest."""

    __slots__ = ("_stack",)

    def __init__(self) -> None:
        self._stack: list[GroupAttributes] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    def push(self, attrs: GroupAttributes) -> None:
        self._stack.append(attrs)

    def pop(self) -> GroupAttributes:
        if not self._stack:
            msg = "Route group stack is empty: pop() called more times than push()"
            raise GroupStackUnderflow(msg)
        return self._stack.pop()

    def current_effective(self) -> EffectiveAttributes:
        """Fold the whole stack, outermost group first."""
        effective = EffectiveAttributes()
        for attrs in self._stack:
            effective = effective.merge(attrs)
        return effective

    @contextmanager
    def group(self, attrs: GroupAttributes) -> Iterator[EffectiveAttributes]:
        self.push(attrs)
        try:
            yield self.current_effective()
        finally:
            self.pop()
