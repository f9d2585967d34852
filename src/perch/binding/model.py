"""Base class for route-bindable domain entities.

Subclasses are usually dataclasses::

    @dataclass
    class Post(Model):
        id: int
        slug: str
        deleted_at: datetime | None = None

A handler parameter annotated with a ``Model`` subclass receives the
entity whose ``route_key`` matches the captured string.
"""

from collections.abc import Mapping
from typing import Any, ClassVar

_IRREGULAR = {"person": "people", "child": "children", "man": "men", "woman": "women"}


def pluralize(word: str) -> str:
    """Naive English plural, enough for relation names."""
    if word in _IRREGULAR:
        return _IRREGULAR[word]
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


class Model:
    """Marker base for bindable entities.

    ``route_key`` names the attribute used for lookups when the pattern
    does not give one (``{post}`` vs ``{post:slug}``). ``route_relations``
    maps a child parameter name to the attribute holding its children
    when scoped binding is active; otherwise the plural of the child
    name is used.
    """

    route_key: ClassVar[str] = "id"
    route_relations: ClassVar[Mapping[str, str]] = {}

    deleted_at: Any = None

    @property
    def trashed(self) -> bool:
        """True once the entity has been soft-deleted."""
        return getattr(self, "deleted_at", None) is not None

    @classmethod
    def relation_for(cls, child_param: str) -> str:
        return cls.route_relations.get(child_param, pluralize(child_param))


def is_model(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, Model)
