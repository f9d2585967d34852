"""Entity lookup collaborators for model binding.

The binder only needs two lookups. Real applications implement them on
top of their ORM (sync or async both work); ``MemoryRepository`` keeps
entities in process and is what tests and small bots use.
"""

from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol


class Repository(Protocol):
    """Finds entities by a key attribute. Methods may be ``async``."""

    def find_by_key(self, model: type, field: str, key: str, *, with_trashed: bool = False) -> Any: ...

    def find_related(
        self, parent: Any, relation: str, field: str, key: str, *, with_trashed: bool = False
    ) -> Any: ...


def _matches(entity: Any, field: str, key: str, with_trashed: bool) -> bool:
    if not with_trashed and getattr(entity, "deleted_at", None) is not None:
        return False
    return str(getattr(entity, field, None)) == key


class MemoryRepository:
    """In-process repository keyed by entity type.

    Related entities are read from an attribute (or zero-argument method)
    on the parent, named by the relation.
    """

    __slots__ = ("_items",)

    def __init__(self, entities: Iterable[Any] = ()) -> None:
        self._items: dict[type, list[Any]] = defaultdict(list)
        self.add(*entities)

    def add(self, *entities: Any) -> None:
        for entity in entities:
            self._items[type(entity)].append(entity)

    def all(self, model: type) -> list[Any]:
        return list(self._items.get(model, ()))

    def find_by_key(self, model: type, field: str, key: str, *, with_trashed: bool = False) -> Any:
        for entity in self._items.get(model, ()):
            if _matches(entity, field, key, with_trashed):
                return entity
        return None

    def find_related(
        self, parent: Any, relation: str, field: str, key: str, *, with_trashed: bool = False
    ) -> Any:
        related = getattr(parent, relation, None)
        if related is None:
            return None
        if callable(related):
            related = related()
        for entity in related:
            if _matches(entity, field, key, with_trashed):
                return entity
        return None
