"""Parameter binder: captured strings -> handler argument values.

For each captured parameter the binder picks one strategy, in order:

1. an explicit resolver registered with ``register(name, fn)``
2. an explicit model registered with ``register_model(name, Model)``
3. implicit model binding, when the handler annotates the parameter with
   a ``Model`` subclass
4. enum binding: the raw string must equal ``str(member.value)``
5. primitive conversion for ``int``, ``float`` and ``bool``
6. pass-through for ``str``, unannotated, and unknown types

Every strategy reports ``Found`` or ``Missing``; nothing here raises for
a lookup that simply finds nothing.
"""

import enum
import logging
from collections.abc import Callable, Mapping
from typing import Any

from perch._internal.annotations import unwrap_optional
from perch._internal.invoke import invoke
from perch.binding.model import Model, is_model
from perch.binding.repository import MemoryRepository, Repository
from perch.binding.result import BindingFailure, BindingResult, BoundParams, Found, Missing
from perch.errors import ConfigurationError
from perch.routing.route import BindingOptions, Route

logger = logging.getLogger("perch.binding")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _convert_primitive(raw: str, target: type) -> BindingResult[Any]:
    if target is bool:
        lowered = raw.lower()
        if lowered in _TRUE:
            return Found(True)
        if lowered in _FALSE:
            return Found(False)
        return Missing(f"{raw!r} is not a boolean")
    try:
        return Found(target(raw))
    except (TypeError, ValueError):
        return Missing(f"{raw!r} is not a valid {target.__name__}")


def _match_enum(raw: str, target: type[enum.Enum]) -> BindingResult[Any]:
    for member in target:
        if str(member.value) == raw:
            return Found(member)
    return Missing(f"{raw!r} is not a {target.__name__} value")


class ParameterBinder:
    """Resolves route parameters into the values handlers receive."""

    __slots__ = ("_models", "_resolvers", "repository")

    def __init__(self, repository: Repository | None = None) -> None:
        self.repository: Repository = repository if repository is not None else MemoryRepository()
        self._resolvers: dict[str, Callable[[str], Any]] = {}
        self._models: dict[str, type] = {}

    # -- Registration --

    def register(self, name: str, resolver: Callable[[str], Any]) -> None:
        """Resolve parameter *name* with *resolver* (sync or async).

        Returning ``None`` counts as not found.
        """
        self._resolvers[name] = resolver

    def register_model(self, name: str, model: type) -> None:
        """Bind parameter *name* to *model* regardless of annotations."""
        if not is_model(model):
            msg = f"{model!r} is not a perch Model subclass"
            raise ConfigurationError(msg)
        self._models[name] = model

    def is_model_param(self, name: str, declared: Any) -> bool:
        if name in self._resolvers:
            return False
        return name in self._models or is_model(unwrap_optional(declared))

    # -- Resolution --

    async def bind(
        self,
        name: str,
        raw: Any,
        declared: Any = None,
        options: BindingOptions | None = None,
        *,
        field: str | None = None,
        parent: Any = None,
    ) -> BindingResult[Any]:
        """Bind one parameter.

        *parent*, when given, scopes a model lookup to entities reachable
        from it through the relation named after *name*.
        """
        options = options or BindingOptions()
        if raw is None or not isinstance(raw, str):
            # Missing optional parameter, or a non-string route default
            return Found(raw)

        if name in self._resolvers:
            value = await invoke(self._resolvers[name], raw)
            if value is None:
                return Missing(f"resolver for {name!r} found nothing")
            return Found(value)

        target = self._models.get(name) or unwrap_optional(declared)

        if is_model(target):
            return await self._find_model(name, raw, target, options, field, parent)
        if isinstance(target, type) and issubclass(target, enum.Enum):
            return _match_enum(raw, target)
        if target in (int, float, bool):
            return _convert_primitive(raw, target)
        return Found(raw)

    async def _find_model(
        self,
        name: str,
        raw: str,
        model: type[Model],
        options: BindingOptions,
        field: str | None,
        parent: Any,
    ) -> BindingResult[Any]:
        key_field = field or model.route_key
        if parent is not None:
            relation = type(parent).relation_for(name) if isinstance(parent, Model) else name
            entity = await invoke(
                self.repository.find_related,
                parent,
                relation,
                key_field,
                raw,
                with_trashed=options.with_trashed,
            )
            if entity is None:
                return Missing(f"no {model.__name__} with {key_field}={raw!r} under {relation!r}")
            return Found(entity)

        entity = await invoke(
            self.repository.find_by_key,
            model,
            key_field,
            raw,
            with_trashed=options.with_trashed,
        )
        if entity is None:
            return Missing(f"no {model.__name__} with {key_field}={raw!r}")
        return Found(entity)

    async def bind_all(
        self,
        route: Route,
        params: Mapping[str, Any],
        declared: Mapping[str, Any],
    ) -> BoundParams:
        """Bind every captured parameter of *route*, in capture order.

        Scoping applies to the second and later model parameters when the
        route asks for it (``scope_bindings=True``) or, when unset, when the
        parameter declares a custom binding field (``{post:slug}``).
        """
        fields = {p.name: p.field for p in route.compiled.params}
        scope = route.binding.scope_bindings
        values: dict[str, Any] = {}
        failures: list[BindingFailure] = []
        previous: Any = None
        seen_model = False

        for name, raw in params.items():
            annotation = declared.get(name)
            field = fields.get(name)
            is_model_param = self.is_model_param(name, annotation)

            scoped = is_model_param and seen_model and (scope if scope is not None else field is not None)
            if scoped and previous is None and raw is not None:
                # An unbound parent can't vouch for its children
                result: BindingResult[Any] = Missing(f"parent of {name!r} is not bound")
            else:
                parent = previous if scoped else None
                result = await self.bind(name, raw, annotation, route.binding, field=field, parent=parent)

            if is_model_param:
                seen_model = True
                previous = result.value if isinstance(result, Found) else None

            if isinstance(result, Found):
                values[name] = result.value
            else:
                logger.debug("binding %r from %r failed: %s", name, raw, result.reason)
                values[name] = None
                failures.append(BindingFailure(name, raw, result.reason))

        return BoundParams(values=values, failures=tuple(failures))
