"""Route cache artifact.

A built ``RouteRegistry`` can be written to disk and loaded on the next
boot without re-running registration code. The artifact is versioned
JSON holding each route's compiled segments, handler import path,
middleware references, and binding options.

Only importable objects can be cached: module-level functions and
classes, or middleware aliases. A registry that uses lambdas, closures,
or middleware instances raises ``ConfigurationError`` on ``serialize()``.
"""

import json
from pathlib import Path
from typing import Any

from perch._internal.imports import import_path, import_string
from perch.errors import ConfigurationError
from perch.middleware.spec import MiddlewareSpec
from perch.routing.handler import HandlerRef
from perch.routing.pattern import Literal, Param, Segment, from_segments
from perch.routing.registry import RouteRegistry
from perch.routing.route import BindingOptions, Route
from perch.updates import Verb

CACHE_VERSION = 1


# -- Encoding --


def _encode_segment(seg: Segment) -> dict[str, Any]:
    if isinstance(seg, Literal):
        return {"literal": seg.text}
    return {
        "param": seg.name,
        "optional": seg.optional,
        "constraint": seg.constraint,
        "field": seg.field,
    }


def _encode_middleware(spec: MiddlewareSpec) -> dict[str, Any]:
    if isinstance(spec.ref, str):
        return {"alias": spec.ref, "args": list(spec.args)}
    return {"import": import_path(spec.ref), "args": list(spec.args)}


def _encode_handler(handler: HandlerRef) -> dict[str, Any]:
    if isinstance(handler.target, str):
        return {"target": handler.target, "method": handler.method, "lazy": True}
    return {"target": import_path(handler.target), "method": handler.method}


def _encode_route(route: Route) -> dict[str, Any]:
    return {
        "verbs": sorted(str(v) for v in route.verbs),
        "pattern": route.pattern,
        "segments": [_encode_segment(s) for s in route.compiled.segments],
        "handler": _encode_handler(route.handler),
        "middleware": [_encode_middleware(m) for m in route.middleware],
        "excluded": [_encode_middleware(m) for m in route.excluded_middleware],
        "name": route.name,
        "constraints": dict(route.constraints),
        "binding": {
            "with_trashed": route.binding.with_trashed,
            "scope_bindings": route.binding.scope_bindings,
        },
        "defaults": dict(route.defaults),
        "fallback": route.fallback,
    }


def serialize(registry: RouteRegistry) -> bytes:
    """Encode every route in *registry* (fallback included)."""
    document = {
        "version": CACHE_VERSION,
        "routes": [_encode_route(route) for route in registry.routes],
    }
    try:
        return json.dumps(document, indent=None, separators=(",", ":")).encode("utf-8")
    except TypeError as exc:
        msg = f"Route defaults must be JSON-serializable to be cached: {exc}"
        raise ConfigurationError(msg) from exc


# -- Decoding --


def _decode_segment(data: dict[str, Any]) -> Segment:
    if "literal" in data:
        return Literal(data["literal"])
    return Param(
        name=data["param"],
        optional=data["optional"],
        constraint=data["constraint"],
        field=data["field"],
    )


def _decode_middleware(data: dict[str, Any]) -> MiddlewareSpec:
    args = tuple(data.get("args", ()))
    if "alias" in data:
        return MiddlewareSpec(data["alias"], args)
    return MiddlewareSpec(import_string(data["import"]), args)


def _decode_handler(data: dict[str, Any]) -> HandlerRef:
    # Handlers registered as import strings stay lazy
    if data.get("lazy"):
        return HandlerRef(data["target"], data["method"])
    return HandlerRef(import_string(data["target"]), data["method"])


def _decode_route(data: dict[str, Any]) -> Route:
    segments = tuple(_decode_segment(s) for s in data["segments"])
    binding = data.get("binding", {})
    return Route(
        verbs=frozenset(Verb(v) for v in data["verbs"]),
        pattern=data["pattern"],
        compiled=from_segments(data["pattern"], segments),
        handler=_decode_handler(data["handler"]),
        middleware=tuple(_decode_middleware(m) for m in data["middleware"]),
        excluded_middleware=tuple(_decode_middleware(m) for m in data["excluded"]),
        name=data["name"],
        constraints=dict(data["constraints"]),
        binding=BindingOptions(
            with_trashed=binding.get("with_trashed", False),
            scope_bindings=binding.get("scope_bindings"),
        ),
        defaults=dict(data["defaults"]),
        fallback=data["fallback"],
    )


def deserialize(data: bytes) -> RouteRegistry:
    """Rebuild a compiled ``RouteRegistry`` from ``serialize()`` output.

    Raises ``ConfigurationError`` for an unreadable or outdated artifact.
    """
    try:
        document = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        msg = f"Route cache is not valid JSON: {exc}"
        raise ConfigurationError(msg) from exc

    version = document.get("version") if isinstance(document, dict) else None
    if version != CACHE_VERSION:
        msg = f"Route cache version {version!r} is not supported (expected {CACHE_VERSION}); rebuild it"
        raise ConfigurationError(msg)

    registry = RouteRegistry(_decode_route(route) for route in document["routes"])
    registry.compile()
    return registry


def write_cache(registry: RouteRegistry, path: str | Path) -> Path:
    """Serialize *registry* to *path*, creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(serialize(registry))
    return target


def read_cache(path: str | Path) -> RouteRegistry:
    return deserialize(Path(path).read_bytes())
