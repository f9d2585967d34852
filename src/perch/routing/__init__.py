"""Routing: pattern compilation, group merging, and first-match lookup.

Routes are registered during setup and compiled into an immutable
registry before the first update is dispatched.
"""

from perch.routing.constraints import ConstraintRegistry
from perch.routing.group import EffectiveAttributes, GroupAttributes, GroupContext
from perch.routing.handler import HandlerRef
from perch.routing.pattern import CompiledPattern, Literal, Param, compile_pattern
from perch.routing.registry import RouteRegistry
from perch.routing.route import BindingOptions, Route, RouteMatch
from perch.routing.router import PendingRoute, Router

__all__ = [
    "BindingOptions",
    "CompiledPattern",
    "ConstraintRegistry",
    "EffectiveAttributes",
    "GroupAttributes",
    "GroupContext",
    "HandlerRef",
    "Literal",
    "Param",
    "PendingRoute",
    "Route",
    "RouteMatch",
    "RouteRegistry",
    "Router",
    "compile_pattern",
]
