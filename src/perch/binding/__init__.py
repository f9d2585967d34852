"""Model binding: turn captured route parameters into handler values."""

from perch.binding.binder import ParameterBinder, unwrap_optional
from perch.binding.model import Model, is_model, pluralize
from perch.binding.repository import MemoryRepository, Repository
from perch.binding.result import BindingFailure, BindingResult, BoundParams, Found, Missing

__all__ = [
    "BindingFailure",
    "BindingResult",
    "BoundParams",
    "Found",
    "MemoryRepository",
    "Missing",
    "Model",
    "ParameterBinder",
    "Repository",
    "is_model",
    "pluralize",
    "unwrap_optional",
]
