"""Minimal dependency injection container.

Classes are marked with the `injectable` decorator, which gives them a stable
identity and captures the dependency types declared by their constructors.
An `Injector` then builds object graphs from those declarations, keeping one
instance per type that is shared by everything it wires.

Exports:
- `injectable`: Class decorator marking a type as eligible for injection.
- `Injector`: Resolves and caches instances; accepts `Override` bindings
  that replace one class with another at construction time.
- `ResolutionError`: Base of `UnresolvedDependencyError`,
  `CircularDependencyError` and `NotInjectableError`.
- `identity_of`, `is_marked_injectable`, `get_declared_dependency_types`:
  Inspect what the registry recorded for a class.
"""

from ._injector import (
    CircularDependencyError,
    Injector,
    NotInjectableError,
    Override,
    ResolutionError,
    UnresolvedDependencyError,
)
from ._registry import (
    UNRESOLVED,
    get_declared_dependency_types,
    identity_of,
    injectable,
    is_marked_injectable,
)


__all__ = [
    "UNRESOLVED",
    "CircularDependencyError",
    "Injector",
    "NotInjectableError",
    "Override",
    "ResolutionError",
    "UnresolvedDependencyError",
    "get_declared_dependency_types",
    "identity_of",
    "injectable",
    "is_marked_injectable",
]
