from __future__ import annotations

import logging
import threading
import types
from typing import TYPE_CHECKING, Any, NamedTuple, TypeVar, cast

from ._registry import UNRESOLVED, dependency_slots, identity_of, is_marked_injectable, is_plain_class


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    T = TypeVar("T")


class ResolutionError(RuntimeError):
    pass


class UnresolvedDependencyError(ResolutionError):
    """A constructor slot of `cls` has no usable type metadata.

    The slot was left unresolved when the class was marked: a parameter
    without annotation, an annotation that is not a plain class, or one that
    could not be evaluated. The last case covers forward references to classes
    defined later, which is how circular dependencies show up, but also names
    that were never reachable from the module globals, such as classes local
    to a function under `from __future__ import annotations`. The two cannot
    be told apart.
    """

    def __init__(self, cls: type, parameter: str, position: int, msg: str | None = None) -> None:
        self.cls = cls
        self.identity = identity_of(cls)
        self.parameter = parameter
        self.position = position
        if msg is None:
            msg = (
                f"Cannot inject '{cls.__qualname__}' because there is no type metadata for its "
                f"dependency '{parameter}' (position {position}). The annotation is missing, not a class, "
                "or could not be evaluated when the class was marked "
                "(a circular dependency or a name outside module scope?)."
            )
        super().__init__(msg)


class CircularDependencyError(UnresolvedDependencyError):
    def __init__(self, path: tuple[type, ...], parameter: str, position: int) -> None:
        self.path = path
        chain = " -> ".join(c.__qualname__ for c in path)
        msg = f"Cannot inject '{path[0].__qualname__}' because of a circular dependency: {chain}"
        super().__init__(path[-2], parameter, position, msg)


class NotInjectableError(ResolutionError):
    def __init__(self, cls: type) -> None:
        self.cls = cls
        self.identity = identity_of(cls)
        super().__init__(f"Cannot inject '{cls.__qualname__}' because it is not decorated with @injectable.")


class Override(NamedTuple):
    """Resolve `val` wherever `key` is requested."""

    key: type
    val: type


class Injector:
    """Builds and caches object graphs of injectable classes.

    - one instance per type per injector, shared across the whole graph
    - overrides are fixed at construction
    - two injectors never share instances.
    """

    def __init__(self, overrides: Iterable[Override | tuple[type, type]] = ()) -> None:
        self._cache: dict[int, object] = {}
        self._overrides: dict[int, type] = {}
        self._override_keys: dict[type, type] = {}
        self._lock = threading.RLock()

        for item in overrides:
            key, val = Override(*item)
            if not is_plain_class(key) or not is_plain_class(val):
                msg = f"Override keys and values must be classes, got {key!r} -> {val!r}"
                raise TypeError(msg)

            identity = identity_of(key)
            if identity in self._overrides:
                # last one wins
                logger.warning(
                    "Duplicate override for %s: %s replaces %s",
                    key.__qualname__,
                    val.__qualname__,
                    self._overrides[identity].__qualname__,
                )
            self._overrides[identity] = val
            self._override_keys[key] = val

    @property
    def overrides(self) -> Mapping[type, type]:
        return types.MappingProxyType(self._override_keys)

    def is_cached(self, cls: type) -> bool:
        with self._lock:
            return identity_of(cls) in self._cache

    def get_instance(self, cls: type[T]) -> T:
        """Return the single instance of `cls` owned by this injector.

        The instance and all of its dependencies are built on first request;
        later requests, direct or as a dependency of another class, return
        the cached objects.
        """
        if not is_plain_class(cls):
            msg = f"get_instance() expects a class, got {cls!r}"
            raise TypeError(msg)

        with self._lock:
            return cast("T", self._resolve(cls, ()))

    def _resolve(self, cls: type, path: tuple[type, ...]) -> Any:
        identity = identity_of(cls)
        cached = self._cache.get(identity, _MISSING)
        if cached is not _MISSING:
            return cached

        target = self._overrides.get(identity, cls)
        if target is not cls:
            logger.debug("Resolving %s as %s", cls.__qualname__, target.__qualname__)

        if not is_marked_injectable(target):
            raise NotInjectableError(target)

        path = (*path, cls)
        args = []
        for position, (name, dep) in enumerate(dependency_slots(target)):
            if dep is UNRESOLVED:
                raise UnresolvedDependencyError(target, name, position)
            if dep in path:
                raise CircularDependencyError((*path, dep), name, position)
            args.append(self._resolve(dep, path))

        instance = target(*args)
        logger.debug("Constructed %s", target.__qualname__)

        self._cache[identity] = instance
        return instance


_MISSING = object()
