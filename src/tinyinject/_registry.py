from __future__ import annotations

import inspect
import itertools
import logging
import sys
import threading
import types
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Literal,
    NamedTuple,
    TypeVar,
    Union,
    get_origin,
    get_type_hints,
    overload,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    T = TypeVar("T")


class Unresolved(Enum):
    """Marker for a constructor slot whose type could not be captured."""

    UNRESOLVED = "unresolved"

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = Unresolved.UNRESOLVED

Slot = Union[type, Literal[Unresolved.UNRESOLVED]]


class Dependency(NamedTuple):
    name: str
    annotation: Slot


@dataclass
class TypeRecord:
    identity: int
    injectable: bool = False
    dependencies: tuple[Dependency, ...] | None = None  # captured lazily for unmarked types


_records: weakref.WeakKeyDictionary[type, TypeRecord] = weakref.WeakKeyDictionary()
# Identities start at 1 and are never reused.
_counter = itertools.count(1)
_lock = threading.RLock()


def is_plain_class(obj: object) -> bool:
    """True for classes, false for parameterized generics like `list[int]`."""
    # inspect.isclass(list[int]) is True on 3.10
    return inspect.isclass(obj) and get_origin(obj) is None


def _record(cls: type) -> TypeRecord:
    if not is_plain_class(cls):
        msg = f"Only classes can be registered for injection, got {cls!r}"
        raise TypeError(msg)

    with _lock:
        rec = _records.get(cls)
        if rec is None:
            rec = TypeRecord(identity=next(_counter))
            _records[cls] = rec
        return rec


def identity_of(cls: type) -> int:
    """Return the process-wide identity of `cls`, assigning one on first use."""
    return _record(cls).identity


def is_marked_injectable(cls: type) -> bool:
    if not is_plain_class(cls):
        return False
    with _lock:
        rec = _records.get(cls)
        return rec is not None and rec.injectable


def get_declared_dependency_types(cls: type) -> list[Slot]:
    """Ordered constructor dependency types of `cls`, `UNRESOLVED` where capture failed."""
    return [dep.annotation for dep in dependency_slots(cls)]


def dependency_slots(cls: type) -> tuple[Dependency, ...]:
    rec = _record(cls)
    with _lock:
        if rec.dependencies is None:
            rec.dependencies = capture_dependencies(cls)
        return rec.dependencies


@overload
def injectable(cls: type[T], /) -> type[T]: ...


@overload
def injectable(*, dependencies: Iterable[type]) -> Callable[[type[T]], type[T]]: ...


def injectable(
    cls: type[T] | None = None,
    /,
    *,
    dependencies: Iterable[type] | None = None,
) -> type[T] | Callable[[type[T]], type[T]]:
    """Mark a class as injectable.

    Assigns the class its identity (or keeps the one it already has) and
    captures the constructor dependencies declared at this point.

    Example:
      @injectable
      class Repo:
          def __init__(self, db: Database): ...

      @injectable(dependencies=(Database,))
      class LegacyRepo:
          def __init__(self, db): ...

    Applying it again keeps the identity but captures the metadata afresh,
    so forward references that now exist become resolvable.
    """
    explicit = tuple(dependencies) if dependencies is not None else None

    def mark(target: type[T]) -> type[T]:
        rec = _record(target)
        if explicit is None:
            deps = capture_dependencies(target)
        else:
            deps = _explicit_dependencies(target, explicit)

        with _lock:
            rec.injectable = True
            rec.dependencies = deps
        return target

    if cls is not None:
        if dependencies is not None:
            msg = "Pass `dependencies` only when calling injectable(...) as a decorator factory."
            raise TypeError(msg)
        return mark(cls)

    return mark


def _explicit_dependencies(cls: type, explicit: tuple[type, ...]) -> tuple[Dependency, ...]:
    for dep in explicit:
        if not is_plain_class(dep):
            msg = f"Declared dependency {dep!r} of {cls.__qualname__} is not a class"
            raise TypeError(msg)

    names = [name for name, _ in _positional_parameters(cls)]
    if len(names) != len(explicit):
        msg = (
            f"{cls.__qualname__} declares {len(explicit)} dependencies but its constructor "
            f"takes {len(names)} required positional parameters"
        )
        raise ValueError(msg)

    return tuple(Dependency(name, dep) for name, dep in zip(names, explicit))


def capture_dependencies(cls: type) -> tuple[Dependency, ...]:
    """Read the dependency slots of `cls` from its constructor signature and type hints."""
    params = _positional_parameters(cls)
    if not params:
        return ()

    hints = _get_constructor_type_hints(cls, [name for name, _ in params])
    deps = []
    for name, _ in params:
        ann = hints.get(name, UNRESOLVED)
        if ann is not UNRESOLVED and not is_plain_class(ann):
            # Unions, generics and the like cannot be constructed.
            ann = UNRESOLVED
        deps.append(Dependency(name, ann))
    return tuple(deps)


def _positional_parameters(cls: type) -> list[tuple[str, inspect.Parameter]]:
    try:
        sig = _signature(cls)
    except ValueError:
        # builtins without introspectable signatures take no injected arguments
        return []

    params = []
    for name, p in sig.parameters.items():
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            continue
        if p.default is not p.empty:
            continue
        if p.kind is p.KEYWORD_ONLY:
            msg = f"Cannot inject keyword-only parameter '{name}' of {cls.__qualname__} without a default"
            raise TypeError(msg)
        params.append((name, p))
    return params


def _constructor(cls: type, names: list[str]) -> Any:
    """The `__init__` or `__new__` whose parameters `inspect.signature(cls)` reported."""
    init = inspect.getattr_static(cls, "__init__")
    new = inspect.getattr_static(cls, "__new__")
    if isinstance(new, staticmethod):
        new = new.__func__

    if not inspect.isfunction(new):
        return init
    if not inspect.isfunction(init):
        return new

    # both user-defined: keep the one that declares the slots
    if set(names) <= set(_signature(init).parameters):
        return init
    return new


def _get_constructor_type_hints(cls: type, names: list[str]) -> dict[str, Any]:
    ctor = _constructor(cls, names)
    try:
        return get_type_hints(ctor)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning(
            "'%s' name error retrieving %s (%s) type hints, "
            "affected dependencies are left unresolved (circular dependency?)",
            exc.name,
            cls.__name__,
            cls.__qualname__,
        )
        return _get_partial_type_hints(ctor)


def _get_partial_type_hints(ctor: Any) -> dict[str, Any]:
    """Evaluate annotations one at a time, skipping the ones that still fail."""
    globalns = getattr(ctor, "__globals__", None)
    hints = {}
    for name, ann in _raw_annotations(ctor).items():
        holder = types.SimpleNamespace(__annotations__={name: ann})
        try:
            hints.update(get_type_hints(holder, globalns=globalns))
        except NameError:
            continue
    return hints


if sys.version_info >= (3, 14):
    # Annotations are evaluated lazily; ask for forward references instead of NameError.
    import annotationlib

    def _signature(cls: type) -> inspect.Signature:
        return inspect.signature(cls, annotation_format=annotationlib.Format.FORWARDREF)

    def _raw_annotations(func: Any) -> dict[str, Any]:
        return dict(annotationlib.get_annotations(func, format=annotationlib.Format.FORWARDREF))

else:

    def _signature(cls: type) -> inspect.Signature:
        return inspect.signature(cls)

    def _raw_annotations(func: Any) -> dict[str, Any]:
        return dict(getattr(func, "__annotations__", {}))
