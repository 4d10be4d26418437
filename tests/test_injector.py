import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from tinyinject import Injector, UnresolvedDependencyError, get_declared_dependency_types, injectable


@injectable
class FirstInjectable: ...


@injectable
class SecondInjectable:
    def __init__(self, arg_first: FirstInjectable):
        self.arg_first = arg_first


@injectable
class ThirdInjectable:
    def __init__(self, arg_first: FirstInjectable, arg_second: SecondInjectable):
        self.arg_first = arg_first
        self.arg_second = arg_second


@injectable
class CircularOne:
    def __init__(self, arg_two: "CircularTwo"):
        self.arg_two = arg_two


@injectable
class CircularTwo:
    def __init__(self, arg_one: CircularOne):
        self.arg_one = arg_one


def test_get_instance_creates_instance_of_empty_class():
    injector = Injector()
    assert isinstance(injector.get_instance(FirstInjectable), FirstInjectable)


def test_get_instance_returns_cached_instance():
    injector = Injector()
    first = injector.get_instance(FirstInjectable)
    second = injector.get_instance(FirstInjectable)
    assert first is second


def test_each_injector_owns_its_instances():
    first = Injector().get_instance(FirstInjectable)
    second = Injector().get_instance(FirstInjectable)
    assert first is not second


def test_get_instance_injects_instances_of_declared_types():
    injector = Injector()
    third = injector.get_instance(ThirdInjectable)
    assert isinstance(third.arg_first, FirstInjectable)
    assert isinstance(third.arg_second, SecondInjectable)


def test_shared_dependency_is_same_instance_across_consumers():
    injector = Injector()
    from_second = injector.get_instance(SecondInjectable).arg_first
    from_third = injector.get_instance(ThirdInjectable).arg_first
    assert from_second is from_third
    assert from_second is injector.get_instance(FirstInjectable)


def test_get_instance_walks_whole_dependency_graph():
    injector = Injector()
    third = injector.get_instance(ThirdInjectable)
    second = injector.get_instance(SecondInjectable)
    assert second is third.arg_second
    assert second.arg_first is third.arg_first
    assert injector.get_instance(FirstInjectable) is third.arg_first


def test_forward_reference_cycle_raises_unresolved_dependency():
    injector = Injector()
    with pytest.raises(UnresolvedDependencyError, match="circular dependency") as ctx:
        injector.get_instance(CircularTwo)
    assert ctx.value.cls is CircularOne
    assert ctx.value.parameter == "arg_two"
    assert "CircularOne" in str(ctx.value)


def test_parameters_with_defaults_are_left_to_the_constructor():
    @injectable
    class WithDefault:
        def __init__(self, first: FirstInjectable, port: int = 5555):
            self.first = first
            self.port = port

    obj = Injector().get_instance(WithDefault)
    assert isinstance(obj.first, FirstInjectable)
    assert obj.port == 5555


def test_inherited_constructor_dependencies_are_injected():
    class Base:
        def __init__(self, first: FirstInjectable):
            self.first = first

    @injectable
    class Derived(Base): ...

    obj = Injector().get_instance(Derived)
    assert isinstance(obj.first, FirstInjectable)


def test_explicit_dependencies_replace_annotations():
    @injectable(dependencies=(FirstInjectable, SecondInjectable))
    class Legacy:
        def __init__(self, first, second):
            self.first = first
            self.second = second

    injector = Injector()
    obj = injector.get_instance(Legacy)
    assert obj.first is injector.get_instance(FirstInjectable)
    assert obj.second.arg_first is obj.first


def test_constructor_errors_propagate_and_nothing_is_cached():
    @injectable
    class Boom:
        def __init__(self, first: FirstInjectable):
            msg = "boom"
            raise ValueError(msg)

    injector = Injector()
    with pytest.raises(ValueError, match="boom"):
        injector.get_instance(Boom)
    assert not injector.is_cached(Boom)
    assert injector.is_cached(FirstInjectable)


def test_get_instance_rejects_non_class():
    with pytest.raises(TypeError):
        Injector().get_instance("FirstInjectable")  # type: ignore[arg-type]


def test_concurrent_callers_share_one_instance():
    constructed = []

    @injectable
    class Slow:
        def __init__(self):
            constructed.append(threading.get_ident())
            time.sleep(0.01)

    injector = Injector()
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: injector.get_instance(Slow), range(16)))

    assert len(constructed) == 1
    assert all(r is results[0] for r in results)


def test_dependencies_declared_on_new_are_injected():
    @injectable
    class Token:
        def __new__(cls, first: FirstInjectable):
            obj = super().__new__(cls)
            obj.first = first
            return obj

    assert get_declared_dependency_types(Token) == [FirstInjectable]
    injector = Injector()
    assert injector.get_instance(Token).first is injector.get_instance(FirstInjectable)
