import unittest

import pytest

from leviathan import (
    DIScope,
    Declaration,
    Dependency,
    FactoryDependency,
    InstanceDependency,
    Locator,
    UninitializedDependencyError,
    ValueDependency,
    factory_of,
    instance_of,
    late_init_of,
    mutable_value_of,
    provider_of,
    value_of,
)


class Service:
    def __init__(self, init_action=None):
        if init_action is not None:
            init_action()


class DependService(Service):
    def __init__(self, s: Service):
        super().__init__()
        self.s = s


class CyclicService(Service):
    def __init__(self, sp):
        super().__init__()
        self.sp = sp


class ExternalServices(Locator):
    @instance_of
    def service(self, ctx):
        return Service()


class ServiceLocator(Locator):
    constant = value_of(42)
    feature_flag = mutable_value_of(False)
    late_init_instance = late_init_of()

    def __init__(self, external: ExternalServices):
        self.created = []
        self.delegated_instance = external.service
        super().__init__()

    @instance_of
    def instance(self, ctx):
        return Service()

    @instance_of(keep_alive=True)
    def keep_alive_instance(self, ctx):
        return Service()

    @instance_of(lazy=False)
    def non_lazy_instance(self, ctx):
        return Service(lambda: self.created.append("non_lazy_instance"))

    @instance_of
    def depend_instance(self, ctx):
        return DependService(ctx.inject(self.instance))

    @factory_of
    def cached_factory(self, ctx):
        return Service()

    @factory_of(use_cache=False)
    def factory(self, ctx):
        return Service()

    @provider_of
    def answer(self):
        return self.constant.get() + 1

    @instance_of
    def cyclic_dep1(self, ctx):
        return CyclicService(ctx.lazy(self.cyclic_dep2))

    @instance_of
    def cyclic_dep2(self, ctx):
        return CyclicService(ctx.lazy(self.cyclic_dep1))


class TestServiceLocator(unittest.TestCase):
    esl: ExternalServices
    sl: ServiceLocator

    def setUp(self):
        self.esl = ExternalServices()
        self.sl = ServiceLocator(self.esl)
        self.scope = DIScope()

    def tearDown(self):
        self.scope.close()

    def test_handles_are_stable_per_locator(self):
        assert self.sl.instance is self.sl.instance
        assert isinstance(self.sl.instance, InstanceDependency)

    def test_handles_are_not_shared_between_locators(self):
        other = ServiceLocator(self.esl)
        assert other.instance is not self.sl.instance
        assert other.instance.get() is not self.sl.instance.get()

    def test_declaration_is_returned_from_class(self):
        assert isinstance(ServiceLocator.instance, Declaration)
        assert ServiceLocator.instance.name == "instance"

    def test_handle_is_named_after_attribute(self):
        assert self.sl.instance.name == "ServiceLocator.instance"
        assert "ServiceLocator.instance" in repr(self.sl.instance)

    def test_instance_provides_same_object(self):
        assert self.sl.instance.resolve(self.scope) is self.sl.instance.resolve(self.scope)

    def test_factory_provides_new_object_on_every_access(self):
        assert self.sl.factory.resolve(self.scope) is not self.sl.factory.resolve(self.scope)

    def test_cached_factory_is_per_scope(self):
        other = DIScope()
        assert self.sl.cached_factory.resolve(self.scope) is self.sl.cached_factory.resolve(self.scope)
        assert self.sl.cached_factory.resolve(self.scope) is not self.sl.cached_factory.resolve(other)
        assert isinstance(self.sl.cached_factory, FactoryDependency)

    def test_depend_instance_uses_same_object_as_instance(self):
        dps = self.sl.depend_instance.resolve(self.scope)
        assert dps.s is self.sl.instance.resolve(self.scope)

    def test_delegated_instance_is_the_external_handle(self):
        assert self.sl.delegated_instance is self.esl.service
        assert self.sl.delegated_instance.resolve(self.scope) is self.esl.service.resolve(self.scope)

    def test_non_lazy_instance_is_built_with_locator(self):
        assert self.sl.created == ["non_lazy_instance"]
        assert self.sl.non_lazy_instance.get() is self.sl.non_lazy_instance.resolve(self.scope)
        self.scope.close()
        assert self.sl.non_lazy_instance.resolve(DIScope()) is self.sl.non_lazy_instance.get()
        assert self.sl.created == ["non_lazy_instance"]

    def test_keep_alive_instance_survives_scope_close(self):
        first = self.sl.keep_alive_instance.resolve(self.scope)
        self.scope.close()
        assert self.sl.keep_alive_instance.resolve(DIScope()) is first

    def test_scoped_instance_is_rebuilt_after_scope_close(self):
        first = self.sl.instance.resolve(self.scope)
        self.scope.close()
        assert self.sl.instance.resolve(DIScope()) is not first

    def test_values(self):
        assert self.sl.constant.resolve(self.scope) == 42
        assert self.sl.answer.resolve(self.scope) == 43
        self.sl.feature_flag.set_value(True)
        assert self.sl.feature_flag.resolve(DIScope()) is True

    def test_late_init_instance_throws_when_not_provided(self):
        with pytest.raises(UninitializedDependencyError):
            self.sl.late_init_instance.resolve(self.scope)

    def test_late_init_instance_provides_provided_instance(self):
        s = Service()
        self.sl.late_init_instance.set_provider(lambda: s)
        assert self.sl.late_init_instance.resolve(self.scope) is s

    def test_cyclic_services_provide_appropriate_dependencies(self):
        c1 = self.sl.cyclic_dep1.resolve(self.scope)
        c2 = self.sl.cyclic_dep2.resolve(self.scope)
        assert c1.sp() == c2
        assert c2.sp() == c1

    def test_global_provides_appropriate_instances(self):
        sl = self.sl
        assert sl.instance.get() is sl.instance.get()
        assert sl.non_lazy_instance.get() is sl.non_lazy_instance.get()
        assert sl.depend_instance.get() is sl.depend_instance.get()
        assert sl.delegated_instance.get() is sl.delegated_instance.get()
        assert sl.factory.get() is not sl.factory.get()

    def test_dependencies_lists_declarations_in_order(self):
        deps = self.sl.dependencies()
        assert list(deps) == [
            "constant",
            "feature_flag",
            "late_init_instance",
            "instance",
            "keep_alive_instance",
            "non_lazy_instance",
            "depend_instance",
            "cached_factory",
            "factory",
            "answer",
            "cyclic_dep1",
            "cyclic_dep2",
        ]
        assert deps["instance"] is self.sl.instance
        assert all(isinstance(dep, Dependency) for dep in deps.values())
        assert "delegated_instance" not in deps


class TestLocatorInheritance(unittest.TestCase):
    def test_subclass_overrides_declaration(self):
        class Base(Locator):
            greeting = value_of("hello")
            name = value_of("world")

        class Child(Base):
            greeting = value_of("hi")

        child = Child()
        assert child.greeting.get() == "hi"
        assert child.name.get() == "world"
        assert list(child.dependencies()) == ["greeting", "name"]

    def test_subclass_can_replace_declaration_with_plain_handle(self):
        shared = ValueDependency("shared")

        class Base(Locator):
            greeting = value_of("hello")

        class Child(Base):
            greeting = shared

        child = Child()
        assert child.greeting is shared
        assert child.dependencies() == {}
