from __future__ import annotations

import threading
from functools import partial
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    TypeVar,
    overload,
)

from ._dependency import (
    Dependency,
    FactoryDependency,
    InstanceDependency,
    LateInitDependency,
    MutableValueDependency,
    ProviderDependency,
    ValueDependency,
    _require_callable,
)
from ._scope import GLOBAL


T = TypeVar("T")

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._dependency import InitContext

    Body = Callable[[Any, InitContext], T]


class Declaration(Generic[T]):
    """A named dependency declared on a `Locator` subclass.

    Reading the attribute from a locator instance returns that instance's
    `Dependency` handle, built on first access and reused afterwards.
    """

    def __init__(self, build: Callable[[Locator], Dependency[T]], *, eager: bool = False) -> None:
        self._build = build
        self.eager = eager
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @overload
    def __get__(self, instance: None, owner: type | None = ...) -> Declaration[T]: ...

    @overload
    def __get__(self, instance: Locator, owner: type | None = ...) -> Dependency[T]: ...

    def __get__(self, instance: Locator | None, owner: type | None = None) -> Declaration[T] | Dependency[T]:
        if instance is None:
            return self
        return instance._handle(self)  # noqa: SLF001

    def build(self, locator: Locator) -> Dependency[T]:
        return self._build(locator)

    def __repr__(self) -> str:
        return f"<Declaration {self.name!r}>"


class Locator:
    """Base class for a module of named dependencies.

    Example:
      class Services(Locator):
          config = value_of({"dsn": "sqlite://"})
          current_user = late_init_of()

          @instance_of
          def database(self, ctx):
              return Database(ctx.inject(self.config)["dsn"])

          @factory_of(use_cache=False)
          def query(self, ctx):
              return Query(ctx.inject(self.database))

      services = Services()
      with DIScope() as scope:
          db = services.database.resolve(scope)

    Each locator instance owns its handles. Handles borrowed from another
    locator are plain attributes assigned in `__init__`; `lazy=False`
    instances are built at the end of `Locator.__init__`, so set any state
    their bodies use before calling `super().__init__()`.
    """

    def __init__(self) -> None:
        self._registry: dict[str, Dependency[Any]] = {}
        self._lock = threading.RLock()

        for name, declaration in self._declarations().items():
            if declaration.eager:
                getattr(self, name).resolve(GLOBAL)

    @classmethod
    def _declarations(cls) -> dict[str, Declaration[Any]]:
        found: dict[str, Declaration[Any]] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, Declaration):
                    found[name] = attr
                else:
                    # a subclass replaced the declaration with something else
                    found.pop(name, None)
        return found

    def _handle(self, declaration: Declaration[T]) -> Dependency[T]:
        name = declaration.name
        if name is None:
            msg = "Declarations must be assigned as class attributes of a Locator"
            raise TypeError(msg)

        with self._lock:
            dependency = self._registry.get(name)
            if dependency is None:
                dependency = declaration.build(self)
                dependency.name = f"{type(self).__name__}.{name}"
                self._registry[name] = dependency
            return dependency

    def dependencies(self) -> dict[str, Dependency[Any]]:
        """Return every declared handle by name, in declaration order."""
        return {name: getattr(self, name) for name in self._declarations()}


def value_of(value: T) -> Declaration[T]:
    """Declare a constant: the same value in every scope."""
    return Declaration(lambda _: ValueDependency(value))


def mutable_value_of(value: T) -> Declaration[T]:
    """Declare a value that can be replaced later with `set_value`."""
    return Declaration(lambda _: MutableValueDependency(value))


def provider_of(fn: Callable[[Any], T]) -> Declaration[T]:
    """Declare a method `fn(self)` called on every resolution."""
    _require_callable(fn, "Provider")
    return Declaration(lambda locator: ProviderDependency(partial(fn, locator)))


def late_init_of() -> Declaration[Any]:
    """Declare a dependency whose provider is supplied later with `set_provider`."""
    return Declaration(lambda _: LateInitDependency())


@overload
def factory_of(fn: Body[T], *, use_cache: bool = ...) -> Declaration[T]: ...


@overload
def factory_of(fn: None = ..., *, use_cache: bool = ...) -> Callable[[Body[T]], Declaration[T]]: ...


def factory_of(
    fn: Body[T] | None = None,
    *,
    use_cache: bool = True,
) -> Declaration[T] | Callable[[Body[T]], Declaration[T]]:
    """Declare a factory method `fn(self, ctx)`.

    With `use_cache` (default) one value is built per scope; otherwise every
    resolution builds a new one. Usable as `@factory_of` or
    `@factory_of(use_cache=False)`.
    """

    def decorate(body: Body[T]) -> Declaration[T]:
        _require_callable(body, "Factory")
        return Declaration(lambda locator: FactoryDependency(partial(body, locator), use_cache=use_cache))

    if fn is None:
        return decorate
    return decorate(fn)


@overload
def instance_of(fn: Body[T], *, keep_alive: bool = ..., lazy: bool = ...) -> Declaration[T]: ...


@overload
def instance_of(
    fn: None = ..., *, keep_alive: bool = ..., lazy: bool = ...
) -> Callable[[Body[T]], Declaration[T]]: ...


def instance_of(
    fn: Body[T] | None = None,
    *,
    keep_alive: bool = False,
    lazy: bool = True,
) -> Declaration[T] | Callable[[Body[T]], Declaration[T]]:
    """Declare a shared instance built by `fn(self, ctx)`.

    - keep_alive=False: dropped once every scope holding it has closed.
    - keep_alive=True: kept once built.
    - lazy=False: built when the locator is created; implies keep_alive.
    """

    def decorate(body: Body[T]) -> Declaration[T]:
        _require_callable(body, "Factory")
        return Declaration(
            lambda locator: InstanceDependency(partial(body, locator), keep_alive=keep_alive or not lazy),
            eager=not lazy,
        )

    if fn is None:
        return decorate
    return decorate(fn)
