from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from functools import partial
from typing import TYPE_CHECKING, Generic, TypeVar

from ._scope import GLOBAL


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ._scope import DIScope


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Marks an empty value slot; `None` is a legitimate instance.
_MISSING = object()


class ResolutionError(RuntimeError):
    pass


class UninitializedDependencyError(ResolutionError):
    pass


def _require_callable(obj: object, what: str) -> None:
    if not callable(obj):
        msg = f"{what} must be callable, got {type(obj).__name__}"
        raise TypeError(msg)


class InitContext:
    """Passed to factory and instance bodies.

    Resolves peer dependencies into the scope the body is building for, so a
    whole graph ends up tied to one scope.
    """

    def __init__(self, scope: DIScope) -> None:
        self._scope = scope

    @property
    def scope(self) -> DIScope:
        return self._scope

    def inject(self, dependency: Dependency[T]) -> T:
        return dependency.resolve(self._scope)

    def lazy(self, dependency: Dependency[T]) -> Callable[[], T]:
        """Return an accessor that resolves `dependency` into this scope when called.

        Use it for cyclic graphs: capture the accessor in the body and call it
        only once both sides have been built.
        """
        return partial(dependency.resolve, self._scope)


class Dependency(ABC, Generic[T]):
    """Provides a value of type T for any scope.

    A dependency is created once and shared across every scope it is resolved
    in. `resolve` never requires the scope to be registered beforehand.
    """

    name: str | None = None

    def __init__(self) -> None:
        self._override: Callable[[], T] | None = None

    def resolve(self, scope: DIScope) -> T:
        override = self._override
        if override is not None:
            return override()
        return self._resolve(scope)

    @abstractmethod
    def _resolve(self, scope: DIScope) -> T: ...

    def get(self) -> T:
        """Resolve into the global scope."""
        return self.resolve(GLOBAL)

    def override_with(self, provider: Callable[[], T] | None) -> None:
        """Replace resolution with `provider()` for every scope; `None` restores it.

        Intended for tests. While overridden, the strategy is bypassed entirely:
        nothing is cached and no scope is registered.
        """
        if provider is not None:
            _require_callable(provider, "Override provider")
        self._override = provider
        logger.debug("%s override for %r", "Installed" if provider is not None else "Removed", self)

    @contextmanager
    def overridden(self, provider: Callable[[], T]) -> Iterator[Dependency[T]]:
        previous = self._override
        self.override_with(provider)
        try:
            yield self
        finally:
            self.override_with(previous)

    def __repr__(self) -> str:
        if self.name is None:
            return f"<{type(self).__name__} at {id(self):#x}>"
        return f"<{type(self).__name__} {self.name!r}>"


class ValueDependency(Dependency[T]):
    """Always provides the same value."""

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    def _resolve(self, scope: DIScope) -> T:
        return self._value


class MutableValueDependency(Dependency[T]):
    """Provides the current value; `set_value` changes it for every scope."""

    def __init__(self, value: T) -> None:
        super().__init__()
        self._value = value

    @property
    def value(self) -> T:
        return self._value

    def set_value(self, value: T) -> None:
        self._value = value

    def _resolve(self, scope: DIScope) -> T:
        return self._value


class _ProviderBacked(Dependency[T]):
    def __init__(self, provider: Callable[[], T] | None) -> None:
        super().__init__()
        self._provider = provider

    def set_provider(self, provider: Callable[[], T]) -> None:
        _require_callable(provider, "Provider")
        self._provider = provider


class ProviderDependency(_ProviderBacked[T]):
    """Calls the current zero-argument provider on every resolution."""

    def __init__(self, provider: Callable[[], T]) -> None:
        _require_callable(provider, "Provider")
        super().__init__(provider)

    def _resolve(self, scope: DIScope) -> T:
        return self._provider()  # type: ignore[misc]


class LateInitDependency(_ProviderBacked[T]):
    """A provider-backed dependency whose provider is supplied after declaration.

    Resolving it before `set_provider` raises `UninitializedDependencyError`.
    """

    def __init__(self) -> None:
        super().__init__(None)

    def _resolve(self, scope: DIScope) -> T:
        provider = self._provider
        if provider is None:
            msg = f"{self!r} was resolved before a provider was set"
            raise UninitializedDependencyError(msg)
        return provider()


class FactoryDependency(Dependency[T]):
    """Builds values with `factory(ctx)`.

    With `use_cache` (default) the value is built once per scope and dropped
    when that scope closes. Without it a new value is built on every call.
    """

    def __init__(self, factory: Callable[[InitContext], T], *, use_cache: bool = True) -> None:
        _require_callable(factory, "Factory")
        super().__init__()
        self._factory = factory
        self._use_cache = use_cache
        # id(scope) -> (scope, value); the scope is kept so its id stays unique
        self._cache: dict[int, tuple[DIScope, T]] = {}
        self._lock = threading.RLock()

    @property
    def use_cache(self) -> bool:
        return self._use_cache

    def _resolve(self, scope: DIScope) -> T:
        if not self._use_cache:
            return self._factory(InitContext(scope))

        key = id(scope)
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                return entry[1]

            value = self._factory(InitContext(scope))
            self._cache[key] = (scope, value)
            scope.on_close(partial(self._evict, key))
            return value

    def _evict(self, key: int) -> None:
        with self._lock:
            if self._cache.pop(key, None) is not None:
                logger.debug("Evicted cached value of %r", self)


class InstanceDependency(Dependency[T]):
    """A single instance shared by every scope that resolves it.

    With `keep_alive=False` (default) each resolving scope holds the instance;
    once the last holder closes, the instance is dropped and the next
    resolution builds a fresh one. With `keep_alive=True` the instance is
    built on first resolution and kept for the life of the dependency.
    """

    def __init__(self, factory: Callable[[InitContext], T], *, keep_alive: bool = False) -> None:
        _require_callable(factory, "Factory")
        super().__init__()
        self._factory = factory
        self._keep_alive = keep_alive
        self._instance: T | object = _MISSING
        self._holders: dict[int, DIScope] = {}
        self._lock = threading.RLock()

    @property
    def keep_alive(self) -> bool:
        return self._keep_alive

    @property
    def has_instance(self) -> bool:
        return self._instance is not _MISSING

    def _resolve(self, scope: DIScope) -> T:
        with self._lock:
            if self._instance is _MISSING:
                self._instance = self._factory(InitContext(scope))
                logger.debug("Built instance of %r", self)

            key = id(scope)
            if not self._keep_alive and key not in self._holders:
                self._holders[key] = scope
                scope.on_close(partial(self._release, key))

            return self._instance  # type: ignore[return-value]

    def _release(self, key: int) -> None:
        with self._lock:
            self._holders.pop(key, None)
            if not self._holders and self._instance is not _MISSING:
                self._instance = _MISSING
                logger.debug("Released instance of %r after its last scope closed", self)
