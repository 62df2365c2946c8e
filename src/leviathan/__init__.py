"""Scoped dependency injection.

This package provides a small dependency injection library for Python built
around scope lifetimes: dependencies are declared once and resolved into a
`DIScope`; whatever a scope keeps alive is released when the scope closes.

Exports:
- `DIScope`: Lifetime boundary with ordered close-actions. `GLOBAL` is the
  process-wide scope that never closes.
- `Dependency`: Provider contract, `resolve(scope)`. Strategies:
  `ValueDependency`, `MutableValueDependency`, `ProviderDependency`,
  `LateInitDependency`, `FactoryDependency` and `InstanceDependency`.
- `InitContext`: Handed to factory and instance bodies to resolve peers into
  the same scope.
- `Locator`: Base class for declaring named dependencies with `value_of`,
  `mutable_value_of`, `provider_of`, `factory_of`, `instance_of` and
  `late_init_of`.
"""

from ._dependency import (
    Dependency,
    FactoryDependency,
    InitContext,
    InstanceDependency,
    LateInitDependency,
    MutableValueDependency,
    ProviderDependency,
    ResolutionError,
    UninitializedDependencyError,
    ValueDependency,
)
from ._locator import (
    Declaration,
    Locator,
    factory_of,
    instance_of,
    late_init_of,
    mutable_value_of,
    provider_of,
    value_of,
)
from ._scope import GLOBAL, DIScope, ScopeKind


__all__ = [
    "GLOBAL",
    "DIScope",
    "Declaration",
    "Dependency",
    "FactoryDependency",
    "InitContext",
    "InstanceDependency",
    "LateInitDependency",
    "Locator",
    "MutableValueDependency",
    "ProviderDependency",
    "ResolutionError",
    "ScopeKind",
    "UninitializedDependencyError",
    "ValueDependency",
    "factory_of",
    "instance_of",
    "late_init_of",
    "mutable_value_of",
    "provider_of",
    "value_of",
]
