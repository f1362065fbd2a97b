from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from dicrate.container import Container

Overrides: TypeAlias = Mapping[str, Any]
"""Explicit parameter values keyed by parameter name."""

BindingFactory: TypeAlias = Callable[["Container", Overrides], Any]
"""A factory registered with ``bind``/``singleton``: ``factory(container, overrides)``."""

ContextualFactory: TypeAlias = Callable[["Container"], Any]
"""A factory registered as a contextual override: ``factory(container)``."""


@dataclass(frozen=True, slots=True)
class FactoryConcrete:
    """Build by calling a user factory; no reflection is involved."""

    factory: BindingFactory | ContextualFactory


@dataclass(frozen=True, slots=True)
class TypeConcrete:
    """Build by introspecting and instantiating ``target``.

    ``target`` is a class, or a string naming one by dotted import path.
    """

    target: Any


Concrete: TypeAlias = FactoryConcrete | TypeConcrete


def is_factory(value: object) -> bool:
    """Return true when value should be called rather than instantiated.

    Classes and strings name types; every other callable is a factory.
    """
    if isinstance(value, str) or inspect.isclass(value):
        return False
    return callable(value)


def to_concrete(value: Any) -> Concrete:
    """Wrap a registration value into its concrete variant."""
    if isinstance(value, FactoryConcrete | TypeConcrete):
        return value
    if is_factory(value):
        return FactoryConcrete(factory=value)
    return TypeConcrete(target=value)


__all__ = [
    "BindingFactory",
    "Concrete",
    "ContextualFactory",
    "FactoryConcrete",
    "Overrides",
    "TypeConcrete",
    "is_factory",
    "to_concrete",
]
