from __future__ import annotations

import builtins
import inspect
import types
from typing import Any, TypeGuard


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations.

    Args:
        candidate: Value being checked for eligibility or runtime type constraints.

    """
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_builtin_class(candidate: type[Any]) -> bool:
    """Return true for classes defined by the interpreter (``int``, ``str``, ``list``...)."""
    return candidate.__module__ == builtins.__name__


def is_protocol_class(candidate: type[Any]) -> bool:
    """Return true for ``typing.Protocol`` subclasses, which act as interfaces."""
    return bool(getattr(candidate, "_is_protocol", False))


def is_abstract_class(candidate: type[Any]) -> bool:
    """Return true when the class declares unimplemented abstract methods."""
    return inspect.isabstract(candidate)


__all__ = [
    "is_abstract_class",
    "is_builtin_class",
    "is_protocol_class",
    "is_runtime_class",
]
