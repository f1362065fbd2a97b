from __future__ import annotations

import inspect
import sys
import threading
import types
from collections.abc import Callable
from dataclasses import dataclass
from inspect import Parameter
from typing import Annotated, Any, Protocol, Union, get_args, get_origin, get_type_hints

from dicrate.type_checks import (
    is_abstract_class,
    is_builtin_class,
    is_protocol_class,
    is_runtime_class,
)

_NONE_TYPE = type(None)
_VARIADIC_KINDS = (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)


@dataclass(frozen=True, slots=True)
class ParameterInfo:
    """Information about a constructor/function parameter.

    ``declared_type`` is a non-builtin class, a string identifier taken from an
    unresolvable forward reference, or ``None`` when the parameter is untyped,
    typed with a builtin, or typed with a union the resolver cannot pick from.
    """

    name: str
    kind: inspect._ParameterKind = Parameter.POSITIONAL_OR_KEYWORD
    declared_type: Any = None
    is_nullable: bool = False
    has_default: bool = False
    default: Any = None

    @property
    def is_variadic(self) -> bool:
        return self.kind in _VARIADIC_KINDS

    def empty_variadic_value(self) -> tuple[()] | dict[str, Any]:
        """Return the value substituted for a variadic parameter with nothing to bind."""
        return {} if self.kind is Parameter.VAR_KEYWORD else ()


class TypeIntrospector(Protocol):
    """Capability the resolver consumes to look inside types and callables."""

    def is_instantiable(self, concrete: type[Any]) -> bool:
        """Return true when ``concrete`` is a class that can be constructed."""
        ...

    def constructor_parameters(self, concrete: type[Any]) -> tuple[ParameterInfo, ...] | None:
        """Return constructor parameters, or ``None`` when no constructor is declared."""
        ...

    def callable_parameters(self, func: Callable[..., Any]) -> tuple[ParameterInfo, ...]:
        """Return the parameters of a function, bound method or callable object."""
        ...

    def clear_cache(self) -> None:
        """Drop any cached introspection results."""
        ...


class SignatureIntrospector:
    """Introspect classes and callables with ``inspect.signature`` and type hints.

    Constructor parameter lists are cached per class; ``clear_cache`` drops
    them (the container calls it on ``flush``).
    """

    def __init__(self) -> None:
        self._constructor_cache: dict[type[Any], tuple[ParameterInfo, ...] | None] = {}
        self._lock = threading.Lock()

    def is_instantiable(self, concrete: type[Any]) -> bool:
        return (
            is_runtime_class(concrete)
            and not is_abstract_class(concrete)
            and not is_protocol_class(concrete)
        )

    def constructor_parameters(self, concrete: type[Any]) -> tuple[ParameterInfo, ...] | None:
        """Return the constructor parameters of ``concrete``.

        Raises:
            ValueError: The signature of ``concrete`` cannot be determined.
            TypeError: ``concrete`` is not a supported callable.

        """
        try:
            return self._constructor_cache[concrete]
        except KeyError:
            pass

        if concrete.__init__ is object.__init__ and concrete.__new__ is object.__new__:
            parameters = None
        else:
            signature = inspect.signature(concrete)
            hints = self._constructor_hints(concrete)
            parameters = self._describe(signature, hints, self._namespace_of(concrete))

        with self._lock:
            self._constructor_cache[concrete] = parameters
        return parameters

    def callable_parameters(self, func: Callable[..., Any]) -> tuple[ParameterInfo, ...]:
        signature = inspect.signature(func)
        hint_source = func
        if not inspect.isroutine(func) and not inspect.isclass(func):
            hint_source = type(func).__call__
        hints = self._safe_type_hints(hint_source)
        return self._describe(signature, hints, getattr(hint_source, "__globals__", {}))

    def clear_cache(self) -> None:
        with self._lock:
            self._constructor_cache.clear()

    def _constructor_hints(self, concrete: type[Any]) -> dict[str, Any]:
        hints: dict[str, Any] = {}
        for member_name in ("__init__", "__new__"):
            member = getattr(concrete, member_name)
            for name, hint in self._safe_type_hints(member).items():
                hints.setdefault(name, hint)
        return hints

    def _safe_type_hints(self, target: Any) -> dict[str, Any]:
        try:
            return get_type_hints(target, include_extras=True)
        except (AttributeError, NameError, TypeError):
            return {}

    def _namespace_of(self, concrete: type[Any]) -> dict[str, Any]:
        module = sys.modules.get(concrete.__module__)
        return vars(module) if module is not None else {}

    def _describe(
        self,
        signature: inspect.Signature,
        hints: dict[str, Any],
        namespace: dict[str, Any],
    ) -> tuple[ParameterInfo, ...]:
        described = []
        for parameter in signature.parameters.values():
            annotation = hints.get(parameter.name, parameter.annotation)
            if isinstance(annotation, str):
                annotation = self._evaluate_forward_ref(parameter.name, annotation, namespace)
            declared_type, is_nullable = self._normalize_annotation(annotation)
            has_default = parameter.default is not Parameter.empty
            described.append(
                ParameterInfo(
                    name=parameter.name,
                    kind=parameter.kind,
                    declared_type=declared_type,
                    is_nullable=is_nullable,
                    has_default=has_default,
                    default=parameter.default if has_default else None,
                ),
            )
        return tuple(described)

    def _evaluate_forward_ref(
        self,
        name: str,
        annotation: str,
        namespace: dict[str, Any],
    ) -> Any:
        holder = types.SimpleNamespace(__annotations__={name: annotation})
        try:
            return get_type_hints(holder, globalns=namespace, include_extras=True)[name]
        except (AttributeError, NameError):
            # Unknown names stay usable as string identifiers.
            if all(part.isidentifier() for part in annotation.split(".")):
                return annotation
            return Parameter.empty

    def _normalize_annotation(self, annotation: Any) -> tuple[Any, bool]:
        if annotation in (Parameter.empty, None, _NONE_TYPE, Any):
            return None, False

        if get_origin(annotation) is Annotated:
            return self._normalize_annotation(get_args(annotation)[0])

        if get_origin(annotation) in (Union, types.UnionType):
            members = get_args(annotation)
            is_nullable = _NONE_TYPE in members
            non_none = [member for member in members if member is not _NONE_TYPE]
            if len(non_none) == 1:
                declared_type, _ = self._normalize_annotation(non_none[0])
                return declared_type, is_nullable
            return None, is_nullable

        if isinstance(annotation, str):
            return annotation, False

        if is_runtime_class(annotation) and not is_builtin_class(annotation):
            return annotation, False

        return None, False


__all__ = ["ParameterInfo", "SignatureIntrospector", "TypeIntrospector"]
