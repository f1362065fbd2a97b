from __future__ import annotations

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from dicrate.exceptions import DICrateInvalidRegistrationError
from dicrate.resolver import Resolver

METHOD_SEPARATOR = "@"


class CallableInvoker:
    """Call functions and methods with dependencies resolved from the container.

    Accepted targets:

    - any callable (function, bound method, callable object)
    - a ``(receiver, "method")`` pair
    - a ``"Type@method"`` string; ``Type`` is resolved through the container
    """

    def __init__(self, resolver: Resolver) -> None:
        self._resolver = resolver

    def invoke(self, target: Any, overrides: Mapping[str, Any] | None = None) -> Any:
        func, owner = self._normalize(target)
        parameters = self._resolver.introspector.callable_parameters(func)
        args, kwargs = self._resolver.resolve_arguments(
            parameters,
            overrides or {},
            owner=owner,
            context=func,
        )
        return func(*args, **kwargs)

    def wrap(
        self,
        target: Any,
        overrides: Mapping[str, Any] | None = None,
    ) -> Callable[[], Any]:
        """Return a zero-argument callable that invokes ``target`` when called."""
        frozen = dict(overrides or {})

        def invoke_wrapped() -> Any:
            return self.invoke(target, frozen)

        return invoke_wrapped

    def factory(self, identifier: Any) -> Callable[[], Any]:
        """Return a zero-argument callable that resolves ``identifier`` when called."""

        def resolve_deferred() -> Any:
            return self._resolver.resolve(identifier)

        return resolve_deferred

    def _normalize(self, target: Any) -> tuple[Callable[..., Any], Any]:
        if isinstance(target, str):
            target = self._split_method_string(target)

        if isinstance(target, tuple):
            receiver, method_name = self._unpack_pair(target)
            return getattr(receiver, method_name), _owner_of(receiver)

        if not callable(target):
            msg = (
                f"Cannot invoke {target!r}: expected a callable, "
                "a (receiver, 'method') pair or a 'Type@method' string."
            )
            raise DICrateInvalidRegistrationError(msg)

        if inspect.ismethod(target):
            return target, _owner_of(target.__self__)
        return target, None

    def _split_method_string(self, target: str) -> tuple[Any, str]:
        identifier, separator, method_name = target.partition(METHOD_SEPARATOR)
        if not separator or not identifier or not method_name:
            msg = f"Cannot invoke {target!r}: expected the 'Type@method' form."
            raise DICrateInvalidRegistrationError(msg)
        return self._resolver.resolve(identifier), method_name

    def _unpack_pair(self, target: tuple[Any, ...]) -> tuple[Any, str]:
        if len(target) != 2 or not isinstance(target[1], str):  # noqa: PLR2004
            msg = f"Cannot invoke {target!r}: expected a (receiver, 'method') pair."
            raise DICrateInvalidRegistrationError(msg)
        return target[0], target[1]


def _owner_of(receiver: Any) -> Any:
    return receiver if inspect.isclass(receiver) else type(receiver)


__all__ = ["CallableInvoker"]
