from __future__ import annotations

import importlib
import logging
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from inspect import Parameter
from typing import TYPE_CHECKING, Any

from dicrate.bindings import Concrete, FactoryConcrete, TypeConcrete
from dicrate.exceptions import (
    DICrateBindingResolutionError,
    DICrateCircularDependencyError,
    DICrateNotInstantiableError,
    DICrateUnresolvableParameterError,
    describe_identifier,
)
from dicrate.introspection import ParameterInfo, TypeIntrospector
from dicrate.lock_mode import LockMode
from dicrate.resolution_stack import ResolutionStack
from dicrate.type_checks import is_protocol_class, is_runtime_class

if TYPE_CHECKING:
    from dicrate.container import Container
    from dicrate.registry import BindingRegistry

logger = logging.getLogger(__name__)

_MISSING = object()
_EMPTY_OVERRIDES: Mapping[str, Any] = {}


@dataclass(frozen=True, slots=True)
class ParameterResolution:
    """Outcome of resolving one parameter: a value, or the error that stopped it."""

    parameter: ParameterInfo
    value: Any = None
    error: DICrateBindingResolutionError | None = None


class Resolver:
    """Turn identifiers into object graphs using the registry tables.

    ``resolve`` follows a fixed precedence: alias, cached instance, singleton
    binding, transient binding, then the identifier itself as a concrete type.
    Constructor parameters are resolved recursively through
    ``resolve_parameter``.
    """

    def __init__(
        self,
        *,
        registry: BindingRegistry,
        container: Container,
        introspector: TypeIntrospector,
        lock_mode: LockMode,
    ) -> None:
        self._registry = registry
        self._container = container
        self._introspector = introspector
        self._lock_mode = lock_mode
        self._stack = ResolutionStack(owner=self)
        self._singleton_locks: dict[Any, threading.RLock] = {}
        self._singleton_locks_lock = threading.Lock()
        # Wait-for graph between threads building singletons
        self._lock_owners: dict[Any, int] = {}
        self._lock_waits: dict[int, Any] = {}

    @property
    def introspector(self) -> TypeIntrospector:
        return self._introspector

    @property
    def resolution_stack(self) -> ResolutionStack:
        return self._stack

    def resolve(self, identifier: Any, overrides: Mapping[str, Any] | None = None) -> Any:
        """Resolve ``identifier`` into an instance.

        Args:
            identifier: Class or string token to resolve. One alias hop is followed.
            overrides: Constructor or factory parameter values keyed by name.

        Raises:
            DICrateCircularDependencyError: ``identifier`` is already being built.
            DICrateBindingResolutionError: No value can be produced.
            DICrateNotInstantiableError: The concrete type cannot be constructed.

        """
        if overrides is None:
            overrides = _EMPTY_OVERRIDES
        identifier = self._registry.canonical(identifier)

        cached = self._registry.instances.get(identifier, _MISSING)
        if cached is not _MISSING:
            return cached

        with self._stack.frame(identifier):
            if self._lock_mode is LockMode.THREAD and self._registry.is_singleton(identifier):
                with self._hold_singleton_lock(identifier):
                    # Double-check: another thread may have built it while we waited
                    cached = self._registry.instances.get(identifier, _MISSING)
                    if cached is not _MISSING:
                        return cached
                    return self._produce(identifier, overrides)
            return self._produce(identifier, overrides)

    def _produce(self, identifier: Any, overrides: Mapping[str, Any]) -> Any:
        for callback in tuple(self._registry.resolving_callbacks.get(identifier, ())):
            callback(self._container)

        concrete = self._registry.concrete_for(identifier)
        if concrete is None:
            concrete = TypeConcrete(target=identifier)

        instance = self.build(concrete, overrides)

        for extender in tuple(self._registry.extenders.get(identifier, ())):
            instance = extender(instance, self._container)

        for callback in tuple(self._registry.after_resolving_callbacks.get(identifier, ())):
            callback(instance, self._container)

        if self._registry.is_singleton(identifier):
            self._registry.instance(identifier, instance)
            logger.debug("Cached singleton %s", describe_identifier(identifier))

        return instance

    def build(self, concrete: Concrete, overrides: Mapping[str, Any] | None = None) -> Any:
        """Build ``concrete`` without consulting bindings or caches for it.

        Factories are called with ``(container, overrides)``. Types are
        introspected and constructed with resolved constructor arguments.
        """
        if overrides is None:
            overrides = _EMPTY_OVERRIDES

        if isinstance(concrete, FactoryConcrete):
            return concrete.factory(self._container, overrides)

        target = self._locate(concrete.target)
        if is_protocol_class(target):
            msg = f"Target [{describe_identifier(target)}] is an interface and has no binding."
            raise DICrateBindingResolutionError(target, msg)
        if not self._introspector.is_instantiable(target):
            raise DICrateNotInstantiableError(target)

        try:
            parameters = self._introspector.constructor_parameters(target)
        except (TypeError, ValueError) as error:
            raise DICrateNotInstantiableError(target) from error

        if parameters is None:
            return target()

        logger.debug("Building %s", describe_identifier(target))
        args, kwargs = self.resolve_arguments(parameters, overrides, owner=target)
        return target(*args, **kwargs)

    def resolve_arguments(
        self,
        parameters: Sequence[ParameterInfo],
        overrides: Mapping[str, Any],
        *,
        owner: Any = None,
        context: Any = None,
    ) -> tuple[list[Any], dict[str, Any]]:
        """Resolve ``parameters`` in order and lay them out as call arguments.

        Resolution stops at the first parameter that cannot be resolved and
        its error is raised.
        """
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        for parameter in parameters:
            resolution = self.resolve_parameter(
                parameter,
                overrides,
                owner=owner,
                context=context,
            )
            if resolution.error is not None:
                raise resolution.error

            if parameter.kind is Parameter.VAR_POSITIONAL:
                args.extend(resolution.value)
            elif parameter.kind is Parameter.VAR_KEYWORD:
                kwargs.update(resolution.value)
            elif parameter.kind is Parameter.KEYWORD_ONLY:
                kwargs[parameter.name] = resolution.value
            else:
                args.append(resolution.value)

        return args, kwargs

    def resolve_parameter(
        self,
        parameter: ParameterInfo,
        overrides: Mapping[str, Any],
        *,
        owner: Any = None,
        context: Any = None,
    ) -> ParameterResolution:
        """Resolve one parameter; the first matching rule wins.

        1. explicit override by parameter name
        2. contextual override for ``(owner, name)``
        3. contextual override for ``(owner, declared type)``
        4. the declared type, falling back to the default, then to ``None`` for
           optional types when it cannot be resolved
        5. empty value for ``*args`` / ``**kwargs``
        6. the default value

        ``owner`` is the class being built, or ``None`` for plain callables
        (contextual overrides are then skipped). ``context`` names the callable
        in error messages when there is no owner.
        """
        name = parameter.name
        if name in overrides:
            return ParameterResolution(parameter, value=overrides[name])

        typed = (
            parameter.declared_type is not None and parameter.kind is not Parameter.VAR_KEYWORD
        )

        if owner is not None:
            override = self._registry.contextual_override(owner, name)
            if override is None and typed:
                override = self._registry.contextual_override(owner, parameter.declared_type)
            if override is not None:
                return self._found(parameter, self._contextual_value(override))

        if typed:
            value, error = self._attempt(parameter.declared_type)
            if error is None:
                return self._found(parameter, value)
            if parameter.has_default:
                logger.debug("Using default for parameter %r: %s", name, error)
                return ParameterResolution(parameter, value=parameter.default)
            if parameter.is_nullable:
                logger.debug("Using None for optional parameter %r: %s", name, error)
                return self._found(parameter, None)
            return ParameterResolution(parameter, error=error)

        if parameter.is_variadic:
            return ParameterResolution(parameter, value=parameter.empty_variadic_value())

        if parameter.has_default:
            return ParameterResolution(parameter, value=parameter.default)

        return ParameterResolution(
            parameter,
            error=DICrateUnresolvableParameterError(
                name,
                owner if owner is not None else context,
            ),
        )

    def clear(self) -> None:
        """Drop introspection results and per-identifier locks."""
        self._introspector.clear_cache()
        with self._singleton_locks_lock:
            self._singleton_locks.clear()

    def _attempt(self, identifier: Any) -> tuple[Any, DICrateBindingResolutionError | None]:
        try:
            return self.resolve(identifier), None
        except DICrateBindingResolutionError as error:
            return _MISSING, error

    def _found(self, parameter: ParameterInfo, value: Any) -> ParameterResolution:
        if parameter.kind is Parameter.VAR_POSITIONAL:
            value = (value,)
        return ParameterResolution(parameter, value=value)

    def _contextual_value(self, override: Concrete) -> Any:
        if isinstance(override, FactoryConcrete):
            return override.factory(self._container)
        return self.resolve(override.target)

    def contextual_owner(self, concrete: Any) -> Any:
        """Return the key contextual overrides for ``concrete`` are stored under.

        Overrides are looked up by the class being built, so dotted-path
        strings are imported up front. Other values are kept as given.
        """
        if isinstance(concrete, str) and "." in concrete:
            return self._locate(concrete)
        return concrete

    def _locate(self, target: Any) -> type[Any]:
        if is_runtime_class(target):
            return target
        if not isinstance(target, str):
            raise DICrateBindingResolutionError(target)

        module_name, _, attribute = target.rpartition(".")
        if not module_name:
            raise DICrateBindingResolutionError(target)
        try:
            module = importlib.import_module(module_name)
        except ImportError as error:
            raise DICrateBindingResolutionError(target) from error

        located = getattr(module, attribute, _MISSING)
        if located is _MISSING:
            raise DICrateBindingResolutionError(target)
        if not is_runtime_class(located):
            raise DICrateNotInstantiableError(target)
        return located

    def _get_singleton_lock(self, identifier: Any) -> threading.RLock:
        """Get or create a lock for singleton construction of the given identifier.

        Uses double-checked locking to minimize lock contention.
        """
        lock = self._singleton_locks.get(identifier)
        if lock is None:
            with self._singleton_locks_lock:
                lock = self._singleton_locks.get(identifier)
                if lock is None:
                    lock = self._singleton_locks[identifier] = threading.RLock()
        return lock

    @contextmanager
    def _hold_singleton_lock(self, identifier: Any) -> Iterator[None]:
        """Hold the construction lock of ``identifier``, refusing waits that close a cycle.

        Raises:
            DICrateCircularDependencyError: The lock is held by a thread that is
                itself waiting, directly or transitively, on this thread.

        """
        lock = self._get_singleton_lock(identifier)
        thread_id = threading.get_ident()

        with self._singleton_locks_lock:
            self._check_lock_wait(identifier, thread_id)
            self._lock_waits[thread_id] = identifier
        try:
            lock.acquire()
        except BaseException:
            with self._singleton_locks_lock:
                self._lock_waits.pop(thread_id, None)
            raise
        with self._singleton_locks_lock:
            self._lock_waits.pop(thread_id, None)
            self._lock_owners[identifier] = thread_id

        try:
            yield
        finally:
            with self._singleton_locks_lock:
                self._lock_owners.pop(identifier, None)
            lock.release()

    def _check_lock_wait(self, identifier: Any, thread_id: int) -> None:
        # Caller holds _singleton_locks_lock.
        waited_on: list[Any] = []
        owner = self._lock_owners.get(identifier)
        seen: set[int] = set()
        while owner is not None and owner not in seen:
            if owner == thread_id:
                if waited_on:
                    *intermediate, closing = waited_on
                    raise DICrateCircularDependencyError(
                        closing,
                        [*self._stack.current(), *intermediate],
                    )
                return
            seen.add(owner)
            next_identifier = self._lock_waits.get(owner, _MISSING)
            if next_identifier is _MISSING:
                return
            waited_on.append(next_identifier)
            owner = self._lock_owners.get(next_identifier)


__all__ = ["ParameterResolution", "Resolver"]
