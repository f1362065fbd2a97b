from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable, Iterator
from typing import Any, ClassVar, TypeVar, overload

from dicrate.bindings import BindingFactory, FactoryConcrete, Overrides, is_factory, to_concrete
from dicrate.contextual import ContextualBindingBuilder
from dicrate.introspection import SignatureIntrospector, TypeIntrospector
from dicrate.invoker import CallableInvoker
from dicrate.lock_mode import LockMode
from dicrate.providers import ServiceProvider
from dicrate.registry import BindingRegistry
from dicrate.resolver import Resolver

T = TypeVar("T")
P = TypeVar("P", bound=ServiceProvider)

logger = logging.getLogger(__name__)


class TaggedServices:
    """Lazy view over the services registered under one tag.

    Every iteration resolves the members again, one at a time, so transient
    members are rebuilt while singletons come from the cache.
    """

    def __init__(self, container: Container, tag: Hashable) -> None:
        self._container = container
        self._tag = tag

    def __iter__(self) -> Iterator[Any]:
        for identifier in self._container.registry.tagged_identifiers(self._tag):
            yield self._container.resolve(identifier)

    def __len__(self) -> int:
        return len(self._container.registry.tagged_identifiers(self._tag))

    def __repr__(self) -> str:
        return f"TaggedServices(tag={self._tag!r})"


class Container:
    """Register bindings and resolve object graphs on demand.

    Identifiers are classes or string tokens. ``bind`` registers a transient
    binding (built on every resolution), ``singleton`` a binding built once and
    cached, ``instance`` a pre-built value. A binding target is either a
    factory called as ``factory(container, overrides)`` or a class that is
    auto-wired by introspecting its constructor.

    Unregistered classes are built directly, so only abstractions, factories
    and configuration values need explicit registrations.

    The container also behaves like a mapping: ``container[key]`` resolves,
    ``container[key] = value`` binds, ``key in container`` checks ``has`` and
    ``del container[key]`` removes every registration for the key.
    """

    _instance: ClassVar[Container | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        *,
        lock_mode: LockMode = LockMode.THREAD,
        introspector: TypeIntrospector | None = None,
    ) -> None:
        """Initialize an empty container.

        Args:
            lock_mode: Locking used around singleton construction. Keep
                ``LockMode.THREAD`` when the container is shared between
                threads; ``LockMode.NONE`` skips the lock bookkeeping.
            introspector: Capability used to read constructor and callable
                parameters. Defaults to ``SignatureIntrospector``.

        """
        self.registry = BindingRegistry()
        self._resolver = Resolver(
            registry=self.registry,
            container=self,
            introspector=introspector if introspector is not None else SignatureIntrospector(),
            lock_mode=lock_mode,
        )
        self._invoker = CallableInvoker(self._resolver)
        self._providers: list[ServiceProvider] = []
        self._booted = False

    # Global accessor

    @classmethod
    def get_instance(cls) -> Container:
        """Return the process-wide container, creating it on first use."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    Container._instance = cls()
        return Container._instance  # type: ignore[return-value]

    @classmethod
    def set_instance(cls, container: Container | None = None) -> Container | None:
        """Replace the process-wide container; ``None`` resets it."""
        with cls._instance_lock:
            Container._instance = container
        return container

    # Registration

    def bind(
        self,
        identifier: Any,
        concrete: BindingFactory | type | str | None = None,
    ) -> None:
        """Register a transient binding rebuilt on every resolution.

        Args:
            identifier: Key to register.
            concrete: Factory ``(container, overrides) -> instance`` or a class
                to auto-wire. Defaults to ``identifier`` itself.

        """
        self.registry.bind(identifier, concrete)

    def singleton(
        self,
        identifier: Any,
        concrete: BindingFactory | type | str | None = None,
    ) -> None:
        """Register a binding built once and cached until ``forget``/``flush``."""
        self.registry.singleton(identifier, concrete)

    def instance(self, identifier: Any, value: T) -> T:
        """Register a pre-built value; it shadows every other binding for ``identifier``."""
        self.registry.instance(identifier, value)
        return value

    def alias(self, abstract: Any, alias: Any) -> None:
        self.registry.alias(abstract, alias)

    def tag(self, identifiers: Any, tags: Any) -> None:
        """Add one or many identifiers to one or many tags."""
        self.registry.tag(identifiers, tags)

    def tagged(self, tag: Hashable) -> TaggedServices:
        return TaggedServices(self, tag)

    def when(self, *concretes: Any) -> ContextualBindingBuilder:
        """Start a contextual binding for one or more concrete classes.

        Dotted-path strings such as ``"app.reports.ReportService"`` are
        imported here, so they match builds of the class they name.

        Example::

            container.when(ReportService).needs(Storage).give(S3Storage)
            container.when(ReportService).needs("bucket").give(lambda c: "reports")

        """
        targets: list[Any] = []
        for concrete in concretes:
            if isinstance(concrete, list | tuple):
                targets.extend(concrete)
            else:
                targets.append(concrete)
        owners = [self._resolver.contextual_owner(target) for target in targets]
        return ContextualBindingBuilder(self.registry, owners)

    def add_contextual_override(self, concrete: Any, needs: Any, implementation: Any) -> None:
        self.registry.add_contextual_override(
            self._resolver.contextual_owner(concrete),
            needs,
            implementation,
        )

    def extend(self, identifier: Any, extender: Callable[[Any, Container], Any]) -> None:
        """Decorate the service with ``extender(instance, container)``.

        Applied right away when the service is already cached, otherwise after
        each construction and before caching.
        """
        self.registry.extend(identifier, extender, self)

    def on_resolving(self, identifier: Any, callback: Callable[[Container], Any]) -> None:
        self.registry.on_resolving(identifier, callback)

    def on_after_resolving(
        self,
        identifier: Any,
        callback: Callable[[Any, Container], Any],
    ) -> None:
        self.registry.on_after_resolving(identifier, callback)

    # Resolution

    @overload
    def resolve(self, identifier: type[T], overrides: Overrides | None = None) -> T: ...

    @overload
    def resolve(self, identifier: Any, overrides: Overrides | None = None) -> Any: ...

    def resolve(self, identifier: Any, overrides: Overrides | None = None) -> Any:
        """Resolve ``identifier`` into an instance.

        Args:
            identifier: Class or string token to resolve.
            overrides: Constructor or factory parameter values keyed by name.

        Raises:
            DICrateCircularDependencyError: The identifier depends on itself.
            DICrateBindingResolutionError: No value can be produced.
            DICrateNotInstantiableError: The concrete type cannot be constructed.

        """
        return self._resolver.resolve(identifier, overrides)

    def build(self, concrete: Any, overrides: Overrides | None = None) -> Any:
        """Build ``concrete`` directly, bypassing bindings, caches and callbacks."""
        return self._resolver.build(to_concrete(concrete), overrides)

    def invoke(self, target: Any, overrides: Overrides | None = None) -> Any:
        """Call ``target`` with its parameters resolved from the container.

        ``target`` is a callable, a ``(receiver, "method")`` pair or a
        ``"Type@method"`` string.
        """
        return self._invoker.invoke(target, overrides)

    def wrap(self, target: Any, overrides: Overrides | None = None) -> Callable[[], Any]:
        return self._invoker.wrap(target, overrides)

    def factory(self, identifier: Any) -> Callable[[], Any]:
        return self._invoker.factory(identifier)

    # Service providers

    def register_provider(self, provider: P | type[P]) -> P:
        """Run ``provider.register()``; boot it immediately if the container is booted."""
        if isinstance(provider, type):
            provider = provider(self)
        provider.register()
        self._providers.append(provider)
        if self._booted:
            provider.boot()
        return provider

    def boot(self) -> None:
        """Boot every registered provider once, in registration order."""
        if self._booted:
            return
        for provider in self._providers:
            provider.boot()
        self._booted = True
        logger.debug("Booted %d service providers", len(self._providers))

    @property
    def is_booted(self) -> bool:
        return self._booted

    # Introspection and cleanup

    def has(self, identifier: Any) -> bool:
        return self.registry.has(identifier)

    def is_resolved(self, identifier: Any) -> bool:
        return self.registry.is_resolved(identifier)

    def forget(self, identifier: Any) -> None:
        """Drop the cached instance; the binding stays registered."""
        self.registry.forget(identifier)

    def flush(self) -> None:
        """Clear every registration, cached instance and introspection cache."""
        self.registry.flush()
        self._resolver.clear()

    # Mapping sugar

    def __getitem__(self, identifier: Any) -> Any:
        return self.resolve(identifier)

    def __setitem__(self, identifier: Any, value: Any) -> None:
        if is_factory(value):
            self.bind(identifier, value)
        else:
            self.bind(identifier, FactoryConcrete(factory=lambda _container, _overrides: value))

    def __delitem__(self, identifier: Any) -> None:
        self.registry.remove(identifier)

    def __contains__(self, identifier: object) -> bool:
        return self.has(identifier)


__all__ = ["Container", "TaggedServices"]
