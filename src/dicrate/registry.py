from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from typing import TYPE_CHECKING, Any

from dicrate.bindings import Concrete, to_concrete
from dicrate.exceptions import DICrateInvalidRegistrationError

if TYPE_CHECKING:
    from dicrate.container import Container

logger = logging.getLogger(__name__)

_MISSING = object()


class BindingRegistry:
    """Hold every registration table of a container.

    Identifiers are hashable keys, usually classes or string tokens. The
    registry only records state; building objects is the resolver's job.
    Mutations are serialised with a re-entrant lock, reads are plain dict
    lookups.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.bindings: dict[Any, Concrete] = {}
        self.singletons: dict[Any, Concrete] = {}
        self.instances: dict[Any, Any] = {}
        self.aliases: dict[Any, Any] = {}
        self.tags: dict[Hashable, list[Any]] = {}
        self.contextual: dict[Any, dict[Any, Concrete]] = {}
        self.extenders: dict[Any, list[Callable[[Any, Container], Any]]] = {}
        self.resolving_callbacks: dict[Any, list[Callable[[Container], Any]]] = {}
        self.after_resolving_callbacks: dict[Any, list[Callable[[Any, Container], Any]]] = {}

    # Registration

    def bind(self, identifier: Any, concrete: Any = None) -> None:
        with self._lock:
            self.bindings[identifier] = to_concrete(identifier if concrete is None else concrete)

    def singleton(self, identifier: Any, concrete: Any = None) -> None:
        with self._lock:
            self.singletons[identifier] = to_concrete(
                identifier if concrete is None else concrete,
            )

    def instance(self, identifier: Any, value: Any) -> None:
        with self._lock:
            self.instances[identifier] = value

    def alias(self, abstract: Any, alias: Any) -> None:
        """Make ``alias`` resolve to ``abstract``. Only this single hop is followed."""
        with self._lock:
            self.aliases[alias] = abstract

    def tag(self, identifiers: Any, tags: Any) -> None:
        """Append each identifier to each tag group, in order."""
        identifier_list = _as_list(identifiers)
        tag_list = _as_list(tags)
        with self._lock:
            for identifier in identifier_list:
                for tag in tag_list:
                    self.tags.setdefault(tag, []).append(identifier)

    def tagged_identifiers(self, tag: Hashable) -> tuple[Any, ...]:
        return tuple(self.tags.get(tag, ()))

    def add_contextual_override(self, concrete: Any, needs: Any, implementation: Any) -> None:
        """Use ``implementation`` for dependency ``needs`` while building ``concrete``.

        ``needs`` is a parameter name or a declared type. ``implementation`` is
        a factory called with the container, or an identifier to resolve.
        """
        with self._lock:
            self.contextual.setdefault(concrete, {})[needs] = to_concrete(implementation)

    def contextual_override(self, concrete: Any, needs: Any) -> Concrete | None:
        overrides = self.contextual.get(concrete)
        if overrides is None:
            return None
        return overrides.get(needs)

    def extend(
        self,
        identifier: Any,
        extender: Callable[[Any, Container], Any],
        container: Container,
    ) -> None:
        """Queue ``extender`` for ``identifier`` or apply it now to a cached instance."""
        _require_callable(extender, "Extender")
        with self._lock:
            identifier = self.canonical(identifier)
            cached = self.instances.get(identifier, _MISSING)
            if cached is _MISSING:
                self.extenders.setdefault(identifier, []).append(extender)
                return
            self.instances[identifier] = extender(cached, container)

    def on_resolving(self, identifier: Any, callback: Callable[[Container], Any]) -> None:
        _require_callable(callback, "Resolving callback")
        with self._lock:
            self.resolving_callbacks.setdefault(identifier, []).append(callback)

    def on_after_resolving(
        self,
        identifier: Any,
        callback: Callable[[Any, Container], Any],
    ) -> None:
        _require_callable(callback, "After resolving callback")
        with self._lock:
            self.after_resolving_callbacks.setdefault(identifier, []).append(callback)

    # Lookups

    def canonical(self, identifier: Any) -> Any:
        return self.aliases.get(identifier, identifier)

    def concrete_for(self, identifier: Any) -> Concrete | None:
        """Return the singleton binding, else the transient binding, else ``None``."""
        concrete = self.singletons.get(identifier)
        if concrete is None:
            concrete = self.bindings.get(identifier)
        return concrete

    def has(self, identifier: Any) -> bool:
        return (
            identifier in self.bindings
            or identifier in self.singletons
            or identifier in self.instances
        )

    def is_resolved(self, identifier: Any) -> bool:
        return identifier in self.instances

    def is_singleton(self, identifier: Any) -> bool:
        return identifier in self.singletons

    # Cleanup

    def forget(self, identifier: Any) -> None:
        with self._lock:
            self.instances.pop(identifier, None)

    def remove(self, identifier: Any) -> None:
        """Drop binding, singleton and instance entries for ``identifier``."""
        with self._lock:
            self.bindings.pop(identifier, None)
            self.singletons.pop(identifier, None)
            self.instances.pop(identifier, None)

    def flush(self) -> None:
        with self._lock:
            self.bindings.clear()
            self.singletons.clear()
            self.instances.clear()
            self.aliases.clear()
            self.tags.clear()
            self.contextual.clear()
            self.extenders.clear()
            self.resolving_callbacks.clear()
            self.after_resolving_callbacks.clear()
        logger.debug("Flushed binding registry %r", self)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple | set | frozenset):
        return list(value)
    return [value]


def _require_callable(value: object, what: str) -> None:
    if not callable(value):
        msg = f"{what} must be callable, got {value!r}."
        raise DICrateInvalidRegistrationError(msg)


__all__ = ["BindingRegistry"]
