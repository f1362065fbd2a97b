from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typing_extensions import Self

from dicrate.exceptions import DICrateInvalidRegistrationError

if TYPE_CHECKING:
    from dicrate.registry import BindingRegistry

_UNSET = object()


class ContextualBindingBuilder:
    """Fluent helper behind ``container.when(Concrete).needs(key).give(impl)``.

    ``key`` is either a constructor parameter name or a declared parameter
    type. ``impl`` is a factory called with the container, or an identifier
    resolved through the container.
    """

    def __init__(self, registry: BindingRegistry, concretes: list[Any]) -> None:
        self._registry = registry
        self._concretes = concretes
        self._needs: Any = _UNSET

    def needs(self, dependency: Any) -> Self:
        self._needs = dependency
        return self

    def give(self, implementation: Any) -> None:
        """Commit the contextual override for every concrete of this builder.

        Raises:
            DICrateInvalidRegistrationError: ``needs`` was not called first.

        """
        if self._needs is _UNSET:
            names = ", ".join(repr(concrete) for concrete in self._concretes)
            msg = f"Call needs(...) before give(...) in the contextual binding for {names}."
            raise DICrateInvalidRegistrationError(msg)
        for concrete in self._concretes:
            self._registry.add_contextual_override(concrete, self._needs, implementation)


__all__ = ["ContextualBindingBuilder"]
