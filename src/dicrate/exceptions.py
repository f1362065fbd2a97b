from __future__ import annotations

from collections.abc import Sequence
from typing import Any

CHAIN_SEPARATOR = " → "


def describe_identifier(identifier: Any) -> str:
    """Return a readable name for an identifier used in error messages."""
    if isinstance(identifier, str):
        return identifier
    qualname = getattr(identifier, "__qualname__", None)
    if isinstance(qualname, str):
        return qualname
    return repr(identifier)


class DICrateError(Exception):
    """Represent a base class for all dicrate-specific failures.

    Catch this type when you want to handle any dicrate error path without
    matching each concrete exception class individually.
    """


class DICrateInvalidRegistrationError(DICrateError):
    """Signal invalid registration or invocation configuration.

    Raised by registration APIs such as ``Container.extend`` and
    ``Container.on_resolving`` when a non-callable is passed, by the contextual
    binding builder when ``give`` is called before ``needs``, and by
    ``Container.invoke`` for malformed ``"Type@method"`` strings.
    """


class DICrateBindingResolutionError(DICrateError):
    """Signal that no value could be produced for an identifier.

    Raised by ``resolve`` when the target does not exist (an unknown dotted
    path or an interface without a binding). This is the recoverable error
    kind: while resolving a typed constructor parameter the resolver falls back
    to the parameter default, or ``None`` for optional types, when it sees it.

    Typical fixes include binding the identifier explicitly or giving the
    parameter a default value.
    """

    def __init__(self, identifier: Any, message: str | None = None) -> None:
        self.identifier = identifier
        if message is None:
            message = f"Target [{describe_identifier(identifier)}] does not exist."
        super().__init__(message)


class DICrateUnresolvableParameterError(DICrateBindingResolutionError):
    """Signal that a parameter matched no resolution rule.

    The parameter has no override, no contextual binding, no resolvable
    declared type, is not variadic and has no default value. The message names
    the parameter and its owning class or callable.
    """

    def __init__(self, parameter_name: str, owner: Any) -> None:
        self.parameter_name = parameter_name
        self.owner = owner
        owner_name = describe_identifier(owner) if owner is not None else "callable"
        super().__init__(
            owner,
            f"Unable to resolve parameter [{parameter_name}] in {owner_name}",
        )


class DICrateNotInstantiableError(DICrateError):
    """Signal that a concrete target exists but cannot be constructed.

    Raised for abstract classes, non-class targets and types whose constructor
    signature cannot be introspected. It is never recovered by parameter
    fallbacks.

    Typical fix is binding the abstract identifier to a concrete class or a
    factory.
    """

    def __init__(self, identifier: Any) -> None:
        self.identifier = identifier
        super().__init__(f"Target [{describe_identifier(identifier)}] is not instantiable.")


class DICrateCircularDependencyError(DICrateError):
    """Signal that an identifier was requested while it is being built.

    ``chain`` holds the identifiers in traversal order and ends with the
    identifier that closed the cycle, for example ``[A, B, A]``.

    Typical fix is breaking the cycle with a factory, ``Container.factory`` or
    a late ``Container.invoke``.
    """

    def __init__(self, identifier: Any, chain: Sequence[Any]) -> None:
        self.identifier = identifier
        self.chain = [*chain, identifier]
        rendered = CHAIN_SEPARATOR.join(describe_identifier(item) for item in self.chain)
        super().__init__(f"Circular dependency detected: {rendered}")
