from dicrate.bindings import FactoryConcrete, TypeConcrete
from dicrate.container import Container, TaggedServices
from dicrate.contextual import ContextualBindingBuilder
from dicrate.exceptions import (
    DICrateBindingResolutionError,
    DICrateCircularDependencyError,
    DICrateError,
    DICrateInvalidRegistrationError,
    DICrateNotInstantiableError,
    DICrateUnresolvableParameterError,
)
from dicrate.introspection import ParameterInfo, SignatureIntrospector, TypeIntrospector
from dicrate.lock_mode import LockMode
from dicrate.providers import ContainerServiceProvider, ServiceProvider

__all__ = [
    "Container",
    "ContainerServiceProvider",
    "ContextualBindingBuilder",
    "DICrateBindingResolutionError",
    "DICrateCircularDependencyError",
    "DICrateError",
    "DICrateInvalidRegistrationError",
    "DICrateNotInstantiableError",
    "DICrateUnresolvableParameterError",
    "FactoryConcrete",
    "LockMode",
    "ParameterInfo",
    "ServiceProvider",
    "SignatureIntrospector",
    "TaggedServices",
    "TypeConcrete",
    "TypeIntrospector",
]
