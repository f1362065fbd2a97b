from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dicrate.container import Container


class ServiceProvider(ABC):
    """Two-phase registration unit for application bootstrapping.

    ``register`` must only write bindings. ``boot`` runs after every provider
    of the container has registered, so it may safely resolve services.
    """

    def __init__(self, container: Container) -> None:
        self.container = container

    @abstractmethod
    def register(self) -> None:
        """Write bindings into ``self.container``."""

    def boot(self) -> None:  # noqa: B027
        """Run post-registration work; resolving is allowed here."""


class ContainerServiceProvider(ServiceProvider):
    """Expose the container itself as a resolvable service."""

    def register(self) -> None:
        from dicrate.container import Container  # noqa: PLC0415

        self.container.instance(Container, self.container)
        self.container.instance("container", self.container)


__all__ = ["ContainerServiceProvider", "ServiceProvider"]
