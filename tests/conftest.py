"""Shared pytest fixtures for dicrate tests."""

import pytest

from dicrate.container import Container
from dicrate.introspection import SignatureIntrospector
from dicrate.lock_mode import LockMode


@pytest.fixture()
def container() -> Container:
    """Default container with thread-locked singletons."""
    return Container()


@pytest.fixture()
def container_unlocked() -> Container:
    """Container with singleton locking disabled."""
    return Container(lock_mode=LockMode.NONE)


@pytest.fixture()
def introspector() -> SignatureIntrospector:
    """SignatureIntrospector instance."""
    return SignatureIntrospector()
