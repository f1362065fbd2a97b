from __future__ import annotations

from collections.abc import Iterator

import pytest

from dicrate.container import Container


@pytest.fixture()
def dicrate_container() -> Iterator[Container]:
    """Provide a fresh container installed as the process-wide instance.

    ``Container.get_instance()`` returns this container for the duration of the
    test. The previous global container is restored afterwards, so
    registrations never leak between tests.

    Enable the fixture with ``pytest_plugins = ["dicrate.integrations.pytest_plugin"]``
    in a ``conftest.py``.

    Yields:
        A new ``Container`` instance.

    """
    previous = Container._instance
    container = Container()
    Container.set_instance(container)
    try:
        yield container
    finally:
        Container.set_instance(previous)
