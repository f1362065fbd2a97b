from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from dicrate.exceptions import DICrateCircularDependencyError

# Context variable for resolution tracking (works with both threads and async tasks)
# Stores (task_id, stacks) where stacks maps an owner id to its in-flight identifiers
_resolution_stacks: ContextVar[tuple[int | None, dict[int, list[Any]]] | None] = ContextVar(
    "dicrate_resolution_stacks",
    default=None,
)


def _get_context_id() -> int | None:
    """Get an identifier for the current execution context.

    Returns the id of the current async task if running in an async context,
    or None if running in a sync context.
    """
    try:
        task = asyncio.current_task()
        return id(task) if task is not None else None
    except RuntimeError:
        return None


def _get_stacks() -> dict[int, list[Any]]:
    """Get the current context's resolution stacks.

    When called from a different async task than the one that created the stacks,
    returns a cloned copy to ensure task isolation during parallel resolution.
    """
    current_task_id = _get_context_id()
    stored = _resolution_stacks.get()

    if stored is None:
        stacks: dict[int, list[Any]] = {}
        _resolution_stacks.set((current_task_id, stacks))
        return stacks

    owner_task_id, stacks = stored

    if current_task_id is not None and owner_task_id != current_task_id:
        cloned = {owner: list(stack) for owner, stack in stacks.items()}
        _resolution_stacks.set((current_task_id, cloned))
        return cloned

    return stacks


class ResolutionStack:
    """Chain of identifiers currently being built for one owner.

    Each thread and each asyncio task sees its own chain, so concurrent
    resolutions never report each other as cycles.
    """

    def __init__(self, owner: object) -> None:
        self._owner_id = id(owner)

    def current(self) -> list[Any]:
        """Return the live chain for the current context."""
        stacks = _get_stacks()
        stack = stacks.get(self._owner_id)
        if stack is None:
            stack = stacks[self._owner_id] = []
        return stack

    def snapshot(self) -> tuple[Any, ...]:
        return tuple(self.current())

    @contextmanager
    def frame(self, identifier: Any) -> Iterator[None]:
        """Push ``identifier`` for the duration of the block.

        Raises:
            DICrateCircularDependencyError: ``identifier`` is already being built.

        """
        stack = self.current()
        if identifier in stack:
            raise DICrateCircularDependencyError(identifier, list(stack))
        stack.append(identifier)
        try:
            yield
        finally:
            stack.pop()


__all__ = ["ResolutionStack"]
