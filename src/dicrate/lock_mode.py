from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for singleton construction.

    Pass one of these values as ``Container(lock_mode=...)``. Thread locks make
    singleton construction a run-once section per identifier, so concurrent
    first resolutions observe a single instance.

    Use ``NONE`` when a container is confined to one thread and you do not
    want to pay for lock bookkeeping.
    """

    THREAD = "thread"
    """Guard singleton construction with a per-identifier ``threading.RLock``."""

    NONE = "none"
    """Disable locking around singleton construction."""
