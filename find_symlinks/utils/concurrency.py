"""Helpers shared by the traversal and resolution worker pools."""

import os


class FrozenCollectionError(RuntimeError):
    """Raised when appending to a collection that was already handed off."""


def n_workers(workers: int) -> int:
    """Return the pool size for the worker-count hint; 0 means one per CPU."""
    if workers > 0:
        return workers
    return os.cpu_count() or 1
