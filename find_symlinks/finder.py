"""Find every symlink under a root that resolves to a target."""

import logging
import time
from typing import Any, Dict, Optional

from . import defaults
from .filters import FilterPolicy
from .resolve import MatchListener, resolve_candidates, resolve_target
from .traverse import walk
from .utils.types import FindResult


def find_symlinks(  # pylint: disable=R0913
    target: str,
    root: str = defaults.ROOT,
    policy: Optional[FilterPolicy] = None,
    workers: int = defaults.THREADS,
    listener: Optional[MatchListener] = None,
    stream: bool = True,
    filters: Optional[Dict[str, Any]] = None,
) -> FindResult:
    """Walk `root` fully, then check each symlink found against `target`.

    Raises `TargetResolutionError` before any traversal if `target`
    can't be canonicalized. Nothing else is fatal.

    Without a `policy`, one is built from `root` and the `filters` options
    (see `FilterPolicy.build`), only once the target has resolved.
    """
    start = time.monotonic()
    listener = listener or MatchListener()
    canonical_target = resolve_target(target)
    if policy is None:
        policy = FilterPolicy.build(root, **(filters or {}))

    # phase 1: traversal, exhaustive before any resolution starts
    listener.walk_started()
    traversal = walk(root, policy, workers)
    listener.walk_finished(len(traversal.symlinks))

    # phase 2: resolution
    matches = resolve_candidates(
        traversal.symlinks, canonical_target, listener, stream=stream, workers=workers
    )

    elapsed = time.monotonic() - start
    logging.debug(f"Finished in {elapsed:.2f}s.")
    return FindResult(
        target=canonical_target.path,
        matches=matches,
        files_visited=traversal.files,
        directories_visited=traversal.directories,
        symlinks_scanned=len(traversal.symlinks),
        elapsed=elapsed,
    )
