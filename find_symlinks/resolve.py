"""Resolve candidate symlinks, and match them against the target."""

import logging
import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, NamedTuple, Optional, Sequence

from . import defaults
from .utils.concurrency import FrozenCollectionError, n_workers
from .utils.types import Identity

# Types --------------------------------------------------------------------------------


class TargetResolutionError(Exception):
    """Raised when the target path cannot be canonicalized."""


class Target(NamedTuple):
    """The canonical path to match against, and its identity when usable."""

    path: str
    identity: Optional[Identity]


class MatchListener:
    """Receives progress and match notifications during resolution.

    The default implementation ignores everything.
    """

    def walk_started(self) -> None:
        """The traversal phase began."""

    def walk_finished(self, n_candidates: int) -> None:
        """The traversal phase ended with `n_candidates` symlinks to check."""

    def begin_results(self) -> None:
        """Called once, before the first streamed match."""

    def match_found(self, path: str) -> None:
        """A match was added to the match set (streaming only)."""

    def candidate_checked(self) -> None:
        """One candidate was resolved, matching or not."""


class MatchSet:
    """Append-only, thread-safe collection of matching paths."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: List[str] = []
        self._frozen = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def add(self, path: str) -> None:
        """Add a matching path."""
        with self._lock:
            if self._frozen:
                raise FrozenCollectionError(f"Match set is frozen; cannot add {path}")
            self._paths.append(path)

    def sorted(self) -> List[str]:
        """Freeze, and return the matches sorted by path."""
        with self._lock:
            self._frozen = True
            return sorted(self._paths)


# Canonicalization & Identity ----------------------------------------------------------


def canonicalize(path: str) -> str:
    """Return the canonical absolute form of `path`, following every symlink.

    Raises `OSError` (or `RuntimeError`, on older interpreters' symlink
    loops) if any component can't be resolved.
    """
    return os.path.realpath(path, strict=True)


def file_identity(path: str) -> Optional[Identity]:
    """Return the identity of the file `path` resolves to.

    Return `None` on platforms without a usable inode number.
    """
    st = os.stat(path)
    if not st.st_ino:
        return None
    return Identity(st.st_dev, st.st_ino)


def resolve_target(path: str) -> Target:
    """Canonicalize the target, and determine whether its identity is usable.

    The identity is withheld for regular files with several hard links:
    another name for the same inode isn't a link to this path.
    """
    try:
        canonical = canonicalize(path)
        st = os.stat(canonical)
    except (OSError, RuntimeError) as e:
        message = f"Failed to resolve target {path}: {e}"
        logging.critical(message)
        raise TargetResolutionError(message) from e

    identity: Optional[Identity] = None
    if st.st_ino and not (stat.S_ISREG(st.st_mode) and st.st_nlink > 1):
        identity = Identity(st.st_dev, st.st_ino)
    logging.info(f"Target: {canonical} (identity: {identity})")
    return Target(canonical, identity)


class LinkMatcher:  # pylint: disable=R0903
    """Decide whether a symlink resolves to the target.

    Tries the cheap identity comparison first, then falls back to
    comparing canonical paths. Any resolution failure is a non-match.
    """

    def __init__(self, target: Target):
        self.target = target

    def fast_match(self, path: str) -> bool:
        """Compare the identity of what `path` points to against the target's."""
        if self.target.identity is None:
            return False
        try:
            return file_identity(path) == self.target.identity
        except (OSError, ValueError):
            return False

    def slow_match(self, path: str) -> bool:
        """Compare the canonical form of `path` against the target's."""
        try:
            return canonicalize(path) == self.target.path
        except (OSError, RuntimeError, ValueError) as e:
            logging.debug(f"Cannot resolve {path}, {e.__class__.__name__}.")
            return False

    def matches(self, path: str) -> bool:
        """Return whether `path` resolves to the target."""
        return self.fast_match(path) or self.slow_match(path)


# Pipeline -----------------------------------------------------------------------------


class _Announcer:
    """Serialize streamed announcements; begin the results exactly once."""

    def __init__(self, listener: MatchListener):
        self.listener = listener
        self._lock = threading.Lock()
        self.streamed = 0

    def announce(self, path: str) -> None:
        with self._lock:
            if not self.streamed:
                self.listener.begin_results()
            self.streamed += 1
            self.listener.match_found(path)


def resolve_candidates(
    candidates: Sequence[str],
    target: Target,
    listener: Optional[MatchListener] = None,
    stream: bool = True,
    workers: int = defaults.THREADS,
) -> List[str]:
    """Resolve every candidate in parallel, and return the matches sorted."""
    listener = listener or MatchListener()
    matcher = LinkMatcher(target)
    matches = MatchSet()
    announcer = _Announcer(listener) if stream else None

    def _check(path: str) -> None:
        if matcher.matches(path):
            matches.add(path)
            if announcer:
                announcer.announce(path)
        listener.candidate_checked()

    with ThreadPoolExecutor(max_workers=n_workers(workers)) as pool:
        # consume to surface any unexpected worker exception
        for _ in pool.map(_check, candidates):
            pass

    result = matches.sorted()
    logging.info(f"Checked {len(candidates)} symlinks, {len(result)} match {target.path}.")
    return result
