"""Traverse a directory tree in parallel, and collect every symlink."""

import logging
import os
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import List, NamedTuple, Optional, Set, Tuple

from . import defaults
from .filters import DirectoryScope, FilterPolicy
from .utils.concurrency import FrozenCollectionError, n_workers
from .utils.types import Entry, EntryType, TraversalResult

# Types --------------------------------------------------------------------------------


class EntryBuffer:
    """Append-only, thread-safe sequence of symlink paths."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: List[str] = []
        self._frozen = False

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)

    def append(self, path: str) -> None:
        """Add a symlink path."""
        with self._lock:
            if self._frozen:
                raise FrozenCollectionError(f"Entry buffer is frozen; cannot add {path}")
            self._paths.append(path)

    def freeze(self) -> Tuple[str, ...]:
        """Stop accepting writers, and return the collected paths."""
        with self._lock:
            self._frozen = True
            return tuple(self._paths)


class Counters:
    """Running counts of files and directories visited."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files = 0
        self._directories = 0

    @property
    def files(self) -> int:
        """Files visited so far."""
        return self._files

    @property
    def directories(self) -> int:
        """Directories visited so far."""
        return self._directories

    def add(self, files: int = 0, directories: int = 0) -> None:
        """Atomically increment the counts."""
        with self._lock:
            self._files += files
            self._directories += directories


class DirectoryTask(NamedTuple):
    """A directory waiting to be scanned."""

    path: str
    depth: int  # depth of the directory's children
    scope: DirectoryScope


# Scanning -----------------------------------------------------------------------------


def classify(dir_entry: "os.DirEntry[str]", depth: int) -> Optional[Entry]:
    """Return the `Entry` for `dir_entry`, never following symlinks.

    Return `None` if the entry vanished or can't be inspected.
    """
    try:
        if dir_entry.is_symlink():
            entry_type = EntryType.SYMLINK
        elif dir_entry.is_dir(follow_symlinks=False):
            entry_type = EntryType.DIRECTORY
        elif dir_entry.is_file(follow_symlinks=False):
            entry_type = EntryType.FILE
        else:
            entry_type = EntryType.OTHER
    except OSError as e:
        logging.debug(f"Skipping {dir_entry.path}, {e.__class__.__name__}.")
        return None
    return Entry(dir_entry.path, dir_entry.name, entry_type, depth)


def scan_directory(
    task: DirectoryTask,
    policy: FilterPolicy,
    buffer: EntryBuffer,
    counters: Counters,
) -> List[DirectoryTask]:
    """Record the directory's symlinks and counts, and return its sub-directories."""
    logging.debug(f"Scanning directory: {task.path}...")
    subdirs: List[DirectoryTask] = []
    file_count = 0
    dir_count = 0

    try:
        with os.scandir(task.path) as scan:
            for dir_entry in scan:
                entry = classify(dir_entry, task.depth)
                if entry is None or not policy.includes(entry, task.scope):
                    continue

                if entry.entry_type == EntryType.DIRECTORY:
                    dir_count += 1
                    if policy.should_descend(entry, task.scope):
                        scope = policy.child_scope(entry.path, task.scope)
                        subdirs.append(DirectoryTask(entry.path, task.depth + 1, scope))
                elif entry.entry_type == EntryType.FILE:
                    file_count += 1
                elif entry.entry_type == EntryType.SYMLINK:
                    buffer.append(entry.path)
    # the directory was removed or can't be read; keep whatever was listed
    except OSError as e:
        logging.debug(f"Skipping {task.path}, {e.__class__.__name__}.")

    counters.add(files=file_count, directories=dir_count)
    logging.debug(f"Scan finished, directory: {task.path}")
    return subdirs


def walk(
    root: str = defaults.ROOT,
    policy: Optional[FilterPolicy] = None,
    workers: int = defaults.THREADS,
) -> TraversalResult:
    """Recursively scan `root`, and return its symlinks with the visit counts.

    Returns only once every directory task has finished; the returned
    symlinks are frozen.
    """
    root = os.path.abspath(root)
    if policy is None:
        policy = FilterPolicy.build(root)
    buffer = EntryBuffer()
    counters = Counters()

    if not os.path.isdir(root):
        logging.info(f"Nothing to traverse, {root} is not a directory.")
        return TraversalResult(buffer.freeze(), 0, 0)
    counters.add(directories=1)

    tasks = [DirectoryTask(root, 0, policy.root_scope(root))]
    futures: Set["Future[List[DirectoryTask]]"] = set()
    with ThreadPoolExecutor(max_workers=n_workers(workers)) as pool:
        while futures or tasks:
            # submit directories for scanning
            for task in tasks:
                futures.add(pool.submit(scan_directory, task, policy, buffer, counters))
            # collect the sub-directories of whatever finished
            done, futures = wait(futures, return_when=FIRST_COMPLETED)
            tasks = [subdir for future in done for subdir in future.result()]

    symlinks = buffer.freeze()
    logging.info(
        f"Traversed {counters.directories} directories, {counters.files} files, "
        f"found {len(symlinks)} symlinks."
    )
    return TraversalResult(symlinks, counters.files, counters.directories)
