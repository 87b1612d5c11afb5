"""Type hints."""

from enum import Enum
from typing import List, NamedTuple, Tuple, TypedDict


class EntryType(Enum):
    """Classification of a filesystem object, without following symlinks."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


class Entry(NamedTuple):
    """One filesystem object visited during traversal.

    `depth` is 0 for entries directly under the walk root.
    """

    path: str
    name: str
    entry_type: EntryType
    depth: int


class Identity(NamedTuple):
    """Platform-level unique key of a file (device + inode)."""

    device: int
    inode: int


class TraversalResult(NamedTuple):
    """Frozen output of a walk."""

    symlinks: Tuple[str, ...]
    files: int
    directories: int


class FindResult(NamedTuple):
    """Final output of a run, handed to the reporting sink."""

    target: str
    matches: List[str]  # sorted
    files_visited: int
    directories_visited: int
    symlinks_scanned: int
    elapsed: float  # seconds


class Summary(TypedDict):
    """Statistics block, as rendered after the results."""

    folders: int
    files: int
    symlinks: int
    matches: int
    elapsed: float
    rate: int


class Color(Enum):
    """Choice of ANSI color output."""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"
