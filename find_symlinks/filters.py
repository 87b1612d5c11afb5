"""Filter policy applied to every entry during traversal.

The policy is an ordered chain of rules. For inclusion, the first rule
that decides (include or exclude) wins; if none decides, the entry is
included. For descent into a directory, every rule must agree.
"""

import logging
import os
import stat
import sys
from enum import Enum
from typing import FrozenSet, List, NamedTuple, Optional, Sequence, Tuple

from . import defaults
from .ignore import IgnoreMatcher, load_git_ancestry, load_gitignore
from .utils.types import Entry, EntryType

# Constants ----------------------------------------------------------------------------


HEAVY_DIRS: FrozenSet[str] = frozenset(
    [
        "node_modules",
        ".cache",
        "target",
        "build",
        "dist",
        "out",
        ".git",
        ".venv",
        "venv",
    ]
)


# Types --------------------------------------------------------------------------------


class Decision(Enum):
    """Outcome of one rule for one entry."""

    INCLUDE = "include"
    EXCLUDE = "exclude"
    DEFER = "defer"


class DirectoryScope(NamedTuple):
    """Per-directory context handed from a directory task to its children."""

    root: str
    root_device: Optional[int]
    directory: str
    gitignores: Tuple[IgnoreMatcher, ...]  # lowest precedence first


# Rules --------------------------------------------------------------------------------


class FilterRule:
    """Base rule: decides nothing, allows every descent."""

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        """Include, exclude, or defer to the next rule."""
        return Decision.DEFER

    def allows_descent(self, entry: Entry, scope: DirectoryScope) -> bool:
        """Return whether the traversal may descend into the directory `entry`."""
        return True


class DepthRule(FilterRule):
    """Prune entries beyond `max_depth`, and don't descend past it."""

    def __init__(self, max_depth: Optional[int]):
        self.max_depth = max_depth

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        if self.max_depth is not None and entry.depth > self.max_depth:
            return Decision.EXCLUDE
        return Decision.DEFER

    def allows_descent(self, entry: Entry, scope: DirectoryScope) -> bool:
        return self.max_depth is None or entry.depth < self.max_depth


class HeavyDirectoryRule(FilterRule):
    """Exclude conventionally-large directories (dependency caches, build output)."""

    def __init__(self, names: FrozenSet[str] = HEAVY_DIRS):
        self.names = names

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        if entry.entry_type == EntryType.DIRECTORY and entry.name in self.names:
            logging.debug(f"Skipping {entry.path}, heavy directory.")
            return Decision.EXCLUDE
        return Decision.DEFER


def is_hidden(entry: Entry) -> bool:
    """Return whether `entry` is hidden by the platform's convention."""
    if entry.name.startswith("."):
        return True
    if sys.platform == "win32":
        try:
            attributes = os.lstat(entry.path).st_file_attributes  # type: ignore[attr-defined]
        except OSError:
            return False
        return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)  # type: ignore[attr-defined]
    return False


class HiddenRule(FilterRule):
    """Exclude hidden entries."""

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        if is_hidden(entry):
            return Decision.EXCLUDE
        return Decision.DEFER


class MatcherRule(FilterRule):
    """Apply ignore matchers anchored at the walk root, e.g. user globs or ignore files."""

    def __init__(self, matchers: Sequence[IgnoreMatcher]):
        self.matchers = list(matchers)  # lowest precedence first

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        return _decide_by(self.matchers, entry)


class GitIgnoreRule(FilterRule):
    """Apply `.gitignore` and git-exclude patterns collected along the path."""

    def decide(self, entry: Entry, scope: DirectoryScope) -> Decision:
        return _decide_by(scope.gitignores, entry)


class BoundaryRule(FilterRule):
    """Don't descend into directories on a different device than the walk root."""

    def allows_descent(self, entry: Entry, scope: DirectoryScope) -> bool:
        if scope.root_device is None:
            return True
        try:
            device = os.lstat(entry.path).st_dev
        except OSError:
            return False
        if device != scope.root_device:
            logging.debug(f"Not descending into {entry.path}, different filesystem.")
            return False
        return True


def _decide_by(matchers: Sequence[IgnoreMatcher], entry: Entry) -> Decision:
    is_dir = entry.entry_type == EntryType.DIRECTORY
    for matcher in reversed(matchers):
        ignored = matcher.match(entry.path, is_dir)
        if ignored is None:
            continue
        if ignored:
            logging.debug(f"Skipping {entry.path}, ignored by {matcher.source}.")
            return Decision.EXCLUDE
        return Decision.INCLUDE
    return Decision.DEFER


# Policy -------------------------------------------------------------------------------


class FilterPolicy:
    """Immutable chain of filter rules, consulted by every traversal worker."""

    def __init__(self, rules: Sequence[FilterRule], respect_gitignore: bool = False,
                 one_filesystem: bool = False):
        self.rules: Tuple[FilterRule, ...] = tuple(rules)
        self.respect_gitignore = respect_gitignore
        self.one_filesystem = one_filesystem

    @classmethod
    def build(  # pylint: disable=R0913
        cls,
        root: str = defaults.ROOT,
        hidden: bool = defaults.HIDDEN,
        max_depth: Optional[int] = defaults.MAX_DEPTH,
        ignores: Optional[Sequence[str]] = defaults.IGNORES,
        ignore_files: Optional[Sequence[str]] = defaults.IGNORE_FILES,
        include_heavy: bool = defaults.INCLUDE_HEAVY,
        respect_gitignore: bool = defaults.RESPECT_GITIGNORE,
        one_filesystem: bool = defaults.ONE_FILESYSTEM,
    ) -> "FilterPolicy":
        """Construct the rule chain from options.

        User globs and ignore files are anchored at `root`.
        """
        root = os.path.abspath(root)
        rules: List[FilterRule] = [DepthRule(max_depth)]
        if not include_heavy:
            rules.append(HeavyDirectoryRule())
        if not hidden:
            rules.append(HiddenRule())
        if ignores:
            rules.append(MatcherRule([IgnoreMatcher.from_lines(root, ignores, "--ignore")]))
        if ignore_files:
            matchers = []
            for path in ignore_files:
                matcher = IgnoreMatcher.from_file(root, path)
                if matcher is None:
                    logging.warning(f"Could not read ignore file {path}; skipping.")
                    continue
                matchers.append(matcher)
            rules.append(MatcherRule(matchers))  # later files take precedence
        if respect_gitignore:
            rules.append(GitIgnoreRule())
        if one_filesystem:
            rules.append(BoundaryRule())
        return cls(rules, respect_gitignore=respect_gitignore, one_filesystem=one_filesystem)

    def includes(self, entry: Entry, scope: DirectoryScope) -> bool:
        """Return whether `entry` is visited."""
        for rule in self.rules:
            decision = rule.decide(entry, scope)
            if decision != Decision.DEFER:
                return decision == Decision.INCLUDE
        return True

    def should_descend(self, entry: Entry, scope: DirectoryScope) -> bool:
        """Return whether the traversal descends into the (included) directory `entry`."""
        if entry.entry_type != EntryType.DIRECTORY:
            return False
        return all(rule.allows_descent(entry, scope) for rule in self.rules)

    def root_scope(self, root: str) -> DirectoryScope:
        """Return the scope of the walk root, including ignore files found above it."""
        root = os.path.abspath(root)
        root_device = None
        if self.one_filesystem:
            try:
                root_device = os.stat(root).st_dev
            except OSError:
                pass  # an unopenable root yields an empty walk anyway
        gitignores: Tuple[IgnoreMatcher, ...] = ()
        if self.respect_gitignore:
            gitignores = tuple(load_git_ancestry(root))
        return DirectoryScope(root, root_device, root, gitignores)

    def child_scope(self, directory: str, parent: DirectoryScope) -> DirectoryScope:
        """Return the scope of `directory`, a sub-directory reached from `parent`."""
        gitignores = parent.gitignores
        if self.respect_gitignore:
            gitignore = load_gitignore(directory)
            if gitignore:
                gitignores = gitignores + (gitignore,)
        return parent._replace(directory=directory, gitignores=gitignores)
