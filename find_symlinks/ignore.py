"""Gitignore-style pattern matching, anchored at a base directory."""

import logging
import os
from typing import Iterable, List, Optional

import pathspec


class IgnoreMatcher:
    """A sequence of gitignore-style patterns anchored at `base`.

    Paths are matched relative to `base`; the last matching pattern wins.
    A pattern prefixed with `!` whitelists instead of ignoring.
    """

    def __init__(self, base: str, patterns: List[pathspec.Pattern], source: str = ""):
        self.base = base
        self.patterns = patterns
        self.source = source

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __repr__(self) -> str:
        return f"IgnoreMatcher({self.base!r}, {len(self.patterns)} patterns, {self.source!r})"

    @classmethod
    def from_lines(
        cls, base: str, lines: Iterable[str], source: str = ""
    ) -> "IgnoreMatcher":
        """Compile `lines`, dropping any line that is not a valid pattern."""
        patterns: List[pathspec.Pattern] = []
        for line in lines:
            line = line.rstrip("\r\n")
            try:
                spec = pathspec.PathSpec.from_lines("gitwildmatch", [line])
            except ValueError as e:
                logging.debug(f"Dropping malformed pattern {line!r} ({source}): {e}")
                continue
            patterns.extend(p for p in spec.patterns if p.include is not None)
        return cls(base, patterns, source)

    @classmethod
    def from_file(cls, base: str, path: str) -> Optional["IgnoreMatcher"]:
        """Read patterns from the file at `path`.

        Return `None` if the file cannot be read.
        """
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                return cls.from_lines(base, f.readlines(), source=path)
        except OSError:
            return None

    def match(self, path: str, is_dir: bool) -> Optional[bool]:
        """Return `True` if ignored, `False` if whitelisted, `None` if no pattern matches."""
        rel = os.path.relpath(path, self.base)
        if rel == os.curdir or rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        rel = rel.replace(os.sep, "/")
        if is_dir:
            rel += "/"
        for pattern in reversed(self.patterns):
            if pattern.match_file(rel) is not None:
                return bool(pattern.include)
        return None


# Git ----------------------------------------------------------------------------------


def find_git_dir(worktree: str) -> Optional[str]:
    """Return the git directory of `worktree`, if it is a repository root.

    Supports `.git` directories and `.git` files (`gitdir: ...`) of
    linked worktrees and submodules.
    """
    dot_git = os.path.join(worktree, ".git")
    if os.path.isdir(dot_git):
        return dot_git
    if os.path.isfile(dot_git):
        try:
            with open(dot_git, "r", encoding="utf-8") as f:
                first = f.readline().strip()
        except OSError:
            return None
        if first.startswith("gitdir:"):
            gitdir = first[len("gitdir:"):].strip()
            return os.path.normpath(os.path.join(worktree, gitdir))
    return None


def load_gitignore(directory: str) -> Optional[IgnoreMatcher]:
    """Return the matcher for `directory`/.gitignore, if there's a non-empty one."""
    matcher = IgnoreMatcher.from_file(directory, os.path.join(directory, ".gitignore"))
    if matcher:
        logging.debug(f"Loaded {len(matcher.patterns)} patterns from {matcher.source}")
        return matcher
    return None


def load_git_ancestry(root: str) -> List[IgnoreMatcher]:
    """Load the ignore matchers that apply to `root` from above it.

    Returns the repository exclude file (if inside a repository) followed
    by the `.gitignore` files from the outermost ancestor down to, and
    including, `root`, lowest precedence first.
    """
    directories: List[str] = []
    git_dir = None
    current = root
    while True:
        directories.append(current)
        git_dir = find_git_dir(current)
        if git_dir:
            break
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent

    matchers: List[IgnoreMatcher] = []
    if git_dir:
        exclude = IgnoreMatcher.from_file(
            directories[-1], os.path.join(git_dir, "info", "exclude")
        )
        if exclude:
            matchers.append(exclude)
    for directory in reversed(directories):
        gitignore = load_gitignore(directory)
        if gitignore:
            matchers.append(gitignore)
    return matchers
