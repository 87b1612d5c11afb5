"""Integration test traverse.py on real directory trees."""

# pylint: disable=W0621

import os
from pathlib import Path
from typing import List

import pytest

from find_symlinks.filters import FilterPolicy
from find_symlinks.traverse import Counters, DirectoryTask, EntryBuffer, scan_directory, walk


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """Build a small tree.

    root/
        a.txt
        .hidden.txt
        link_a -> a.txt
        sub/
            b.txt
            link_up -> ..
            deeper/
                c.txt
                link_c -> c.txt
        node_modules/
            pkg.js
            link_pkg -> pkg.js
        .config/
            link_cfg -> ../a.txt
    """
    root = tmp_path / "root"
    (root / "sub" / "deeper").mkdir(parents=True)
    (root / "node_modules").mkdir()
    (root / ".config").mkdir()

    (root / "a.txt").write_text("a")
    (root / ".hidden.txt").write_text("h")
    (root / "link_a").symlink_to("a.txt")
    (root / "sub" / "b.txt").write_text("b")
    (root / "sub" / "link_up").symlink_to("..")
    (root / "sub" / "deeper" / "c.txt").write_text("c")
    (root / "sub" / "deeper" / "link_c").symlink_to("c.txt")
    (root / "node_modules" / "pkg.js").write_text("js")
    (root / "node_modules" / "link_pkg").symlink_to("pkg.js")
    (root / ".config" / "link_cfg").symlink_to("../a.txt")
    return root


def _rel(root: Path, paths: List[str]) -> List[str]:
    return sorted(os.path.relpath(p, root) for p in paths)


@pytest.mark.parametrize("workers", [1, 2, 16])
def test_walk_defaults(tree: Path, workers: int) -> None:
    """Test counts and candidates with the default policy."""
    result = walk(str(tree), workers=workers)

    assert _rel(tree, list(result.symlinks)) == [
        ".config/link_cfg",
        "link_a",
        "sub/deeper/link_c",
        "sub/link_up",
    ]
    # root, sub, deeper, .config
    assert result.directories == 4
    # a.txt, .hidden.txt, b.txt, c.txt
    assert result.files == 4


def test_walk_no_hidden(tree: Path) -> None:
    """Test skipping hidden entries."""
    result = walk(str(tree), FilterPolicy.build(str(tree), hidden=False))
    assert _rel(tree, list(result.symlinks)) == ["link_a", "sub/deeper/link_c", "sub/link_up"]
    assert result.directories == 3
    assert result.files == 3


def test_walk_include_heavy(tree: Path) -> None:
    """Test descending into heavy directories on request."""
    result = walk(str(tree), FilterPolicy.build(str(tree), include_heavy=True))
    assert "node_modules/link_pkg" in _rel(tree, list(result.symlinks))
    assert result.directories == 5
    assert result.files == 5


def test_walk_max_depth(tree: Path) -> None:
    """Test that depth 0 only lists the root's own entries."""
    result = walk(str(tree), FilterPolicy.build(str(tree), max_depth=0))
    assert _rel(tree, list(result.symlinks)) == ["link_a"]
    # root, sub, .config (listed, not descended)
    assert result.directories == 3
    assert result.files == 2

    result = walk(str(tree), FilterPolicy.build(str(tree), max_depth=1))
    assert _rel(tree, list(result.symlinks)) == [".config/link_cfg", "link_a", "sub/link_up"]


def test_walk_ignores(tree: Path) -> None:
    """Test user globs anchored at the root."""
    policy = FilterPolicy.build(str(tree), ignores=["sub/", "link_*", "!link_c"])
    result = walk(str(tree), policy)
    assert _rel(tree, list(result.symlinks)) == []

    policy = FilterPolicy.build(str(tree), ignores=["deeper/", "/link_a"])
    result = walk(str(tree), policy)
    assert _rel(tree, list(result.symlinks)) == [".config/link_cfg", "sub/link_up"]


def test_walk_does_not_follow_links(tmp_path: Path) -> None:
    """Test that cyclic directory links terminate, and are candidates only."""
    root = tmp_path / "root"
    (root / "a").mkdir(parents=True)
    (root / "a" / "loop").symlink_to(root)
    (root / "b").symlink_to(root / "a")
    (root / "self").symlink_to("self")

    result = walk(str(root))
    assert _rel(root, list(result.symlinks)) == ["a/loop", "b", "self"]
    assert result.directories == 2
    assert result.files == 0


def test_walk_gitignore(tmp_path: Path) -> None:
    """Test honoring nested .gitignore files and the repo's exclude file."""
    repo = tmp_path / "repo"
    (repo / ".git" / "info").mkdir(parents=True)
    (repo / ".git" / "info" / "exclude").write_text("excluded_link\n")
    (repo / ".gitignore").write_text("*.lnk\nbuild_out/\n")
    (repo / "src").mkdir()
    (repo / "src" / ".gitignore").write_text("!keep.lnk\n")
    (repo / "build_out").mkdir()

    (repo / "target.txt").write_text("t")
    for rel in ["top.lnk", "excluded_link", "src/keep.lnk", "src/drop.lnk",
                "src/plain", "build_out/inside"]:
        (repo / rel).symlink_to(repo / "target.txt")

    result = walk(str(repo), FilterPolicy.build(str(repo)))
    assert len(result.symlinks) == 6

    policy = FilterPolicy.build(str(repo), respect_gitignore=True)
    result = walk(str(repo), policy)
    assert _rel(repo, list(result.symlinks)) == ["src/keep.lnk", "src/plain"]


def test_walk_gitignore_from_subdirectory(tmp_path: Path) -> None:
    """Test that .gitignore files above the root still apply."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    (repo / ".gitignore").write_text("*.lnk\n")
    (repo / "src").mkdir()
    (repo / "target.txt").write_text("t")
    (repo / "src" / "a.lnk").symlink_to(repo / "target.txt")
    (repo / "src" / "b").symlink_to(repo / "target.txt")

    src = repo / "src"
    result = walk(str(src), FilterPolicy.build(str(src), respect_gitignore=True))
    assert _rel(src, list(result.symlinks)) == ["b"]


def test_walk_one_filesystem(tree: Path) -> None:
    """Test that a single-device tree is fully traversed when confined."""
    confined = walk(str(tree), FilterPolicy.build(str(tree), one_filesystem=True))
    unconfined = walk(str(tree))
    assert sorted(confined.symlinks) == sorted(unconfined.symlinks)
    assert confined.directories == unconfined.directories


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
def test_walk_unreadable_directory(tree: Path) -> None:
    """Test that an unreadable directory is skipped, not fatal."""
    locked = tree / "sub" / "deeper"
    locked.chmod(0)
    try:
        result = walk(str(tree))
    finally:
        locked.chmod(0o755)
    assert _rel(tree, list(result.symlinks)) == [".config/link_cfg", "link_a", "sub/link_up"]
    # still listed by its parent
    assert result.directories == 4


def test_scan_vanished_directory(tmp_path: Path) -> None:
    """Test that a directory removed before its scan is skipped, not fatal."""
    gone = tmp_path / "gone"
    gone.mkdir()
    (gone / "link").symlink_to(tmp_path)
    policy = FilterPolicy.build(str(tmp_path))
    scope = policy.child_scope(str(gone), policy.root_scope(str(tmp_path)))
    task = DirectoryTask(str(gone), 1, scope)
    (gone / "link").unlink()
    gone.rmdir()

    buffer = EntryBuffer()
    counters = Counters()
    assert scan_directory(task, policy, buffer, counters) == []
    assert buffer.freeze() == ()
    assert (counters.files, counters.directories) == (0, 0)


def test_scan_not_a_directory(tmp_path: Path) -> None:
    """Test that a directory replaced by a file before its scan is skipped."""
    (tmp_path / "was_dir").write_text("now a file")
    policy = FilterPolicy.build(str(tmp_path))
    task = DirectoryTask(str(tmp_path / "was_dir"), 1, policy.root_scope(str(tmp_path)))

    counters = Counters()
    assert scan_directory(task, policy, EntryBuffer(), counters) == []
    assert (counters.files, counters.directories) == (0, 0)


def test_walk_missing_root(tmp_path: Path) -> None:
    """Test that a missing root yields nothing."""
    result = walk(str(tmp_path / "missing"))
    assert result.symlinks == ()
    assert result.files == 0
    assert result.directories == 0


def test_walk_idempotent(tree: Path) -> None:
    """Test that repeated walks agree."""
    first = walk(str(tree), workers=4)
    second = walk(str(tree), workers=4)
    assert sorted(first.symlinks) == sorted(second.symlinks)
    assert (first.files, first.directories) == (second.files, second.directories)
