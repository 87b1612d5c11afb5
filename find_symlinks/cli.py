"""Find every symlink under a directory that resolves to a target path."""

import argparse
import logging
import os
import sys
from typing import List, Optional

import coloredlogs  # type: ignore[import]

from . import defaults
from .config import add_config_to_argparse, non_negative_int
from .finder import find_symlinks
from .report import Reporter, make_console, render_json
from .resolve import TargetResolutionError
from .utils.types import Color


def get_parser() -> argparse.ArgumentParser:
    """Get the parser for all of find-symlinks' args."""
    parser = argparse.ArgumentParser(
        description="Find symlinks under ROOT whose fully-resolved target is TARGET.",
        epilog="Notes: (1) symbolic links are never followed while traversing.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("target", help="path of the target to match against")
    parser.add_argument(
        "--root",
        default=defaults.ROOT,
        help="directory to traverse",
    )
    parser.add_argument(
        "--no-hidden",
        dest="hidden",
        default=defaults.HIDDEN,
        action="store_false",
        help="skip hidden files and folders (scanned by default, like `find`)",
    )
    parser.add_argument(
        "--max-depth",
        metavar="N",
        type=non_negative_int,
        default=defaults.MAX_DEPTH,
        help="maximum depth to recurse; 0 visits only the root's own entries",
    )
    parser.add_argument(
        "--no-tui",
        default=defaults.NO_TUI,
        action="store_true",
        help="disable progress output",
    )
    parser.add_argument(
        "--json",
        default=defaults.JSON,
        action="store_true",
        help="emit a JSON array of matches",
    )
    parser.add_argument(
        "--respect-gitignore",
        default=defaults.RESPECT_GITIGNORE,
        action="store_true",
        help="respect .gitignore and git-exclude files during the scan",
    )
    parser.add_argument(
        "--one-filesystem",
        default=defaults.ONE_FILESYSTEM,
        action="store_true",
        help="do not cross filesystem boundaries",
    )
    parser.add_argument(
        "--ignore",
        metavar="GLOB",
        dest="ignores",
        action="append",
        default=defaults.IGNORES,
        help="additional gitignore-style glob to skip; prefix with '!' to force-include. "
        "Repeatable",
    )
    parser.add_argument(
        "--ignore-file",
        metavar="PATH",
        dest="ignore_files",
        action="append",
        default=defaults.IGNORE_FILES,
        help="additional file to load gitignore-style patterns from. Repeatable",
    )
    parser.add_argument(
        "--include-heavy",
        default=defaults.INCLUDE_HEAVY,
        action="store_true",
        help="include heavy directories like node_modules, .cache, target",
    )
    parser.add_argument(
        "--no-stream",
        default=defaults.NO_STREAM,
        action="store_true",
        help="don't stream matches; only show the final boxed summary",
    )
    add_config_to_argparse(parser)
    return parser


def run(args: argparse.Namespace) -> int:
    """Find the symlinks, report them, and return the exit code."""
    console = make_console(Color(args.color))
    stream = not (args.json or args.no_stream)
    reporter = Reporter(console, tui=not args.no_tui, stream=stream)

    # read by FilterPolicy.build, after the target resolves
    filters = {
        "hidden": args.hidden,
        "max_depth": args.max_depth,
        "ignores": args.ignores,
        "ignore_files": args.ignore_files,
        "include_heavy": args.include_heavy,
        "respect_gitignore": args.respect_gitignore,
        "one_filesystem": args.one_filesystem,
    }

    try:
        result = find_symlinks(
            args.target,
            root=args.root,
            workers=args.threads,
            listener=reporter,
            stream=stream,
            filters=filters,
        )
    except TargetResolutionError as e:
        reporter.fatal(str(e))
        return 1
    finally:
        reporter.close()

    if args.json:
        render_json(result.matches, file=console.file)
    else:
        reporter.render(result)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse args, set up logging, and run."""
    parser = get_parser()
    args = parser.parse_args(argv)
    if args.color not in [c.value for c in Color]:
        parser.error(f"invalid color choice: {args.color!r}")
    if not os.path.isdir(args.root):
        parser.error(f"root is not a directory: {args.root}")

    coloredlogs.install(level=args.log.upper())
    for arg, val in vars(args).items():
        logging.debug(f"{arg}: {val}")

    return run(args)


if __name__ == "__main__":
    sys.exit(main())
