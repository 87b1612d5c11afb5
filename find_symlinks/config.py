"""Options that can also be configured via environment variables."""

from argparse import ArgumentParser, ArgumentTypeError
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict

from wipac_dev_tools import from_environment

from . import defaults
from .utils.types import Color

ENV_PREFIX = "FIND_SYMLINKS_"


def get_environment() -> Dict[str, Any]:
    """Read the environment, falling back to the defaults."""
    return from_environment({
        f"{ENV_PREFIX}BUILD_NUMBER": defaults.BUILD_NUMBER,
        f"{ENV_PREFIX}COLOR": defaults.COLOR,
        f"{ENV_PREFIX}LOG_LEVEL": defaults.LOG_LEVEL,
        f"{ENV_PREFIX}THREADS": str(defaults.THREADS),
    })


def non_negative_int(value: str) -> int:
    """Parse a non-negative integer argument."""
    number = int(value)
    if number < 0:
        raise ArgumentTypeError(f"must be non-negative: {value}")
    return number


def version_string(build_number: str = defaults.BUILD_NUMBER) -> str:
    """Return the package version, with the build number if there is one."""
    try:
        ver = version("find-symlinks")
    except PackageNotFoundError:
        ver = "0+unknown"
    if build_number:
        return f"{ver} (build {build_number})"
    return ver


def add_config_to_argparse(parser: ArgumentParser) -> None:
    """Add the environment-configurable args to argparse."""
    config = get_environment()

    env_description = f'''
        These can also be specified via env variables: {ENV_PREFIX}THREADS,
        {ENV_PREFIX}COLOR, {ENV_PREFIX}LOG_LEVEL, and {ENV_PREFIX}BUILD_NUMBER.
    '''
    group = parser.add_argument_group("Runtime", env_description)
    group.add_argument(
        "--threads",
        metavar="N",
        type=non_negative_int,
        default=str(config[f"{ENV_PREFIX}THREADS"]),
        help="thread count for traversal and resolution (0: one per CPU)",
    )
    group.add_argument(
        "--color",
        type=str.lower,
        choices=[c.value for c in Color],
        default=str(config[f"{ENV_PREFIX}COLOR"]).lower(),
        help="color output: auto, always, or never",
    )
    group.add_argument(
        "-l",
        "--log",
        default=str(config[f"{ENV_PREFIX}LOG_LEVEL"]),
        help="the output logging level",
    )
    group.add_argument(
        "--version",
        action="version",
        version=version_string(str(config[f"{ENV_PREFIX}BUILD_NUMBER"])),
    )
