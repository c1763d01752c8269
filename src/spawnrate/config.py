# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Command-line and environment configuration of the spawner.
"""

import argparse
from collections import namedtuple
import os
from pathlib import Path
import re
from textwrap import dedent

from .util.process_counter import MATCHERS

DEFAULT_LOGFILE = Path("spawnrate.log")
DEFAULT_MATCH_MODE = "substring"

USAGE_EPILOG = dedent("""\
    Optional environment variables:
      MAX_CONCURRENT (integer) - maximum concurrent processes matching the executable (wait until below)
      LOGFILE - where spawn logs are written (default: ./spawnrate.log)
      USE_NOHUP - "0" to start children in the spawner's session, otherwise they are detached (default)
      MATCH_MODE - how running instances are recognised: substring (default), regex or argv
    Example:
      MAX_CONCURRENT=500 LOGFILE=/tmp/multi.log spawnrate 25 /home/me/run_job.sh arg1 arg2
    """)

SpawnConfig = namedtuple("SpawnConfig", [
    "instances_per_second",
    "executable",
    "args",
    "max_concurrent",
    "log_file",
    "detached",
    "match_mode",
])


class ConfigurationError(Exception):
    """Raised when the spawner cannot be started with the given arguments or environment."""


def positive_int(value):
    """Parse a strictly positive decimal integer. Signs and whitespace are rejected.

    Args:
        value (str): Text to be parsed

    Raises:
        ConfigurationError: If |value| is not a positive integer

    Returns:
        int: Parsed value
    """
    if not re.match(r"^[0-9]+$", value) or int(value) <= 0:
        raise ConfigurationError(f"{value!r} is not a positive integer")
    return int(value)


def instances_per_second(value):
    """argparse type for the spawn rate."""
    try:
        return positive_int(value)
    except ConfigurationError as ex:
        raise argparse.ArgumentTypeError(f"instances_per_second must be a positive integer, got {value!r}") from ex


def executable_file(value):
    """argparse type for the target executable: it must be an executable regular file.

    Args:
        value (str): Path to the executable

    Raises:
        ArgumentTypeError: If the path is not an executable regular file

    Returns:
        Path: Path to the executable
    """
    path = Path(value)
    if not (path.is_file() and os.access(str(path), os.X_OK)):
        raise argparse.ArgumentTypeError(f"script '{value}' not found or not executable")
    return path


def make_parser():
    """Create the command-line parser.

    Returns:
        argparse.ArgumentParser: The parser
    """
    parser = argparse.ArgumentParser(
        prog="spawnrate",
        description="Spawn N instances of an executable every second (backgrounded), continuously. "
                    "Spawned instances are never waited for.",
        epilog=USAGE_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("instances_per_second",
                        type=instances_per_second,
                        help="Number of instances started every second")
    parser.add_argument("executable",
                        type=executable_file,
                        help="Executable to be started")
    parser.add_argument("args",
                        nargs=argparse.REMAINDER,
                        help="Arguments passed to every instance")
    return parser


def config_from_env(environ):
    """Read the environment-derived settings.

    Args:
        environ (dict): Environment, usually os.environ

    Raises:
        ConfigurationError: If MAX_CONCURRENT or MATCH_MODE is invalid

    Returns:
        dict: max_concurrent, log_file, detached and match_mode settings
    """
    max_concurrent = environ.get("MAX_CONCURRENT", "")
    if max_concurrent:
        try:
            max_concurrent = positive_int(max_concurrent)
        except ConfigurationError as ex:
            raise ConfigurationError(f"MAX_CONCURRENT: {ex}") from ex
    else:
        max_concurrent = None

    match_mode = environ.get("MATCH_MODE", "") or DEFAULT_MATCH_MODE
    if match_mode not in MATCHERS:
        raise ConfigurationError(f"MATCH_MODE: {match_mode!r} is not one of {', '.join(sorted(MATCHERS))}")

    return {
        "max_concurrent": max_concurrent,
        "log_file": Path(environ.get("LOGFILE", "") or DEFAULT_LOGFILE),
        "detached": environ.get("USE_NOHUP", "1") != "0",
        "match_mode": match_mode,
    }


def parse_config(argv, environ=None, parser=None):
    """Build the SpawnConfig from command-line arguments and the environment.

    Invalid input is reported through parser.error, which prints the usage to stderr and exits with code 2.
    Only the rate and the executable go through the parser, everything after them is passed to the executable
    verbatim, including a literal "--" that argparse would otherwise swallow.

    Args:
        argv (list): Command-line arguments without the program name
        environ (dict): Environment, defaults to os.environ
        parser (argparse.ArgumentParser): Parser, defaults to make_parser()

    Returns:
        SpawnConfig: Validated, immutable configuration
    """
    parser = parser or make_parser()
    environ = os.environ if environ is None else environ

    argv = list(argv)
    options = parser.parse_args(argv[:2])
    try:
        env_settings = config_from_env(environ)
    except ConfigurationError as ex:
        parser.error(str(ex))

    return SpawnConfig(instances_per_second=options.instances_per_second,
                       executable=options.executable,
                       args=tuple(argv[2:]),
                       **env_settings)
