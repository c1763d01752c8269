# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Spawn N instances of an executable every second, continuously, without waiting for them.

Usage:
    spawnrate <instances_per_second> /path/to/job [job-arg1 ...]

Spawned instances are backgrounded and never waited for. Make sure the executable sets up its own environment and
is safe to run many times in parallel.
"""

import sys

from .config import parse_config
from .rate_loop import RateLoop
from .util.launcher import Launcher
from .util.logging_helpers import close_logger
from .util.logging_helpers import get_logger
from .util.logging_helpers import get_spawn_logger
from .util.shutdown import ShutdownSignal

LOG_SPAWNER = get_logger(__name__)


def banner(spawn_log, msg, *args):
    """Write a status line to both the console and the spawn log.

    Args:
        spawn_log (logging.Logger): Spawn log
        msg (str): Message format string
        args (tuple): Message arguments
    """
    LOG_SPAWNER.info(msg, *args)
    spawn_log.info("- " + msg, *args)


def run_spawner(config, shutdown=None, max_cycles=None):
    """Start the spawn loop for |config| and run it until shutdown is requested.

    Args:
        config (SpawnConfig): Validated configuration
        shutdown (ShutdownSignal): Cancellation token, a new one hooked to SIGINT/SIGTERM is created if not given
        max_cycles (int): Optional limit on the number of cycles

    Returns:
        int: Exit status
    """
    previous_handlers = {}
    if shutdown is None:
        shutdown = ShutdownSignal(notify=LOG_SPAWNER.warning)
        previous_handlers = shutdown.install()

    spawn_log = get_spawn_logger(config.log_file)
    try:
        banner(spawn_log, "Starting spawner: %s/s -> %s", config.instances_per_second,
               " ".join([str(config.executable)] + list(config.args)))
        if config.max_concurrent is not None:
            LOG_SPAWNER.info("Waiting for fewer than %s running instances before each spawn", config.max_concurrent)

        loop = RateLoop(config,
                        Launcher(detached=config.detached),
                        shutdown,
                        spawn_log)
        status = loop.run(max_cycles=max_cycles)

        banner(spawn_log, "Spawner exiting.")
    finally:
        close_logger(spawn_log)
        ShutdownSignal.restore(previous_handlers)
    return status


def main(argv=None):
    """Parse the command line and environment, then spawn until SIGINT/SIGTERM.

    Args:
        argv (list): Command-line arguments without the program name, defaults to sys.argv[1:]
    """
    config = parse_config(sys.argv[1:] if argv is None else argv)
    sys.exit(run_spawner(config))


if __name__ == "__main__":
    main()
