# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Helper functions dealing with logging in spawnrate.
"""

from datetime import datetime
import logging
from pathlib import Path

import fasteners


def get_logger(name, level=logging.INFO, terminator="\n"):
    """Create a logging object and be able to tweak the terminator. Adapted from https://stackoverflow.com/a/45909663

    Args:
        name (str): Name of the logger
        level (int): Required logging level
        terminator (str): Terminator string to be appended to every line

    Returns:
        logging.Logger: Logging object
    """
    logging.getLogger("flake8").setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.terminator = terminator
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(datefmt="[%Y-%m-%d %H:%M:%S %z]",
                                               fmt="[%(asctime)s] %(name)-8s <%(levelname)-8s> %(message)s"))
        logger.addHandler(handler)
    if logger.level == logging.NOTSET or logger.level > level:
        logger.setLevel(level)
    return logger


def iso_timestamp(when=None):
    """Return an ISO-8601 timestamp with the local UTC offset, e.g. 2024-05-01T13:37:00+02:00

    Args:
        when (float): Seconds since the epoch, defaults to now

    Returns:
        str: Formatted timestamp
    """
    moment = datetime.now() if when is None else datetime.fromtimestamp(when)
    return moment.astimezone().isoformat(timespec="seconds")


class IsoFormatter(logging.Formatter):
    """Formatter whose %(asctime)s is an ISO-8601 timestamp, matching `date -Is`."""

    def formatTime(self, record, datefmt=None):  # pylint: disable=invalid-name
        return iso_timestamp(record.created)


class LockedFileHandler(logging.FileHandler):
    """FileHandler that serialises every append with an inter-process lock, so that several spawners sharing one
    log file never interleave their lines.

    Args:
        filename (Path): Log file, opened in append mode
        lock_path (Path): Lock file, defaults to <filename>.lock
    """

    def __init__(self, filename, lock_path=None):
        filename = Path(filename)
        self.lock_path = Path(lock_path) if lock_path else filename.with_name(f"{filename.name}.lock")
        self._process_lock = fasteners.InterProcessLock(str(self.lock_path))
        super().__init__(str(filename), mode="a", encoding="utf-8", delay=True)

    def emit(self, record):
        with self._process_lock:
            super().emit(record)
            self.flush()


def get_spawn_logger(log_file, name="spawnrate.spawn_log"):
    """Create the logger that appends spawn records to |log_file|. Records do not reach the console handlers.

    Args:
        log_file (Path): Append-only spawn log
        name (str): Name of the logger

    Returns:
        logging.Logger: Logging object with a single LockedFileHandler
    """
    logger = logging.getLogger(name)
    for old_handler in list(logger.handlers):
        logger.removeHandler(old_handler)
        old_handler.close()

    handler = LockedFileHandler(log_file)
    handler.setFormatter(IsoFormatter(fmt="%(asctime)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def close_logger(logger):
    """Flush and detach all handlers of |logger|, releasing any open log files.

    Args:
        logger (logging.Logger): Logger to be closed
    """
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
