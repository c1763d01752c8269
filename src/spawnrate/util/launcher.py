# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Start instances of an executable without waiting for them.
"""

import os
import subprocess

from .logging_helpers import get_logger

LOG_LAUNCHER = get_logger(__name__)


class LaunchFailure(Exception):
    """Raised when a single instance could not be started."""


class Launcher:
    """Start fire-and-forget instances of an executable.

    Output of the children is discarded. Children are never waited on, but the Popen handles are kept so that
    terminated children can be reaped by |reap|, otherwise they would linger as zombies until the spawner exits.

    Args:
        detached (bool): Start each child in its own session so that it outlives the spawner and does not get
                         signals meant for the spawner's process group
    """

    def __init__(self, detached=True):
        self.detached = detached
        self._children = []

    def popen_kwargs(self):
        """Keyword arguments for subprocess.Popen depending on the launch mode.

        Returns:
            dict: Popen keyword arguments
        """
        kwargs = {
            "stdin": subprocess.DEVNULL,
            "stdout": subprocess.DEVNULL,
            "stderr": subprocess.DEVNULL,
            "close_fds": True,
        }
        if self.detached:
            if os.name == "nt":
                kwargs["creationflags"] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
            else:
                kwargs["start_new_session"] = True
        return kwargs

    def launch(self, path, args=()):
        """Start |path| with |args| in the background.

        Args:
            path (Path): Executable to be started
            args (list): Arguments passed to the executable

        Raises:
            LaunchFailure: If the executable could not be started

        Returns:
            int: Process ID of the child
        """
        cmd = [str(path)] + [str(x) for x in args]
        try:
            child = subprocess.Popen(cmd, **self.popen_kwargs())  # pylint: disable=consider-using-with
        except (OSError, ValueError, subprocess.SubprocessError) as ex:
            raise LaunchFailure(f"{subprocess.list2cmdline(cmd)}: {ex}") from ex
        self._children.append(child)
        return child.pid

    def reap(self):
        """Collect children that have exited. Their exit codes are discarded.

        Returns:
            int: Number of children reaped
        """
        still_running = []
        for child in self._children:
            if child.poll() is None:
                still_running.append(child)
        reaped = len(self._children) - len(still_running)
        self._children = still_running
        if reaped:
            LOG_LAUNCHER.debug("Reaped %s children, %s still running", reaped, len(still_running))
        return reaped

    @property
    def live_children(self):
        """Number of started children not yet seen to exit."""
        return len(self._children)
