# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Process-wide shutdown flag, set from SIGINT/SIGTERM handlers.
"""

import signal
import time

from .logging_helpers import get_logger

LOG_SHUTDOWN = get_logger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)
WAIT_SLICE = 0.05  # seconds


class ShutdownSignal:
    """Cancellation token shared by the signal handlers and the spawn loop.

    Python runs signal handlers on the main thread between bytecodes, possibly while the loop holds a lock, so the
    handler only stores a boolean. Sleeping is done in slices of WAIT_SLICE so that a request is noticed quickly.
    The flag starts cleared, is set by the first request and is never reset. Spawned children are never touched.

    Args:
        notify (callable): Called once with a message on the first request, e.g. a logger method
    """

    def __init__(self, notify=None):
        self._requested = False
        self._notify = notify

    def is_set(self):
        """Return True once shutdown has been requested."""
        return self._requested

    def request(self, reason="Shutdown requested"):
        """Set the flag. Only the first call notifies, later calls have no effect.

        Args:
            reason (str): Text of the notification

        Returns:
            bool: True if this call set the flag
        """
        if self._requested:
            return False
        self._requested = True
        if self._notify is not None:
            self._notify(f"{reason}, stopping spawner (no wait for spawned children)")
        return True

    def wait(self, timeout):
        """Sleep for up to |timeout| seconds, returning early if shutdown is requested.

        Args:
            timeout (float): Maximum number of seconds to sleep

        Returns:
            bool: True if shutdown has been requested
        """
        deadline = time.monotonic() + max(0, timeout)
        while not self._requested:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(WAIT_SLICE, remaining))
        return self._requested

    def handle_signal(self, signum, _frame):
        """Signal handler: only sets the flag."""
        self.request(f"{signal.Signals(signum).name} received")

    def install(self, signals=DEFAULT_SIGNALS):
        """Register |handle_signal| for |signals|. Must be called from the main thread.

        Args:
            signals (tuple): Signals that request a shutdown

        Returns:
            dict: Previous handlers keyed by signal number, see |restore|
        """
        previous = {}
        for signum in signals:
            previous[signum] = signal.signal(signum, self.handle_signal)
        LOG_SHUTDOWN.debug("Installed shutdown handlers for %s", ", ".join(signal.Signals(x).name for x in signals))
        return previous

    @staticmethod
    def restore(previous):
        """Put back the handlers returned by |install|.

        Args:
            previous (dict): Previous handlers keyed by signal number
        """
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)
