# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""The spawn loop: start a fixed number of instances every second, continuously.

Each cycle starts |instances_per_second| instances one after the other, then sleeps for what is left of the
second. If a ceiling is configured, every single instance first waits until fewer than |max_concurrent| matching
processes are running, so under a tight ceiling a cycle can stretch over several seconds. Missed seconds are never
caught up.
"""

import time

from .util.launcher import LaunchFailure
from .util.logging_helpers import get_logger
from .util.process_counter import count_running
from .util.process_counter import make_matcher

LOG_RATE_LOOP = get_logger(__name__)

CYCLE_PERIOD = 1.0  # seconds
CEILING_POLL_INTERVAL = 0.1  # seconds

RUNNING = "running"
STOPPING_CYCLE = "stopping-cycle"
EXITED = "exited"


class RateLoop:  # pylint: disable=too-many-instance-attributes
    """Drive the launcher at a fixed rate until shutdown is requested.

    Args:
        config (SpawnConfig): Validated configuration
        launcher (Launcher): Starts the instances
        shutdown (ShutdownSignal): Cancellation token, checked before every cycle and while waiting on the ceiling
        spawn_log (logging.Logger): Receives one record per spawn attempt
        matcher (callable): Recognises running instances for the ceiling, built from config.match_mode if not given
        counter (callable): Counts processes satisfying a matcher, defaults to process_counter.count_running
        clock (callable): Monotonic clock in seconds
    """

    def __init__(self, config, launcher, shutdown, spawn_log,  # pylint: disable=too-many-arguments
                 matcher=None, counter=count_running, clock=time.monotonic):
        self.config = config
        self.launcher = launcher
        self.shutdown = shutdown
        self.spawn_log = spawn_log
        self.matcher = matcher if matcher is not None else make_matcher(config.match_mode, config.executable)
        self.counter = counter
        self.clock = clock
        self.state = RUNNING
        self.cycles = 0
        self.attempts = 0

    def wait_below_ceiling(self):
        """Poll the running count until it drops below the ceiling.

        Returns:
            bool: False if shutdown was requested while waiting
        """
        while True:
            current = self.counter(self.matcher)
            if current < self.config.max_concurrent:
                return True
            if self.shutdown.is_set():
                return False
            LOG_RATE_LOOP.debug("%s running, ceiling is %s, waiting...", current, self.config.max_concurrent)
            self.shutdown.wait(CEILING_POLL_INTERVAL)

    def spawn_one(self, instance):
        """Start one instance and record the attempt.

        Args:
            instance (int): 1-based index of the attempt within the current cycle
        """
        self.attempts += 1
        try:
            pid = self.launcher.launch(self.config.executable, self.config.args)
        except LaunchFailure as ex:
            LOG_RATE_LOOP.warning("Unable to start instance %s: %s", instance, ex)
            self.spawn_log.info("spawn failed instance=%s error=%s", instance, ex)
            return
        self.spawn_log.info("spawned pid=%s instance=%s", pid, instance)

    def run_cycle(self):
        """Run one cycle of spawn attempts, then sleep out the rest of the period.

        Returns:
            bool: False if the cycle was abandoned because of a shutdown request
        """
        start = self.clock()
        self.cycles += 1
        self.launcher.reap()

        for instance in range(1, self.config.instances_per_second + 1):
            if self.config.max_concurrent is not None and not self.wait_below_ceiling():
                self.state = STOPPING_CYCLE
                LOG_RATE_LOOP.info("Abandoning cycle %s after %s of %s instances",
                                   self.cycles, instance - 1, self.config.instances_per_second)
                return False
            self.spawn_one(instance)

        elapsed = self.clock() - start
        if elapsed < CYCLE_PERIOD:
            self.shutdown.wait(CYCLE_PERIOD - elapsed)
        else:
            LOG_RATE_LOOP.debug("Cycle %s took %.3f seconds, not sleeping", self.cycles, elapsed)
        return True

    def run(self, max_cycles=None):
        """Run cycles until shutdown is requested, or until |max_cycles| cycles have run.

        Args:
            max_cycles (int): Optional limit on the number of cycles

        Returns:
            int: Exit status, always 0
        """
        while not self.shutdown.is_set():
            if max_cycles is not None and self.cycles >= max_cycles:
                break
            if not self.run_cycle():
                break
        self.state = EXITED
        return 0
