# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""pytest configuration and fixtures for spawnrate tests.

The fixtures stand in for the clock, launcher, process counter, shutdown token and spawn log of the spawn loop.
"""

import pytest

from spawnrate.util.launcher import LaunchFailure


def pytest_configure(config):  # pylint: disable=missing-docstring
    config.addinivalue_line("markers", "slow: test starts real processes or sleeps for several seconds")


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):  # pylint: disable=missing-docstring
        self.now += seconds


class FakeShutdown:
    """Shutdown token that records every wait and advances the clock instead of sleeping.

    Attributes:
        stop_after_waits (int): Request shutdown once this many waits have happened
    """

    def __init__(self, clock):
        self.clock = clock
        self.stop_after_waits = None
        self.waits = []
        self.requested = False

    def is_set(self):  # pylint: disable=missing-docstring
        return self.requested

    def request(self, _reason="test"):  # pylint: disable=missing-docstring
        self.requested = True

    def wait(self, timeout):  # pylint: disable=missing-docstring
        self.waits.append(timeout)
        self.clock.advance(timeout)
        if self.stop_after_waits is not None and len(self.waits) >= self.stop_after_waits:
            self.requested = True
        return self.requested


class FakeLauncher:
    """Launcher that hands out increasing PIDs.

    Attributes:
        spawn_cost (float): Seconds each launch takes on the clock
        fail_on (set): 1-based launch numbers that raise LaunchFailure
    """

    def __init__(self, clock):
        self.clock = clock
        self.spawn_cost = 0.0
        self.fail_on = set()
        self.launches = []
        self.reaps = 0
        self.next_pid = 1000

    def launch(self, path, args=()):  # pylint: disable=missing-docstring
        self.clock.advance(self.spawn_cost)
        self.launches.append((path, tuple(args)))
        if len(self.launches) in self.fail_on:
            raise LaunchFailure(f"{path}: [Errno 13] Permission denied")
        self.next_pid += 1
        return self.next_pid

    def reap(self):  # pylint: disable=missing-docstring
        self.reaps += 1
        return 0


class ScriptedCounter:
    """Process counter returning the counts in |counts| in order, then repeating the last one."""

    def __init__(self, counts):
        self.counts = list(counts)
        self.calls = []

    def __call__(self, matcher):
        self.calls.append(matcher)
        if len(self.counts) > 1:
            return self.counts.pop(0)
        return self.counts[0]


class FakeSpawnLog:
    """Collects the spawn records the loop writes."""

    def __init__(self):
        self.lines = []

    def info(self, msg, *args):  # pylint: disable=missing-docstring
        self.lines.append(msg % args)

    def spawned(self):  # pylint: disable=missing-docstring
        return [line for line in self.lines if line.startswith("spawned ")]


@pytest.fixture
def clock():
    """Clock starting at 100 seconds that only moves when launches or waits advance it."""
    return FakeClock()


@pytest.fixture
def launcher(clock):  # pylint: disable=redefined-outer-name
    """Launcher recording its launches on |clock|."""
    return FakeLauncher(clock)


@pytest.fixture
def shutdown(clock):  # pylint: disable=redefined-outer-name
    """Shutdown token whose waits advance |clock|."""
    return FakeShutdown(clock)


@pytest.fixture
def spawn_log():
    """Spawn log collecting the formatted records."""
    return FakeSpawnLog()


@pytest.fixture
def scripted_counter():
    """Factory for process counters returning fixed sequences of counts."""
    return ScriptedCounter
