# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Test the launcher.py file."""

import logging
import os
from pathlib import Path
import signal
import subprocess
import time

import pytest

from spawnrate.util import launcher

SPAWNRATE_TEST_LOG = logging.getLogger("spawnrate_test")
logging.basicConfig(level=logging.DEBUG)
logging.getLogger("flake8").setLevel(logging.ERROR)

POSIX_ONLY = pytest.mark.skipif(os.name != "posix", reason="requires POSIX sessions and process groups")


def make_script(directory, name, body):
    """Create an executable shell script.

    Args:
        directory (class): Directory for the script
        name (str): File name of the script
        body (str): Shell commands

    Returns:
        Path: Path to the script
    """
    script = Path(directory) / name
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(0o755)
    return script


def wait_for_reap(spawner, expected, timeout=5):
    """Reap until |expected| children have been collected or |timeout| seconds have passed.

    Returns:
        int: Number of children reaped
    """
    reaped = 0
    deadline = time.monotonic() + timeout
    while reaped < expected and time.monotonic() < deadline:
        reaped += spawner.reap()
        time.sleep(0.05)
    return reaped


@POSIX_ONLY
def test_popen_kwargs():
    """Test that output is discarded in both modes and that only detached children get a new session."""
    detached = launcher.Launcher(detached=True).popen_kwargs()
    attached = launcher.Launcher(detached=False).popen_kwargs()

    for kwargs in (detached, attached):
        assert kwargs["stdin"] == subprocess.DEVNULL
        assert kwargs["stdout"] == subprocess.DEVNULL
        assert kwargs["stderr"] == subprocess.DEVNULL
    assert detached["start_new_session"]
    assert "start_new_session" not in attached


@POSIX_ONLY
def test_detached_child_gets_own_session(tmpdir):
    """Test that a detached child leads its own session.

    Args:
        tmpdir (class): Fixture from pytest for creating a temporary directory
    """
    script = make_script(tmpdir, "sleeper.sh", "sleep 5")
    spawner = launcher.Launcher(detached=True)

    pid = spawner.launch(script)
    try:
        assert os.getsid(pid) == pid
        assert os.getpgid(pid) != os.getpgid(0)
        assert spawner.live_children == 1
    finally:
        os.kill(pid, signal.SIGKILL)
    assert wait_for_reap(spawner, 1) == 1
    assert spawner.live_children == 0


@POSIX_ONLY
def test_attached_child_stays_in_process_group(tmpdir):
    """Test that a non-detached child stays in the spawner's process group.

    Args:
        tmpdir (class): Fixture from pytest for creating a temporary directory
    """
    script = make_script(tmpdir, "sleeper.sh", "sleep 5")
    spawner = launcher.Launcher(detached=False)

    pid = spawner.launch(script, ["arg1"])
    try:
        assert os.getpgid(pid) == os.getpgid(0)
    finally:
        os.kill(pid, signal.SIGKILL)
    assert wait_for_reap(spawner, 1) == 1


def test_launch_failure(tmpdir):
    """Test that missing and non-executable targets raise LaunchFailure.

    Args:
        tmpdir (class): Fixture from pytest for creating a temporary directory
    """
    spawner = launcher.Launcher()
    not_executable = make_script(tmpdir, "plain.sh", "exit 0")
    not_executable.chmod(0o644)

    for target in [Path(tmpdir) / "vanished.sh", not_executable]:
        with pytest.raises(launcher.LaunchFailure) as excinfo:
            spawner.launch(target, ["arg1"])
        assert str(target) in str(excinfo.value)
    assert spawner.live_children == 0


@POSIX_ONLY
def test_reap_collects_exited_children(tmpdir):
    """Test that exited children are reaped and no longer tracked, while running ones are kept.

    Args:
        tmpdir (class): Fixture from pytest for creating a temporary directory
    """
    quick = make_script(tmpdir, "quick.sh", "exit 3")
    slow = make_script(tmpdir, "slow.sh", "sleep 5")
    spawner = launcher.Launcher(detached=False)

    quick_pids = [spawner.launch(quick) for _ in range(3)]
    slow_pid = spawner.launch(slow)
    try:
        assert len(set(quick_pids)) == 3
        assert wait_for_reap(spawner, 3) == 3
        assert spawner.live_children == 1
    finally:
        os.kill(slow_pid, signal.SIGKILL)
    assert wait_for_reap(spawner, 1) == 1
