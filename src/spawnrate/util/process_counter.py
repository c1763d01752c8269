# coding=utf-8
#
# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.

"""Count running processes whose command line matches the spawned executable.

The process table is read by parsing |ps| output. Matching is approximate: the default matcher looks for the
executable path anywhere in the command line, the way `pgrep -f` does.
"""

import os
import re
import shlex
import subprocess

from .logging_helpers import get_logger

LOG_PROCESS_COUNTER = get_logger(__name__)

PS_CMD = ["ps",
          "-A",  # every process, including those without a controlling terminal
          "-ww",  # never truncate the command line
          "-o", "pid=",
          "-o", "args="]
PS_TIMEOUT = 10


class CounterQueryFailure(Exception):
    """Raised when the process table cannot be read."""


class SubstringMatcher:
    """Match command lines containing |text|.

    Args:
        text (str): Text to look for, usually the executable path
    """

    def __init__(self, text):
        self.text = str(text)

    def __call__(self, command_line):
        return self.text in command_line

    def __repr__(self):
        return f"{self.__class__.__name__}({self.text!r})"


class RegexMatcher:
    """Match command lines against a regular expression using re.search.

    Args:
        pattern (str): Regular expression
    """

    def __init__(self, pattern):
        self.pattern = re.compile(pattern)

    def __call__(self, command_line):
        return self.pattern.search(command_line) is not None

    def __repr__(self):
        return f"{self.__class__.__name__}({self.pattern.pattern!r})"


class ExactArgvMatcher:
    """Match command lines whose leading argv tokens contain |path| exactly.

    Only argv[0] and argv[1] are considered: argv[1] covers scripts run through an interpreter, e.g.
    `/bin/sh /path/to/job.sh`, which is how the kernel reports a script started via its shebang line.

    Args:
        path (str): Executable path
    """

    def __init__(self, path):
        self.path = str(path)

    def __call__(self, command_line):
        try:
            argv = shlex.split(command_line)
        except ValueError:
            argv = command_line.split()
        return self.path in argv[:2]

    def __repr__(self):
        return f"{self.__class__.__name__}({self.path!r})"


MATCHERS = {
    "substring": SubstringMatcher,
    "regex": RegexMatcher,
    "argv": ExactArgvMatcher,
}


def make_matcher(mode, executable):
    """Build the matcher named by |mode| for |executable|.

    Args:
        mode (str): One of the keys of MATCHERS
        executable (Path): Path of the spawned executable

    Raises:
        ValueError: If |mode| is unknown

    Returns:
        callable: Matcher taking a command line string and returning a bool
    """
    try:
        matcher_cls = MATCHERS[mode]
    except KeyError:
        raise ValueError(f"Unknown match mode {mode!r}, choose from: {', '.join(sorted(MATCHERS))}") from None
    if matcher_cls is RegexMatcher:
        return matcher_cls(r"(^|\s)" + re.escape(str(executable)) + r"(\s|$)")
    return matcher_cls(executable)


def parse_ps_output(output):
    """Turn |ps -o pid=,args=| output into (pid, command line) tuples.

    Args:
        output (str): Output of PS_CMD

    Returns:
        list: (int, str) tuples, one per process
    """
    processes = []
    for line in output.splitlines():
        parts = line.strip().split(None, 1)  # Only the command, which is last, can contain spaces
        if not parts or not parts[0].isdigit():
            continue
        processes.append((int(parts[0]), parts[1] if len(parts) > 1 else ""))
    return processes


def list_processes():
    """Read the process table. Command lines that are not valid UTF-8 are decoded with replacement characters.

    Raises:
        CounterQueryFailure: If |ps| cannot be run or fails

    Returns:
        list: (int, str) tuples of pid and command line
    """
    try:
        ps_run = subprocess.run(PS_CMD,
                                stdin=subprocess.DEVNULL,
                                stdout=subprocess.PIPE,
                                stderr=subprocess.DEVNULL,
                                timeout=PS_TIMEOUT,
                                check=True)
    except (OSError, subprocess.SubprocessError) as ex:
        raise CounterQueryFailure(f"Unable to list processes: {ex!r}") from ex
    return parse_ps_output(ps_run.stdout.decode("utf-8", errors="replace"))


def count_running(matcher):
    """Count the processes whose command line satisfies |matcher|. The calling process is never counted.

    If the process table cannot be read, 0 is returned so that a ceiling wait never blocks on a count it cannot
    measure.

    Args:
        matcher (callable): Takes a command line string, returns a bool

    Returns:
        int: Number of matching processes
    """
    try:
        processes = list_processes()
    except CounterQueryFailure as ex:
        LOG_PROCESS_COUNTER.warning("%s, assuming none are running", ex)
        return 0

    own_pid = os.getpid()
    return sum(1 for pid, command_line in processes if pid != own_pid and matcher(command_line))
