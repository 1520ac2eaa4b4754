"""Test runs for manifest-based projects.

The daemon resolves the command line (command, arguments, environment) and
the test runner is executed directly, attached to the invoking terminal.
"""

from __future__ import annotations

import logging
import signal
import subprocess
import sys
import time
from typing import TextIO

from .cancel import CancelToken
from .config import DEFAULT_POLL_INTERVAL
from .daemon import DaemonClient
from .errors import EXIT_INTERRUPTED, InterruptedRunError, SubprocessFailure
from .models import TestRequest, TestSpec

logger = logging.getLogger(__name__)

# Seconds a cancelled child gets to exit on the terminal's own interrupt
# before it is sent one explicitly.
INTERRUPT_GRACE = 2.0


def print_environ(spec: TestSpec, out: TextIO | None = None) -> None:
    out = sys.stdout if out is None else out
    for line in spec.environ:
        print(line, file=out)


def run_test_command(
    spec: TestSpec,
    token: CancelToken,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    interrupt_grace: float = INTERRUPT_GRACE,
) -> int:
    """Run the resolved test command and return its exit code.

    stdin/stdout/stderr are inherited; output is not converted.

    Raises:
        SubprocessFailure: If the command cannot be started or is killed by
            a signal.
    """
    argv = [spec.command, *spec.args]
    logger.debug("running %s", argv)
    try:
        proc = subprocess.Popen(argv, env=spec.env_dict())
    except OSError as e:
        raise SubprocessFailure(f"could not start {spec.command}: {e}", command=spec.command) from e

    cancelled_at: float | None = None
    interrupted = False
    while True:
        try:
            returncode = proc.wait(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            pass
        if not token.cancelled or interrupted:
            continue
        if cancelled_at is None:
            cancelled_at = time.monotonic()
        if time.monotonic() - cancelled_at >= interrupt_grace:
            logger.debug("interrupting test runner (pid %d)", proc.pid)
            proc.send_signal(signal.SIGINT)
            interrupted = True

    if returncode < 0:
        raise SubprocessFailure(
            f"{spec.command} terminated by signal {-returncode}",
            command=spec.command,
            signal=-returncode,
        )
    return returncode


def run_manifest_flow(
    client: DaemonClient,
    request: TestRequest,
    token: CancelToken,
    prepare_only: bool = False,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    out: TextIO | None = None,
) -> int:
    """Resolve the test command through the daemon and run it.

    With ``prepare_only`` the resolved environment is printed, one entry per
    line, and nothing is executed. Cancelling ``token`` while the daemon is
    resolving the command returns EXIT_INTERRUPTED.
    """
    try:
        spec = client.test_spec(request, token=token)
    except InterruptedRunError:
        return EXIT_INTERRUPTED
    if prepare_only:
        print_environ(spec, out)
        return 0
    return run_test_command(spec, token, poll_interval=poll_interval)
