"""Test runs for compiled projects, streamed through the daemon."""

from __future__ import annotations

import logging
import sys
from typing import BinaryIO, Iterable

from .cancel import CancelToken
from .converter import convert_frame
from .daemon import DaemonClient
from .errors import EXIT_INTERRUPTED, TransportError
from .logfmt import OutputConverter
from .models import ExitStatus, TestRequest

logger = logging.getLogger(__name__)


def _write(out: BinaryIO, lines: Iterable[bytes]) -> None:
    for line in lines:
        out.write(line)
        out.flush()


def run_stream_flow(
    client: DaemonClient,
    request: TestRequest,
    converter: OutputConverter,
    token: CancelToken,
    stdout: BinaryIO | None = None,
    stderr: BinaryIO | None = None,
) -> int:
    """Stream a test run from the daemon, converting each frame as it arrives.

    Returns the exit code reported by the daemon.

    Raises:
        DaemonUnavailableError: If the stream cannot be opened.
        TransportError: If the stream fails or ends without a status.
    """
    stdout = sys.stdout.buffer if stdout is None else stdout
    stderr = sys.stderr.buffer if stderr is None else stderr
    outputs = {"stdout": stdout, "stderr": stderr}

    status: ExitStatus | None = None
    with client.run_test(request, token=token) as stream:
        for item in stream:
            if isinstance(item, ExitStatus):
                status = item
                break
            _write(outputs.get(item.stream, stdout), convert_frame(converter, item.data))

    if status is not None:
        logger.debug("daemon reported exit code %d", status.code)
        return status.code
    if token.cancelled:
        return EXIT_INTERRUPTED
    raise TransportError("daemon stream ended without an exit status")
