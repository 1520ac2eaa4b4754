"""
Client for the testbridge build daemon.

The daemon listens on a per-application unix socket and speaks
newline-delimited JSON:

    -> {"cmd": "test_spec", "app_root": ..., "working_dir": ..., ...}
    <- {"status": "ok", "result": {"command": ..., "args": [...], "environ": [...]}}

    -> {"cmd": "test", ...}
    <- {"type": "output", "stream": "stdout", "data": "..."}   (repeated)
    <- {"type": "exit", "code": 0}
    -> {"cmd": "cancel"}                                      (optional)
"""

from __future__ import annotations

import hashlib
import json
import logging
import socket
import tempfile
from pathlib import Path
from typing import Any, Iterator

from .cancel import CancelToken
from .config import DEFAULT_POLL_INTERVAL
from .errors import (
    DaemonError,
    InterruptedRunError,
    TransportError,
    make_daemon_unavailable_error,
    make_not_found_error,
)
from .models import ExitStatus, OutputFrame, TestRequest, TestSpec

logger = logging.getLogger(__name__)

RECV_SIZE = 65536


def get_socket_path(app_root: str | Path, override: str | None = None) -> Path:
    """Compute the daemon socket path for an application."""
    if override:
        return Path(override)
    hash_val = hashlib.md5(str(Path(app_root).resolve()).encode()).hexdigest()[:8]
    return Path(tempfile.gettempdir()) / f"testbridge-{hash_val}.sock"


def _encode(message: dict[str, Any]) -> bytes:
    return json.dumps(message).encode() + b"\n"


def _decode(raw: bytes) -> dict[str, Any]:
    try:
        message = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TransportError(f"malformed daemon message: {e}") from e
    if not isinstance(message, dict):
        raise TransportError("malformed daemon message: expected an object")
    return message


class DaemonStream:
    """An open `test` stream.

    Iterating yields OutputFrame items followed by at most one ExitStatus.
    When the token is cancelled the daemon is told to stop straight away and
    the stream keeps draining until the daemon closes it.
    """

    def __init__(self, sock: socket.socket, token: CancelToken | None = None) -> None:
        self._sock = sock
        self._cancel_sent = False
        self._closed = False
        if token is not None:
            token.on_cancel(self.cancel)

    @property
    def cancelled(self) -> bool:
        return self._cancel_sent

    def __enter__(self) -> "DaemonStream":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._closed = True
        self._sock.close()

    def cancel(self) -> None:
        """Ask the daemon to stop and half-close our side of the connection."""
        if self._cancel_sent or self._closed:
            return
        self._cancel_sent = True
        logger.debug("sending cancel to daemon")
        try:
            self._sock.sendall(_encode({"cmd": "cancel"}))
            self._sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            # The daemon may already have closed the stream
            logger.debug("cancel not delivered: %s", e)

    def _lines(self) -> Iterator[bytes]:
        buf = b""
        while True:
            try:
                chunk = self._sock.recv(RECV_SIZE)
            except OSError as e:
                raise TransportError(f"daemon connection lost: {e}") from e
            if not chunk:
                break
            buf += chunk
            *lines, buf = buf.split(b"\n")
            for line in lines:
                if line.strip():
                    yield line
        if buf.strip():
            # A final message without its newline is still complete JSON
            yield buf

    def __iter__(self) -> Iterator[OutputFrame | ExitStatus]:
        for line in self._lines():
            message = _decode(line)
            kind = message.get("type")
            if kind == "output":
                data = message.get("data", "")
                if not isinstance(data, str):
                    raise TransportError("malformed output message from daemon")
                yield OutputFrame(data=data.encode("utf-8"), stream=message.get("stream", "stdout"))
            elif kind == "exit":
                code = message.get("code", 0)
                if isinstance(code, bool) or not isinstance(code, int):
                    raise TransportError(f"invalid exit code from daemon: {code!r}")
                yield ExitStatus(code=code)
                return
            elif kind == "error":
                raise TransportError(str(message.get("message", "daemon stream failed")))
            else:
                logger.debug("ignoring daemon message of type %r", kind)


class DaemonClient:
    """Talks to the daemon for one application."""

    def __init__(self, socket_path: str | Path, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.socket_path = Path(socket_path)
        self.poll_interval = poll_interval

    @classmethod
    def for_app(cls, app_root: str | Path, socket_override: str | None = None, **kwargs) -> "DaemonClient":
        return cls(get_socket_path(app_root, socket_override), **kwargs)

    def _connect(self) -> socket.socket:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(str(self.socket_path))
        except (FileNotFoundError, ConnectionRefusedError) as e:
            sock.close()
            raise make_daemon_unavailable_error(str(self.socket_path)) from e
        except OSError as e:
            sock.close()
            raise make_daemon_unavailable_error(str(self.socket_path), f"unreachable ({e})") from e
        return sock

    def request(self, command: dict[str, Any], token: CancelToken | None = None) -> dict[str, Any]:
        """Send one command and read its single JSON response.

        The wait for the response checks ``token`` every ``poll_interval``
        seconds.

        Raises:
            InterruptedRunError: If the token is cancelled before the daemon
                answers. The connection is closed.
        """
        sock = self._connect()
        try:
            sock.sendall(_encode(command))
            sock.settimeout(self.poll_interval)

            # Read response
            chunks = []
            while True:
                if token is not None and token.cancelled:
                    logger.debug("cancelled while waiting for %r response", command.get("cmd"))
                    raise InterruptedRunError(
                        "interrupted while waiting for the daemon",
                        command=command.get("cmd"),
                    )
                try:
                    chunk = sock.recv(RECV_SIZE)
                except socket.timeout:
                    continue
                if not chunk:
                    break
                chunks.append(chunk)
                if chunk.endswith(b"\n"):
                    break
        except OSError as e:
            raise TransportError(f"daemon connection lost: {e}") from e
        finally:
            sock.close()

        raw = b"".join(chunks)
        if not raw.strip():
            raise TransportError("daemon closed the connection without responding")
        return _decode(raw)

    def test_spec(self, request: TestRequest, token: CancelToken | None = None) -> TestSpec:
        """Ask the daemon how to run tests for a manifest-based project."""
        response = self.request({"cmd": "test_spec", **request.spec_payload()}, token=token)
        if response.get("status") == "ok":
            try:
                return TestSpec.from_dict(response.get("result"))
            except ValueError as e:
                raise DaemonError(f"invalid test spec from daemon: {e}") from e
        if response.get("code") == "not_found":
            raise make_not_found_error(request.app_root)
        raise DaemonError(str(response.get("message", "daemon request failed")))

    def run_test(self, request: TestRequest, token: CancelToken | None = None) -> DaemonStream:
        """Open the `test` stream for a compiled project."""
        sock = self._connect()
        try:
            sock.sendall(_encode({"cmd": "test", **request.run_payload()}))
        except OSError as e:
            sock.close()
            raise TransportError(f"could not start test stream: {e}") from e
        return DaemonStream(sock, token=token)
