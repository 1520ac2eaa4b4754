import json
import shutil
import socketserver
import tempfile
import threading
from pathlib import Path

import pytest


class _Handler(socketserver.StreamRequestHandler):
    def handle(self):
        line = self.rfile.readline()
        if not line:
            return
        request = json.loads(line)
        self.server.requests.append(request)
        self.server.respond(self, request)

    def send(self, message: dict) -> None:
        self.wfile.write(json.dumps(message).encode() + b"\n")
        self.wfile.flush()


class _FakeDaemon(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True


@pytest.fixture
def socket_dir():
    # Unix socket paths are length-limited; tmp_path can be too deep.
    path = Path(tempfile.mkdtemp(prefix="tb-"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def fake_daemon(socket_dir):
    """Start an in-process daemon; ``respond(handler, request)`` answers."""
    servers = []

    def start(respond):
        server = _FakeDaemon(str(socket_dir / "d.sock"), _Handler)
        server.respond = respond
        server.requests = []
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        return server

    yield start
    for server in servers:
        server.shutdown()
        server.server_close()
