"""Stream flow tests: conversion, ordering, exit status and cancellation."""

import io
import json

import pytest

from testbridge.modules.core.cancel import CancelToken
from testbridge.modules.core.converter import select_converter
from testbridge.modules.core.daemon import DaemonClient
from testbridge.modules.core.errors import EXIT_INTERRUPTED, DaemonUnavailableError, TransportError
from testbridge.modules.core.models import ExitStatus, OutputFrame, TestRequest
from testbridge.modules.core.stream_flow import run_stream_flow


class FakeStream:
    def __init__(self, items, error=None):
        self.items = items
        self.error = error
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True

    def __iter__(self):
        yield from self.items
        if self.error is not None:
            raise self.error


class FakeClient:
    def __init__(self, stream):
        self.stream = stream
        self.requests = []

    def run_test(self, request, token=None):
        self.requests.append(request)
        return self.stream


REQUEST = TestRequest(app_root="/app", working_dir=".", args=("-json",))


def _run(items, converter=None, error=None, token=None):
    stream = FakeStream(items, error)
    stdout, stderr = io.BytesIO(), io.BytesIO()
    code = run_stream_flow(
        FakeClient(stream),
        REQUEST,
        converter or (lambda line: line),
        token or CancelToken(),
        stdout=stdout,
        stderr=stderr,
    )
    assert stream.closed
    return code, stdout.getvalue(), stderr.getvalue()


def test_exit_code_comes_from_stream():
    code, out, err = _run([OutputFrame(b"ok\n"), ExitStatus(0)])
    assert (code, out, err) == (0, b"ok\n", b"")

    code, _, _ = _run([ExitStatus(2)])
    assert code == 2


def _bracket(line):
    newline = b"\n" if line.endswith(b"\n") else b""
    return b"[" + line.rstrip(b"\n") + b"]" + newline


def test_frames_are_converted_per_line_in_order():
    items = [
        OutputFrame(b"a\nb"),
        OutputFrame(b"c\n"),
        OutputFrame(b"warn\n", stream="stderr"),
        OutputFrame(b"d\n"),
        ExitStatus(1),
    ]
    code, out, err = _run(items, converter=_bracket)
    assert code == 1
    assert out == b"[a]\n[b][c]\n[d]\n"
    assert err == b"[warn]\n"


def test_each_frame_is_converted_on_arrival():
    seen = []

    def record(line):
        seen.append(line)
        return line

    _, out, _ = _run([OutputFrame(b"first"), OutputFrame(b"second"), ExitStatus(0)], converter=record)
    assert seen == [b"first", b"second"]
    assert out == b"firstsecond"


def test_unterminated_tail_is_written_with_its_frame():
    _, out, _ = _run([OutputFrame(b"done\nno newline"), ExitStatus(0)])
    assert out == b"done\nno newline"


def test_event_lines_stay_valid_json():
    converter = select_converter(["-json"], colorize=False)
    events = [
        {"Action": "run", "Test": "TestA"},
        {"Action": "output", "Test": "TestA", "Output": '{"level":"info","message":"hi"}\n'},
    ]
    raw = b"".join(json.dumps(event).encode() + b"\n" for event in events)

    _, out, _ = _run([OutputFrame(raw), ExitStatus(0)], converter=converter)

    decoded = [json.loads(line) for line in out.splitlines()]
    assert decoded == [events[0], {**events[1], "Output": "INF hi\n"}]


def test_event_split_across_frames_passes_through():
    converter = select_converter(["-json"], colorize=False)
    event = {"Action": "output", "Test": "TestA", "Output": '{"level":"info","message":"hi"}\n'}
    raw = json.dumps(event).encode() + b"\n"

    _, out, _ = _run([OutputFrame(raw[:10]), OutputFrame(raw[10:]), ExitStatus(0)], converter=converter)

    assert out == raw


def test_stream_error_is_fatal():
    with pytest.raises(TransportError):
        _run([OutputFrame(b"partial")], error=TransportError("connection reset"))


def test_missing_status_is_a_transport_error():
    with pytest.raises(TransportError, match="without an exit status"):
        _run([OutputFrame(b"x\n")])


def test_missing_status_after_cancel_is_interrupted():
    token = CancelToken()
    token.cancel()
    code, out, _ = _run([OutputFrame(b"x\n")], token=token)
    assert code == EXIT_INTERRUPTED
    assert out == b"x\n"


def test_unreachable_daemon_is_fatal(socket_dir):
    client = DaemonClient(socket_dir / "missing.sock")
    with pytest.raises(DaemonUnavailableError):
        run_stream_flow(client, REQUEST, lambda line: line, CancelToken(), io.BytesIO(), io.BytesIO())


def test_interrupt_during_real_stream_keeps_lines_intact(fake_daemon):
    token = CancelToken()
    events = [
        {"Action": "output", "Test": "TestA", "Output": '{"level":"info","message":"one"}\n'},
        {"Action": "output", "Test": "TestA", "Output": '{"level":"info","message":"two"}\n'},
    ]

    def respond(handler, request):
        for event in events:
            handler.send({"type": "output", "stream": "stdout", "data": json.dumps(event) + "\n"})
        handler.server.cancel_message = handler.rfile.readline()
        handler.send({"type": "output", "stream": "stdout", "data": "--- interrupted\n"})

    base = select_converter(["-json"], colorize=False)

    def converter(line):
        # Interrupt as soon as the second event has been received
        if b"two" in line:
            token.cancel()
        return base(line)

    server = fake_daemon(respond)
    client = DaemonClient(server.server_address, poll_interval=0.01)
    stdout = io.BytesIO()

    code = run_stream_flow(client, REQUEST, converter, token, stdout=stdout, stderr=io.BytesIO())

    assert code == EXIT_INTERRUPTED
    assert json.loads(server.cancel_message) == {"cmd": "cancel"}
    lines = stdout.getvalue().splitlines(keepends=True)
    assert [json.loads(line)["Output"] for line in lines[:2]] == ["INF one\n", "INF two\n"]
    assert lines[2] == b"--- interrupted\n"
    assert len(lines) == 3
