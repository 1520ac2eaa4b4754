"""Per-line output conversion for test runs.

Two modes:
- base: render JSON log lines for the console (see logfmt)
- test-event: when the test runner emits its machine-readable event stream
  (``-json``), only the ``Output`` payload of ``output`` events is converted,
  and the event is re-encoded so downstream parsers still see valid events.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

from .logfmt import OutputConverter, convert_json_logs, reject_constant

logger = logging.getLogger(__name__)

# Passthrough arguments that switch the test runner to the event protocol
JSON_EVENT_FLAGS = frozenset({"-json", "--json", "-json=true", "--json=true"})

# Typed fields of a test event. Anything else is carried along untouched.
_EVENT_FIELD_TYPES: dict[str, tuple[type, ...]] = {
    "Time": (str,),
    "Action": (str,),
    "Package": (str,),
    "Test": (str,),
    "Elapsed": (int, float),
    "Output": (str,),
}


def wants_test_events(args: Iterable[str]) -> bool:
    """True if the passthrough arguments request the test event protocol."""
    return any(arg in JSON_EVENT_FLAGS for arg in args)


def decode_test_event(line: bytes) -> dict[str, Any] | None:
    """Decode one event line, keeping unknown fields and their order.

    Returns None if the line is not a well-formed test event.
    """
    try:
        event = json.loads(line.decode("utf-8"), parse_constant=reject_constant)
    except ValueError:
        return None
    if not isinstance(event, dict):
        return None
    for key, types in _EVENT_FIELD_TYPES.items():
        value = event.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, types):
            return None
    return event


def encode_test_event(event: dict[str, Any]) -> bytes:
    return json.dumps(event, ensure_ascii=False, separators=(",", ":")).encode("utf-8") + b"\n"


def convert_test_event_output_only(converter: OutputConverter) -> OutputConverter:
    """Wrap ``converter`` so it only touches ``Output`` of ``output`` events.

    Every failure path returns the line unchanged.
    """

    def convert(line: bytes) -> bytes:
        # If this isn't a JSON line, just return it as-is
        if not line or line[:1] != b"{":
            return line

        event = decode_test_event(line)
        if event is None:
            logger.debug("not a test event, passing through: %r", line[:80])
            return line
        if event.get("Action") != "output":
            return line

        output = event.get("Output")
        if not output or output[0] != "{":
            return line

        try:
            converted = converter(output.encode("utf-8")).decode("utf-8")
        except UnicodeDecodeError:
            return line
        event["Output"] = converted
        return encode_test_event(event)

    return convert


def select_converter(args: Iterable[str], colorize: bool) -> OutputConverter:
    """Pick the converter for a run given its passthrough arguments."""
    converter = convert_json_logs(colorize)
    if wants_test_events(args):
        converter = convert_test_event_output_only(converter)
    return converter


def convert_frame(converter: OutputConverter, data: bytes) -> list[bytes]:
    """Convert one output frame line by line.

    Lines keep their ``\\n``; an unterminated tail is converted as-is rather
    than carried into the next frame.
    """
    *lines, tail = data.split(b"\n")
    converted = [converter(line + b"\n") for line in lines]
    if tail:
        converted.append(converter(tail))
    return converted
