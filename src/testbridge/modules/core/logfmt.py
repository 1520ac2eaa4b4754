"""Console rendering of structured JSON log lines.

Daemon and test output interleaves plain text with JSON log records such as
``{"level":"info","time":"...","message":"listening","port":4000}``. The
converter built here renders those records as a single readable line,
optionally colorized, and leaves every other line untouched.
"""

from __future__ import annotations

import io
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Callable

from rich.console import Console
from rich.text import Text

logger = logging.getLogger(__name__)

OutputConverter = Callable[[bytes], bytes]

LEVEL_ABBREVIATIONS = {
    "trace": "TRC",
    "debug": "DBG",
    "info": "INF",
    "warn": "WRN",
    "warning": "WRN",
    "error": "ERR",
    "fatal": "FTL",
    "panic": "PNC",
}

LEVEL_STYLES = {
    "TRC": "magenta",
    "DBG": "yellow",
    "INF": "green",
    "WRN": "red",
    "ERR": "bold red",
    "FTL": "bold red",
    "PNC": "bold red",
}

# Keys rendered in fixed positions rather than as key=value pairs
RESERVED_KEYS = ("time", "level", "message", "msg", "caller", "error")


def reject_constant(name: str) -> Any:
    """Refuse NaN and Infinity, which are not valid JSON."""
    raise ValueError(f"invalid JSON constant {name}")


def supports_color(stream=None, environ: dict[str, str] | None = None) -> bool:
    """Check if the output stream is a terminal that accepts color."""
    stream = sys.stdout if stream is None else stream
    environ = os.environ if environ is None else environ

    isatty = getattr(stream, "isatty", None)
    if isatty is None or not isatty():
        return False
    if environ.get("NO_COLOR"):
        return False
    if environ.get("TERM") == "dumb":
        return False
    return True


def format_level(level: Any) -> str:
    if not isinstance(level, str) or not level:
        return "???"
    return LEVEL_ABBREVIATIONS.get(level.lower(), level[:3].upper())


def format_time(value: Any) -> str | None:
    """Format a record timestamp in kitchen style (3:04PM)."""
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        try:
            ts = datetime.fromtimestamp(value, tz=timezone.utc).astimezone()
        except (OverflowError, OSError, ValueError):
            return str(value)
    elif isinstance(value, str):
        try:
            ts = datetime.fromisoformat(value)
        except ValueError:
            return value
    else:
        return str(value)
    return ts.strftime("%I:%M%p").lstrip("0")


def format_value(value: Any) -> str:
    if isinstance(value, str):
        if value and not any(ch.isspace() or ch in "\"=" for ch in value):
            return value
        return json.dumps(value, ensure_ascii=False)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def format_record(record: dict[str, Any]) -> Text:
    """Build the styled console line for one log record."""
    text = Text()

    ts = format_time(record.get("time"))
    if ts:
        text.append(ts, style="dim")
        text.append(" ")

    level = format_level(record.get("level"))
    text.append(level, style=LEVEL_STYLES.get(level, "bold"))

    caller = record.get("caller")
    if caller is not None:
        text.append(" ")
        text.append(f"{caller} >", style="bold")

    message = record.get("message", record.get("msg"))
    if message is not None:
        text.append(" ")
        text.append(message if isinstance(message, str) else format_value(message))

    error = record.get("error")
    if error is not None:
        text.append(" ")
        text.append("error=", style="red")
        text.append(format_value(error), style="bold red")

    for key in sorted(k for k in record if k not in RESERVED_KEYS):
        text.append(" ")
        text.append(f"{key}=", style="cyan")
        text.append(format_value(record[key]))

    return text


class LogRenderer:
    """Renders styled text to a plain or ANSI string."""

    def __init__(self, colorize: bool) -> None:
        self.colorize = colorize
        self._console = None
        if colorize:
            self._console = Console(
                file=io.StringIO(),
                force_terminal=True,
                color_system="standard",
                highlight=False,
                markup=False,
                emoji=False,
                no_color=False,
                soft_wrap=True,
            )

    def render(self, text: Text) -> str:
        if self._console is None:
            return text.plain
        with self._console.capture() as capture:
            self._console.print(text, end="")
        return capture.get()


def _split_newline(line: bytes) -> tuple[bytes, bytes]:
    if line.endswith(b"\r\n"):
        return line[:-2], b"\r\n"
    if line.endswith(b"\n"):
        return line[:-1], b"\n"
    return line, b""


def convert_json_logs(colorize: bool) -> OutputConverter:
    """Return a converter that renders JSON log lines for the console.

    Lines that are not a JSON object pass through unchanged.
    """
    renderer = LogRenderer(colorize)

    def convert(line: bytes) -> bytes:
        if not line or line[:1] != b"{":
            return line
        body, newline = _split_newline(line)
        try:
            record = json.loads(body.decode("utf-8"), parse_constant=reject_constant)
        except ValueError:
            return line
        if not isinstance(record, dict):
            return line
        return renderer.render(format_record(record)).encode("utf-8") + newline

    return convert
