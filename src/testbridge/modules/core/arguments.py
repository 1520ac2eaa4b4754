"""Routing of `testbridge test` arguments.

A handful of flags belong to testbridge itself; everything else is handed
verbatim to the project's test runner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HELP_FLAGS = frozenset({"-h", "--help"})
TRACE_FLAG = "--trace"


@dataclass(frozen=True)
class RoutedArgs:
    """Result of splitting control flags from passthrough arguments."""

    remaining: tuple[str, ...] = ()
    trace_file: str | None = None
    codegen_debug: bool = False
    prepare_only: bool = False
    no_color: bool = False
    show_help: bool = False


def route_args(args: list[str] | tuple[str, ...]) -> RoutedArgs:
    """Split recognized flags out of ``args``.

    Unrecognized tokens keep their relative order. ``-h``/``--help`` anywhere
    short-circuits routing. A trailing ``--trace`` with no value is dropped.
    """
    remaining: list[str] = []
    trace_file: str | None = None
    codegen_debug = False
    prepare_only = False
    no_color = False

    tokens = iter(args)
    for arg in tokens:
        if arg in HELP_FLAGS:
            return RoutedArgs(show_help=True)
        if arg == TRACE_FLAG:
            value = next(tokens, None)
            if value is None:
                logger.debug("--trace given without a value; ignoring")
            else:
                trace_file = value
        elif arg.startswith(TRACE_FLAG + "="):
            trace_file = arg.split("=", 1)[1]
        elif arg == "--codegen-debug":
            codegen_debug = True
        elif arg == "--prepare":
            prepare_only = True
        elif arg == "--no-color":
            no_color = True
        else:
            remaining.append(arg)

    return RoutedArgs(
        remaining=tuple(remaining),
        trace_file=trace_file,
        codegen_debug=codegen_debug,
        prepare_only=prepare_only,
        no_color=no_color,
    )
