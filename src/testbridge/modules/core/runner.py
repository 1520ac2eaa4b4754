"""Entry point for a `test` invocation once arguments are routed."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

from .arguments import RoutedArgs
from .cancel import CancelToken
from .config import DEFAULT_POLL_INTERVAL
from .converter import select_converter
from .daemon import DaemonClient
from .logfmt import supports_color
from .manifest_flow import run_manifest_flow
from .models import TestRequest
from .project import ProjectKind, detect_project_kind
from .stream_flow import run_stream_flow

logger = logging.getLogger(__name__)


def current_environ() -> tuple[str, ...]:
    return tuple(f"{key}={value}" for key, value in os.environ.items())


def build_request(
    app_root: str | Path,
    working_dir: str,
    routed: RoutedArgs,
    environ: Iterable[str] | None = None,
) -> TestRequest:
    return TestRequest(
        app_root=str(app_root),
        working_dir=working_dir,
        args=tuple(routed.remaining),
        environ=current_environ() if environ is None else tuple(environ),
        trace_file=routed.trace_file or None,
        codegen_debug=routed.codegen_debug,
    )


def run_tests(
    app_root: str | Path,
    working_dir: str,
    routed: RoutedArgs,
    client: DaemonClient,
    token: CancelToken,
    environ: Iterable[str] | None = None,
    colorize: bool | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> int:
    """Run tests for the application at ``app_root`` and return the exit code."""
    request = build_request(app_root, working_dir, routed, environ)
    kind = detect_project_kind(app_root, routed.prepare_only)
    logger.debug("running %s tests in %s", kind.value, app_root)

    if kind is ProjectKind.MANIFEST:
        return run_manifest_flow(
            client,
            request,
            token,
            prepare_only=routed.prepare_only,
            poll_interval=poll_interval,
        )

    if colorize is None:
        colorize = not routed.no_color and supports_color()
    converter = select_converter(routed.remaining, colorize)
    return run_stream_flow(client, request, converter, token)
