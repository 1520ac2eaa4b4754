"""Core of the `testbridge test` command."""

from .arguments import RoutedArgs, route_args
from .cancel import CancelToken, interrupt_handler
from .config import Settings, load_settings
from .converter import (
    convert_frame,
    convert_test_event_output_only,
    select_converter,
    wants_test_events,
)
from .daemon import DaemonClient, DaemonStream, get_socket_path
from .errors import (
    EXIT_INTERRUPTED,
    AppRootNotFoundError,
    DaemonError,
    DaemonUnavailableError,
    InterruptedRunError,
    NotFoundError,
    SubprocessFailure,
    TestBridgeError,
    TransportError,
)
from .logfmt import OutputConverter, convert_json_logs
from .manifest_flow import run_manifest_flow
from .models import ExitStatus, OutputFrame, TestRequest, TestSpec
from .project import ProjectKind, detect_project_kind, find_app_root
from .runner import run_tests
from .stream_flow import run_stream_flow

__all__ = [
    "AppRootNotFoundError",
    "CancelToken",
    "DaemonClient",
    "DaemonError",
    "DaemonStream",
    "DaemonUnavailableError",
    "EXIT_INTERRUPTED",
    "ExitStatus",
    "InterruptedRunError",
    "NotFoundError",
    "OutputConverter",
    "OutputFrame",
    "ProjectKind",
    "RoutedArgs",
    "Settings",
    "SubprocessFailure",
    "TestBridgeError",
    "TestRequest",
    "TestSpec",
    "TransportError",
    "convert_frame",
    "convert_json_logs",
    "convert_test_event_output_only",
    "detect_project_kind",
    "find_app_root",
    "get_socket_path",
    "interrupt_handler",
    "load_settings",
    "route_args",
    "run_manifest_flow",
    "run_stream_flow",
    "run_tests",
    "select_converter",
    "wants_test_events",
]
