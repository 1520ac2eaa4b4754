"""
testbridge structured error codes.

Error codes that tooling can programmatically handle:
- TESTBRIDGE_ERR_NOT_FOUND: Application defines no test command
- TESTBRIDGE_ERR_DAEMON: Daemon not running or unreachable
- TESTBRIDGE_ERR_TRANSPORT: Daemon connection failed mid-stream
- TESTBRIDGE_ERR_SUBPROCESS: Test runner could not start or died by signal
- TESTBRIDGE_ERR_APP_ROOT: No application root found
- TESTBRIDGE_ERR_INTERRUPTED: Run cancelled before the daemon answered
- TESTBRIDGE_ERR_INTERNAL: Anything else
"""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


# Error codes
ERR_NOT_FOUND = "TESTBRIDGE_ERR_NOT_FOUND"
ERR_DAEMON = "TESTBRIDGE_ERR_DAEMON"
ERR_TRANSPORT = "TESTBRIDGE_ERR_TRANSPORT"
ERR_SUBPROCESS = "TESTBRIDGE_ERR_SUBPROCESS"
ERR_APP_ROOT = "TESTBRIDGE_ERR_APP_ROOT"
ERR_INTERRUPTED = "TESTBRIDGE_ERR_INTERRUPTED"
ERR_INTERNAL = "TESTBRIDGE_ERR_INTERNAL"

# Exit code used for every fatal error
EXIT_FATAL = 1

# Exit code when a run is interrupted before it reports a status
EXIT_INTERRUPTED = 130


@dataclass
class StructuredError:
    """Structured error response for machine parsing."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


def make_error(code: str, message: str, **details) -> dict:
    """Create a structured error response dict."""
    return StructuredError(code=code, message=message, details=details).to_dict()


class TestBridgeError(Exception):
    """Base class for fatal errors. Carries a structured error code."""

    __test__ = False
    code = ERR_INTERNAL

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return make_error(self.code, self.message, **self.details)


class NotFoundError(TestBridgeError):
    """The daemon reports that the application has no test command."""

    code = ERR_NOT_FOUND


class DaemonError(TestBridgeError):
    """The daemon answered a request with an error."""

    code = ERR_DAEMON


class DaemonUnavailableError(DaemonError):
    """The daemon socket could not be reached."""


class TransportError(TestBridgeError):
    """The daemon stream broke or ended without a terminal status."""

    code = ERR_TRANSPORT


class SubprocessFailure(TestBridgeError):
    """The test runner failed to start or terminated abnormally."""

    code = ERR_SUBPROCESS


class AppRootNotFoundError(TestBridgeError):
    code = ERR_APP_ROOT


class InterruptedRunError(TestBridgeError):
    """A daemon call was abandoned because the run was cancelled."""

    code = ERR_INTERRUPTED


def make_not_found_error(app_root: str) -> NotFoundError:
    """Create the missing test command error with user guidance."""
    return NotFoundError(
        "application does not define any tests.\n"
        "Note: Add a 'test' script command to package.json to run tests.",
        app_root=app_root,
    )


def make_daemon_unavailable_error(socket_path: str, reason: str = "unreachable") -> DaemonUnavailableError:
    """Create a daemon error."""
    return DaemonUnavailableError(
        f"Daemon {reason} at {socket_path}. Is the testbridge daemon running?",
        socket=socket_path,
    )
