#!/usr/bin/env python3
"""
testbridge CLI - run an application's tests through its build daemon.

Usage:
    testbridge test [flags] [test runner args]    Run tests

`test` forwards every argument it does not recognize to the test runner, so
its arguments bypass argparse entirely.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

from . import __version__
from .modules.core.arguments import route_args
from .modules.core.cancel import CancelToken, interrupt_handler
from .modules.core.config import Settings, load_settings
from .modules.core.daemon import DaemonClient
from .modules.core.errors import EXIT_FATAL, ERR_INTERNAL, TestBridgeError, make_error
from .modules.core.project import find_app_root
from .modules.core.runner import run_tests

logger = logging.getLogger(__name__)

TEST_COMMAND = "test"


def _machine_error(error: dict, args) -> None:
    """Report a fatal error on stderr, as JSON if --machine is set."""
    if getattr(args, "machine", False):
        print(json.dumps(error, separators=(",", ":"), ensure_ascii=False), file=sys.stderr)
    else:
        print(f"Error: {error['message']}", file=sys.stderr)


def _configure_logging(verbose: bool, settings: Settings) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> tuple[argparse.ArgumentParser, argparse.ArgumentParser]:
    """Build the top-level parser and the `test` parser (used for help text)."""
    parser = argparse.ArgumentParser(
        prog="testbridge",
        description="Run an application's tests through its build daemon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Version: %(prog)s """ + __version__ + """

Examples:
    testbridge test ./...                    # Run all tests
    testbridge test -json ./...              # Machine-readable test events
    testbridge test --trace=build.trace      # Capture build diagnostics
    testbridge test --prepare                # Print the test environment

Environment:
    TESTBRIDGE_DAEMON_SOCKET   Daemon socket path (default: derived from app root)
    TESTBRIDGE_LOG             Log level (debug, info, warning, error)
    TESTBRIDGE_POLL_INTERVAL   Seconds between cancellation checks
    NO_COLOR                   Disable colorized output
        """,
    )

    # Global flags
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging on stderr",
    )
    parser.add_argument(
        "--machine",
        action="store_true",
        help="Report fatal errors as JSON on stderr",
    )

    # Shell completion support
    try:
        import shtab
        shtab.add_argument_to(parser, ["--print-completion", "-s"])
    except ImportError:
        pass  # shtab is optional

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Flag parsing is done by route_args(); these definitions only feed the
    # help text.
    test_p = subparsers.add_parser(
        TEST_COMMAND,
        help="Tests your application",
        description="Tests your application. Takes all the same flags as the test runner.",
        usage="testbridge test [flags] [test runner args]",
        add_help=False,
    )
    test_p.add_argument("-h", "--help", action="store_true", help="Show this help message and exit")
    test_p.add_argument(
        "--trace",
        metavar="FILE",
        help="Write trace information about the parse and compilation process to FILE",
    )
    test_p.add_argument(
        "--codegen-debug",
        action="store_true",
        help="Dump generated code (for debugging code generation)",
    )
    test_p.add_argument(
        "--prepare",
        action="store_true",
        help="Prepare for running tests (without running them)",
    )
    test_p.add_argument("--no-color", action="store_true", help="Disable colorized output")

    return parser, test_p


def split_command(argv: list[str]) -> tuple[list[str], list[str] | None]:
    """Split ``argv`` into global arguments and the arguments after `test`.

    Returns (argv, None) when the first command word is not `test`.
    """
    for index, arg in enumerate(argv):
        if arg.startswith("-"):
            continue
        if arg == TEST_COMMAND:
            return argv[:index], argv[index + 1:]
        break
    return argv, None


def cmd_test(test_argv: list[str], args, settings: Settings, test_parser: argparse.ArgumentParser) -> int:
    """Handle `testbridge test`."""
    routed = route_args(test_argv)
    if routed.show_help:
        test_parser.print_help()
        return 0

    token = CancelToken()
    try:
        app_root, working_dir = find_app_root(Path.cwd())
        client = DaemonClient.for_app(
            app_root,
            settings.daemon_socket,
            poll_interval=settings.poll_interval,
        )
        with interrupt_handler(token):
            return run_tests(
                app_root,
                working_dir,
                routed,
                client,
                token,
                poll_interval=settings.poll_interval,
            )
    except TestBridgeError as e:
        logger.debug("fatal error", exc_info=True)
        _machine_error(e.to_dict(), args)
        return EXIT_FATAL
    except Exception as e:
        logger.debug("unexpected error", exc_info=True)
        _machine_error(make_error(ERR_INTERNAL, str(e)), args)
        return EXIT_FATAL


def main(argv: list[str] | None = None):
    argv = sys.argv[1:] if argv is None else list(argv)
    parser, test_parser = build_parser()

    global_argv, test_argv = split_command(argv)
    if test_argv is None:
        # No `test` command: let argparse report help, version or usage errors
        parser.parse_args(argv)
        parser.error("the following arguments are required: command")

    args = parser.parse_args(global_argv + [TEST_COMMAND])
    settings = load_settings()
    _configure_logging(args.verbose, settings)
    sys.exit(cmd_test(test_argv, args, settings, test_parser))


if __name__ == "__main__":
    main()
