"""
testbridge: run an application's tests through its build daemon.

`testbridge test` routes its own flags from the test runner's arguments,
picks the manifest flow (package.json projects) or the daemon stream flow
(compiled projects), and converts structured log output for the terminal
without breaking the test runner's JSON event stream.
"""

try:
    from importlib.metadata import version
    __version__ = version("testbridge")
except Exception:
    __version__ = "0.1.0"

from . import modules
