"""Request and response records exchanged with the daemon."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


def _string_tuple(value: Any, name: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"{name} must be a list of strings")
    return tuple(value)


@dataclass(frozen=True)
class TestRequest:
    """One `test` invocation, as sent to the daemon."""

    __test__ = False

    app_root: str
    working_dir: str
    args: tuple[str, ...] = ()
    environ: tuple[str, ...] = ()
    trace_file: str | None = None
    codegen_debug: bool = False

    def spec_payload(self) -> dict[str, Any]:
        """Payload for the `test_spec` call (manifest-based projects)."""
        return {
            "app_root": self.app_root,
            "working_dir": self.working_dir,
            "args": list(self.args),
            "environ": list(self.environ),
        }

    def run_payload(self) -> dict[str, Any]:
        """Payload for the `test` stream (compiled projects)."""
        payload = self.spec_payload()
        # An empty trace path means "no trace"
        if self.trace_file:
            payload["trace_file"] = self.trace_file
        payload["codegen_debug"] = self.codegen_debug
        return payload


@dataclass(frozen=True)
class TestSpec:
    """How to invoke the project's own test runner."""

    __test__ = False

    command: str
    args: tuple[str, ...] = ()
    environ: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "TestSpec":
        if not isinstance(data, dict):
            raise ValueError("test spec must be an object")
        command = data.get("command")
        if not isinstance(command, str) or not command:
            raise ValueError("test spec has no command")
        return cls(
            command=command,
            args=_string_tuple(data.get("args"), "args"),
            environ=_string_tuple(data.get("environ"), "environ"),
        )

    def env_dict(self) -> dict[str, str]:
        """Environment mapping for subprocess; entries without '=' are skipped."""
        env: dict[str, str] = {}
        for entry in self.environ:
            key, sep, value = entry.partition("=")
            if sep and key:
                env[key] = value
        return env


@dataclass(frozen=True)
class ExitStatus:
    """Terminal status reported by the daemon at the end of a stream."""

    code: int


@dataclass(frozen=True)
class OutputFrame:
    """A chunk of output received from the daemon."""

    data: bytes
    stream: str = "stdout"
