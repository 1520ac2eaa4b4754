"""Environment-driven settings for the testbridge CLI."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


@dataclass(frozen=True)
class Settings:
    daemon_socket: str | None = None
    log_level: str = "warning"
    poll_interval: float = DEFAULT_POLL_INTERVAL


def _parse_interval(raw: str | None) -> float:
    if not raw:
        return DEFAULT_POLL_INTERVAL
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid TESTBRIDGE_POLL_INTERVAL=%r", raw)
        return DEFAULT_POLL_INTERVAL
    if value <= 0:
        logger.warning("Ignoring non-positive TESTBRIDGE_POLL_INTERVAL=%r", raw)
        return DEFAULT_POLL_INTERVAL
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Read settings from ``environ`` (defaults to os.environ)."""
    environ = os.environ if environ is None else environ
    return Settings(
        daemon_socket=environ.get("TESTBRIDGE_DAEMON_SOCKET") or None,
        log_level=(environ.get("TESTBRIDGE_LOG") or "warning").lower(),
        poll_interval=_parse_interval(environ.get("TESTBRIDGE_POLL_INTERVAL")),
    )
