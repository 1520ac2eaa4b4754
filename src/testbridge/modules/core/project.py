"""
Application root discovery and project-kind detection.

Provides:
- find_app_root() to locate the directory holding the app marker file
- detect_project_kind() to pick between the manifest and compiled flows
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from .errors import AppRootNotFoundError

logger = logging.getLogger(__name__)

# File marking the root of an application
APP_MARKER = "testbridge.app"

# Package manifest whose presence makes a project manifest-based
MANIFEST_FILENAME = "package.json"


class ProjectKind(enum.Enum):
    MANIFEST = "manifest"
    COMPILED = "compiled"


def find_app_root(start: str | Path) -> tuple[Path, str]:
    """Walk up from ``start`` to the nearest directory containing APP_MARKER.

    Returns:
        (app_root, working_dir) where working_dir is ``start`` relative to the
        app root, using forward slashes ("." at the root itself).

    Raises:
        AppRootNotFoundError: If no ancestor contains the marker.
    """
    start_path = Path(start).resolve()
    for candidate in (start_path, *start_path.parents):
        if (candidate / APP_MARKER).is_file():
            rel = start_path.relative_to(candidate).as_posix()
            logger.debug("app root %s (working dir %s)", candidate, rel)
            return candidate, rel
    raise AppRootNotFoundError(
        f"no {APP_MARKER} found in {start_path} or any parent directory",
        start=str(start_path),
    )


def detect_project_kind(app_root: str | Path, prepare_only: bool = False) -> ProjectKind:
    """Decide which execution flow applies to ``app_root``.

    Preparing only makes sense for manifest-based projects, so ``prepare_only``
    always selects that flow.
    """
    if prepare_only:
        return ProjectKind.MANIFEST
    if (Path(app_root) / MANIFEST_FILENAME).exists():
        return ProjectKind.MANIFEST
    return ProjectKind.COMPILED
