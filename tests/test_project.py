from pathlib import Path

import pytest

from testbridge.modules.core.errors import AppRootNotFoundError
from testbridge.modules.core.project import (
    APP_MARKER,
    ProjectKind,
    detect_project_kind,
    find_app_root,
)


def test_compiled_project_without_manifest(tmp_path: Path) -> None:
    assert detect_project_kind(tmp_path) is ProjectKind.COMPILED


def test_manifest_project(tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text('{"scripts": {"test": "vitest"}}')
    assert detect_project_kind(tmp_path) is ProjectKind.MANIFEST


def test_prepare_forces_manifest_flow(tmp_path: Path) -> None:
    assert detect_project_kind(tmp_path, prepare_only=True) is ProjectKind.MANIFEST


def test_detection_does_not_touch_the_filesystem(tmp_path: Path) -> None:
    detect_project_kind(tmp_path)
    detect_project_kind(tmp_path, prepare_only=True)
    assert list(tmp_path.iterdir()) == []


def test_find_app_root_at_root(tmp_path: Path) -> None:
    (tmp_path / APP_MARKER).write_text("{}")
    root, rel = find_app_root(tmp_path)
    assert root == tmp_path.resolve()
    assert rel == "."


def test_find_app_root_from_subdirectory(tmp_path: Path) -> None:
    (tmp_path / APP_MARKER).write_text("{}")
    nested = tmp_path / "svc" / "users"
    nested.mkdir(parents=True)

    root, rel = find_app_root(nested)

    assert root == tmp_path.resolve()
    assert rel == "svc/users"


def test_find_app_root_prefers_nearest_marker(tmp_path: Path) -> None:
    (tmp_path / APP_MARKER).write_text("{}")
    inner = tmp_path / "inner"
    inner.mkdir()
    (inner / APP_MARKER).write_text("{}")

    root, rel = find_app_root(inner)

    assert root == inner.resolve()
    assert rel == "."


def test_find_app_root_missing(tmp_path: Path) -> None:
    with pytest.raises(AppRootNotFoundError) as excinfo:
        find_app_root(tmp_path)
    assert APP_MARKER in str(excinfo.value)
    assert excinfo.value.to_dict()["code"] == "TESTBRIDGE_ERR_APP_ROOT"
