"""Tests for ProjectSessionStore."""

import json
from pathlib import Path

from codebox.registry import ProjectRegistry
from codebox.sessions import ProjectSessionStore


def _enable_copy(project_dir: Path) -> None:
    (project_dir / ".codespin" / "codebox.json").write_text(json.dumps({"dockerImage": "alpine:3", "copy": True}))


def test_unregistered_project_gets_no_session(registry: ProjectRegistry, tmp_path: Path) -> None:
    store = ProjectSessionStore(registry)
    assert store.open_session(tmp_path) is None


def test_session_works_on_project_directory(registry: ProjectRegistry, project_dir: Path) -> None:
    store = ProjectSessionStore(registry)
    session_id = store.open_session(project_dir)
    assert session_id is not None
    assert store.exists(session_id)
    info = store.get(session_id)
    assert info.project_dir == project_dir
    assert info.working_dir == project_dir
    assert info.is_temp_dir is False

    assert store.close_session(session_id) is True
    assert not store.exists(session_id)
    assert project_dir.is_dir()


def test_each_open_gets_a_new_id(registry: ProjectRegistry, project_dir: Path) -> None:
    store = ProjectSessionStore(registry)
    assert store.open_session(project_dir) != store.open_session(project_dir)


def test_copy_mode_works_on_temp_copy(registry: ProjectRegistry, project_dir: Path) -> None:
    _enable_copy(project_dir)
    (project_dir / "src.txt").write_text("original")
    store = ProjectSessionStore(registry)

    session_id = store.open_session(project_dir)
    working_dir = store.working_dir(session_id)

    assert working_dir != project_dir
    assert working_dir.name.startswith("codebox-project-session-")
    assert (working_dir / "src.txt").read_text() == "original"
    (working_dir / "src.txt").write_text("changed")
    assert (project_dir / "src.txt").read_text() == "original"

    store.close_session(session_id)
    assert not working_dir.exists()


def test_close_unknown_session(registry: ProjectRegistry) -> None:
    store = ProjectSessionStore(registry)
    assert store.close_session("nope") is False
    assert store.working_dir("nope") is None


def test_close_all_removes_temp_copies(registry: ProjectRegistry, project_dir: Path) -> None:
    _enable_copy(project_dir)
    store = ProjectSessionStore(registry)
    ids = [store.open_session(project_dir) for _ in range(2)]
    dirs = [store.working_dir(i) for i in ids]

    store.close_all()

    assert not any(store.exists(i) for i in ids)
    assert not any(d.exists() for d in dirs)
