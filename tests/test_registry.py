"""Tests for the project registry and per-project config."""

import json
from pathlib import Path

import pytest

from codebox.registry import ProjectRegistry


def _write_registry(registry: ProjectRegistry, data: object) -> None:
    registry.registry_file.write_text(json.dumps(data))


def test_missing_registry_file_is_empty(registry: ProjectRegistry, tmp_path: Path) -> None:
    assert registry.list_projects() == []
    assert registry.is_registered_project(tmp_path) is False
    assert registry.is_debug_enabled() is False


def test_malformed_registry_is_treated_as_empty(registry: ProjectRegistry, tmp_path: Path) -> None:
    registry.registry_file.write_text("{not json")
    assert registry.list_projects() == []
    assert registry.is_registered_project(tmp_path) is False


def test_string_and_object_entries(registry: ProjectRegistry, tmp_path: Path) -> None:
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    _write_registry(
        registry,
        {
            "projects": [str(a), {"hostPath": str(b), "dockerImage": "node:20", "network": "dev"}, 42, {"x": 1}],
            "debug": True,
        },
    )
    projects = registry.list_projects()
    assert [p.path for p in projects] == [str(a.resolve()), str(b.resolve())]
    assert projects[1].docker_image == "node:20"
    assert registry.is_debug_enabled() is True


def test_registered_project_must_exist_and_be_directory(registry: ProjectRegistry, tmp_path: Path) -> None:
    missing = tmp_path / "missing"
    a_file = tmp_path / "file.txt"
    a_file.write_text("x")
    _write_registry(registry, {"projects": [str(missing), str(a_file)]})
    assert registry.is_registered_project(missing) is False
    assert registry.is_registered_project(a_file) is False


def test_registration_is_exact_path_match(registry: ProjectRegistry, project_dir: Path, tmp_path: Path) -> None:
    (project_dir / "sub").mkdir()
    sibling = tmp_path / "project-2"
    sibling.mkdir()
    assert registry.is_registered_project(project_dir) is True
    assert registry.is_registered_project(str(project_dir) + "/") is True
    assert registry.is_registered_project(project_dir / "sub") is False
    assert registry.is_registered_project(sibling) is False


def test_docker_image_from_project_config(registry: ProjectRegistry, project_dir: Path) -> None:
    assert registry.docker_image_for(project_dir) == "alpine:3"


def test_docker_image_falls_back_to_registry_entry(registry: ProjectRegistry, tmp_path: Path) -> None:
    root = tmp_path / "p"
    root.mkdir()
    _write_registry(registry, {"projects": [{"path": str(root), "dockerImage": "python:3.12"}]})
    assert registry.docker_image_for(root) == "python:3.12"


def test_malformed_project_config_means_no_image(registry: ProjectRegistry, project_dir: Path) -> None:
    (project_dir / ".codespin" / "codebox.json").write_text("][")
    assert registry.docker_image_for(project_dir) is None


def test_unregistered_project_has_no_image(registry: ProjectRegistry, tmp_path: Path) -> None:
    root = tmp_path / "p"
    (root / ".codespin").mkdir(parents=True)
    (root / ".codespin" / "codebox.json").write_text(json.dumps({"dockerImage": "alpine"}))
    assert registry.docker_image_for(root) is None


def test_project_config_overrides(registry: ProjectRegistry, project_dir: Path) -> None:
    (project_dir / ".codespin" / "codebox.json").write_text(
        json.dumps({"dockerImage": "rust:1", "network": "isolated", "copy": True})
    )
    cfg = registry.project_config(project_dir)
    assert cfg is not None
    assert cfg.docker_image == "rust:1"
    assert cfg.copy_on_open is True
    assert registry.network_for(project_dir) == "isolated"


def test_add_project_is_idempotent(registry: ProjectRegistry, tmp_path: Path) -> None:
    root = tmp_path / "p"
    root.mkdir()
    assert registry.add_project(root) is True
    assert registry.add_project(root) is False
    assert json.loads(registry.registry_file.read_text())["projects"] == [str(root.resolve())]


def test_add_project_requires_directory(registry: ProjectRegistry, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        registry.add_project(tmp_path / "nope")
    (tmp_path / "file").write_text("x")
    with pytest.raises(NotADirectoryError):
        registry.add_project(tmp_path / "file")


def test_remove_project_keeps_other_entries(registry: ProjectRegistry, tmp_path: Path) -> None:
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    _write_registry(registry, {"projects": [str(a), {"path": str(b), "dockerImage": "x"}], "debug": True})
    registry.remove_project(a)
    data = json.loads(registry.registry_file.read_text())
    assert data == {"projects": [{"path": str(b), "dockerImage": "x"}], "debug": True}
    with pytest.raises(KeyError):
        registry.remove_project(a)


def test_init_project_writes_config_at_git_root(
    registry: ProjectRegistry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()
    monkeypatch.setattr("codebox.registry.get_git_root", lambda working_dir: repo)

    path = registry.init_project(repo / "sub", "python:3.12")

    assert path == repo / ".codespin" / "codebox.json"
    assert json.loads(path.read_text()) == {"dockerImage": "python:3.12"}
    with pytest.raises(FileExistsError):
        registry.init_project(repo, "node:20")
    registry.init_project(repo, "node:20", force=True)
    assert json.loads(path.read_text()) == {"dockerImage": "node:20"}


def test_init_project_outside_git_fails(
    registry: ProjectRegistry, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("codebox.registry.get_git_root", lambda working_dir: None)
    with pytest.raises(ValueError, match="Not in a git repository"):
        registry.init_project(tmp_path, "alpine")
    with pytest.raises(ValueError, match="Docker image is required"):
        registry.init_project(tmp_path, "")
