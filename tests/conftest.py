"""Shared pytest fixtures: isolated config dir, registered project, fake docker binary."""

import json
from pathlib import Path

import pytest

from codebox.models import ExecutionContext
from codebox.registry import ProjectRegistry
from codebox.settings import reload_settings

# Stands in for the docker CLI: runs the command on the host inside the mounted directory.
FAKE_DOCKER = """#!/bin/sh
if [ -n "$FAKE_DOCKER_LOG" ]; then echo "$*" >> "$FAKE_DOCKER_LOG"; fi
if [ "$1" = "kill" ]; then exit 0; fi
host=""
for arg in "$@"; do
  case "$arg" in
    --volume=*) v="${arg#--volume=}"; host="${v%%:*}" ;;
  esac
  last="$arg"
done
cd "$host" || exit 125
exec /bin/sh -c "$last"
"""


@pytest.fixture(autouse=True)
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "codebox-home"
    home.mkdir()
    monkeypatch.setenv("CODEBOX_HOME", str(home))
    reload_settings()
    yield home
    reload_settings()


@pytest.fixture
def registry(config_dir: Path) -> ProjectRegistry:
    return ProjectRegistry(config_dir / "projects.json")


@pytest.fixture
def project_dir(tmp_path: Path, registry: ProjectRegistry) -> Path:
    """A registered project with an image configured in its .codespin/codebox.json."""
    root = tmp_path / "project"
    root.mkdir()
    (root / ".codespin").mkdir()
    (root / ".codespin" / "codebox.json").write_text(json.dumps({"dockerImage": "alpine:3"}))
    registry.add_project(root)
    return root.resolve()


@pytest.fixture
def docker_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log = tmp_path / "docker-calls.log"
    monkeypatch.setenv("FAKE_DOCKER_LOG", str(log))
    return log


@pytest.fixture
def fake_docker(tmp_path: Path, docker_log: Path) -> Path:
    script = tmp_path / "bin" / "docker"
    script.parent.mkdir()
    script.write_text(FAKE_DOCKER)
    script.chmod(0o755)
    return script


@pytest.fixture
def exec_context(fake_docker: Path) -> ExecutionContext:
    return ExecutionContext(user="1000:1000", docker_binary=str(fake_docker), timeout_seconds=30)
