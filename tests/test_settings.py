"""Tests for settings loading and logging setup."""

import logging
from pathlib import Path

import pytest

from codebox.logging_config import setup_logging
from codebox.settings import get_config_dir, get_default_settings, get_setting, load_settings, reload_settings


def test_config_dir_from_env(config_dir: Path) -> None:
    assert get_config_dir() == config_dir.resolve()


def test_config_dir_defaults_to_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("CODEBOX_HOME", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert get_config_dir() == tmp_path / ".codespin"


def test_defaults_without_file(config_dir: Path) -> None:
    settings = load_settings(config_dir)
    assert get_setting(settings, "docker.mount_path") == "/home/project"
    assert get_setting(settings, "docker.max_buffer_bytes") == 10 * 1024 * 1024
    assert get_setting(settings, "batch.timeout_seconds") is None


def test_yaml_is_deep_merged(config_dir: Path) -> None:
    (config_dir / "settings.yaml").write_text("docker:\n  timeout_seconds: 30\n  network: none\nlogging:\n  level: DEBUG\n")
    settings = load_settings(config_dir)
    assert get_setting(settings, "docker.timeout_seconds") == 30
    assert get_setting(settings, "docker.network") == "none"
    assert get_setting(settings, "docker.binary") == "docker"
    assert get_setting(settings, "logging.level") == "DEBUG"


def test_malformed_yaml_falls_back_to_defaults(config_dir: Path) -> None:
    (config_dir / "settings.yaml").write_text("docker: [unclosed\n")
    assert load_settings(config_dir) == get_default_settings()


def test_settings_are_cached_until_reload(config_dir: Path) -> None:
    first = load_settings(config_dir)
    (config_dir / "settings.yaml").write_text("batch:\n  timeout_seconds: 5\n")
    assert load_settings(config_dir) is first
    reload_settings()
    assert get_setting(load_settings(config_dir), "batch.timeout_seconds") == 5


def test_get_setting_missing_path() -> None:
    settings = get_default_settings()
    assert get_setting(settings, "docker.nope", "fallback") == "fallback"
    assert get_setting(settings, "docker.binary.deeper") is None


def test_default_settings_are_independent_copies() -> None:
    a = get_default_settings()
    a["docker"]["binary"] = "podman"
    assert get_default_settings()["docker"]["binary"] == "docker"


def test_setup_logging_writes_to_file(config_dir: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(config_dir, get_default_settings())
        logging.getLogger("codebox.test").info("hello from test")
        for handler in root.handlers:
            handler.flush()
        log_file = config_dir / "logs" / "codebox.log"
        assert "hello from test" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_setup_logging_applies_library_levels(config_dir: Path) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    mcp_logger = logging.getLogger("mcp")
    saved_mcp_level = mcp_logger.level
    settings = get_default_settings()
    settings["logging"]["file"] = "custom/run.log"
    try:
        log_path = setup_logging(config_dir, settings)
        assert log_path == config_dir / "custom" / "run.log"
        assert mcp_logger.level == logging.WARNING
        assert get_setting(settings, "logging.loggers.mcp") == "WARNING"
    finally:
        mcp_logger.setLevel(saved_mcp_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
