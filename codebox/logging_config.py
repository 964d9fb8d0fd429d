"""Logging for the codebox process: rotating log file under the config dir, optional stderr.

stdout is never used: under `codebox start` it carries the MCP stdio protocol.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: Any, fallback: int = logging.INFO) -> int:
    if isinstance(name, int):
        return name
    return getattr(logging, str(name).upper(), fallback)


def _build_handlers(config_dir: Path, cfg: dict[str, Any]) -> list[logging.Handler]:
    log_path = config_dir / cfg.get("file", "logs/codebox.log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=int(cfg.get("max_bytes", 10 * 1024 * 1024)),
            backupCount=int(cfg.get("backup_count", 3)),
            encoding="utf-8",
        )
    ]
    if cfg.get("log_to_console", False):
        handlers.append(logging.StreamHandler(sys.stderr))
    return handlers


def setup_logging(config_dir: Path, settings: dict[str, Any]) -> Path:
    """Replace the root logger's handlers according to settings["logging"].

    logging.loggers maps library logger names to their own level
    (e.g. {"mcp": "WARNING"}) so protocol chatter stays out of the codebox log.
    Returns the log file path.
    """
    cfg = settings.get("logging", {})
    level = _level(cfg.get("level", "INFO"))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    for h in root.handlers[:]:
        root.removeHandler(h)
    for handler in _build_handlers(config_dir, cfg):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name, logger_level in (cfg.get("loggers") or {}).items():
        logging.getLogger(name).setLevel(_level(logger_level, level))

    return config_dir / cfg.get("file", "logs/codebox.log")
