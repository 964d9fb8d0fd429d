"""Project path confinement. Every file operation on a project goes through is_contained.

Containment is decided on fully resolved paths: '..' and '.' are normalized and
symlinks are followed, so a link inside the project that points outside it is
rejected. Anything that cannot be resolved is treated as unsafe.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def invalid_path_message(relative_path: str) -> str:
    return f"Invalid file path: {relative_path} - path traversal attempt detected"


def _is_under(target: Path, root: Path) -> bool:
    root_str = str(root)
    prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
    return target == root or str(target).startswith(prefix)


def resolve_contained(root: Path | str, relative_path: str) -> Path | None:
    """Resolve relative_path against root. Returns None unless the result stays inside root."""
    try:
        candidate = Path(relative_path)
        if candidate.is_absolute() or candidate.anchor:
            return None
        resolved_root = Path(root).resolve()
        target = (resolved_root / candidate).resolve()
    except (OSError, ValueError, RuntimeError):
        return None
    if not _is_under(target, resolved_root):
        return None
    return target


def is_contained(root: Path | str, relative_path: str) -> bool:
    """True iff root/relative_path resolves to root itself or somewhere below it.

    Absolute paths are always rejected. Never raises.
    """
    contained = resolve_contained(root, relative_path) is not None
    if not contained:
        logger.warning("Rejected path outside project root: root=%s path=%r", root, relative_path)
    return contained
