"""
Path helpers for capture output and app bundles.
"""

import os
from pathlib import Path

from simsessions.config import expand_home


def ensure_absolute_path(file_path: str, output_dir: str) -> str:
    """
    Resolve a user-supplied output path.

    Absolute paths are kept, ``~/`` paths are expanded, and anything else
    is joined onto ``output_dir``.

    Args:
        file_path: Path supplied by the caller.
        output_dir: Default directory for relative paths.

    Returns:
        Absolute output path.
    """
    if os.path.isabs(file_path):
        return file_path
    if file_path.startswith("~/"):
        return expand_home(file_path)
    return os.path.join(output_dir, file_path)


def resolve_app_bundle(app_path: str) -> Path:
    """Resolve an app bundle path against the working directory."""
    path = Path(app_path)
    if not path.is_absolute():
        path = path.resolve()
    return path
