"""
Utility modules for Simulator Sessions.

This package contains:
    - logger: Structured logging with structlog
    - paths: Output path resolution for captures and app bundles
"""

from simsessions.utils.logger import LogContext, get_logger, setup_logging
from simsessions.utils.paths import ensure_absolute_path, resolve_app_bundle

__all__ = [
    "LogContext",
    "get_logger",
    "setup_logging",
    "ensure_absolute_path",
    "resolve_app_bundle",
]
