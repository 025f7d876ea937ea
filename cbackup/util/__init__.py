"""Utility module initialization."""

from .logging import get_logger, setup_logging
from .paths import (
    collect_tree,
    ensure_directory,
    format_size,
    is_valid_segment,
    remove_tree,
)
from .timeutil import format_duration, now_iso

__all__ = [
    # logging
    "get_logger",
    "setup_logging",
    # paths
    "collect_tree",
    "ensure_directory",
    "format_size",
    "is_valid_segment",
    "remove_tree",
    # timeutil
    "format_duration",
    "now_iso",
]
