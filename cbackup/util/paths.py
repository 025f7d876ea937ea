"""Utility functions for path operations."""

import os
import shutil
from pathlib import Path
from typing import List

from ..util.logging import get_logger

logger = get_logger(__name__)


def ensure_directory(path: Path) -> Path:
    """Ensure directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def remove_tree(path: Path) -> None:
    """Remove a file or directory tree if it exists."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def is_valid_segment(name: str) -> bool:
    """Check that a package name is usable as a single path segment."""
    return bool(name) and name not in (".", "..") and "/" not in name and "\0" not in name


def collect_tree(root: Path, base: Path, exclude_top: List[str]) -> List[str]:
    """Walk root and return entries relative to base, skipping excluded top-level names.

    Directories are listed before their contents so an archive created from
    the list with --no-recursion keeps directory metadata.
    """
    if not root.is_dir():
        return []
    
    entries = [str(root.relative_to(base))]
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        if current == root:
            dirnames[:] = [d for d in dirnames if d not in exclude_top]
            filenames = [f for f in filenames if f not in exclude_top]
        dirnames.sort()
        
        for name in dirnames:
            entries.append(str((current / name).relative_to(base)))
        for name in sorted(filenames):
            entries.append(str((current / name).relative_to(base)))
    
    return entries


def format_size(size_bytes: int) -> str:
    """Format file size in human readable format."""
    if size_bytes == 0:
        return "0 B"
    
    size_names = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while size_bytes >= 1024.0 and i < len(size_names) - 1:
        size_bytes /= 1024.0
        i += 1
    
    return f"{size_bytes:.1f} {size_names[i]}"
