"""File-system helpers and cache directory settings."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import sys
import tempfile
from typing import BinaryIO, Callable, Collection

logger = logging.getLogger(__name__)

_cache_dir = ""


def _user_cache_dir() -> str:
    if sys.platform == "win32":
        local = os.environ.get("LocalAppData", "")
        if not local:
            raise OSError("%LocalAppData% is not defined")
        return local
    if sys.platform == "darwin":
        home = os.environ.get("HOME", "")
        if not home:
            raise OSError("$HOME is not defined")
        return os.path.join(home, "Library", "Caches")
    xdg = os.environ.get("XDG_CACHE_HOME", "")
    if xdg:
        if not os.path.isabs(xdg):
            raise OSError("path in $XDG_CACHE_HOME is relative")
        return xdg
    home = os.environ.get("HOME", "")
    if not home:
        raise OSError("neither $XDG_CACHE_HOME nor $HOME are defined")
    return os.path.join(home, ".cache")


def default_cache_dir() -> str:
    """Return the default cache directory, falling back to the temp dir."""
    try:
        base = _user_cache_dir()
    except OSError:
        base = tempfile.gettempdir()
    return os.path.join(base, "vulnscan")


def cache_dir() -> str:
    """Return the configured cache directory."""
    return _cache_dir


def set_cache_dir(directory: str) -> None:
    """Set the cache directory."""
    global _cache_dir
    _cache_dir = directory


def _raise(err: OSError) -> None:
    raise err


def file_walk(
    root: str,
    target_files: Collection[str],
    walk_fn: Callable[[BinaryIO, str], None],
) -> None:
    """Call ``walk_fn`` on each non-empty file under ``root`` listed in ``target_files``.

    ``target_files`` holds paths relative to ``root``.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            rel = os.path.relpath(path, root)
            if rel not in target_files:
                continue
            if os.lstat(path).st_size == 0:
                logger.debug("invalid size: %s", path)
                continue
            with open(path, "rb") as f:
                walk_fn(f, path)


def filter_targets(prefix_path: str, targets: Collection[str]) -> set[str]:
    """Return the targets under ``prefix_path``, relative to it."""
    start = prefix_path or os.curdir
    filtered: set[str] = set()
    for filename in targets:
        if not filename.startswith(prefix_path):
            continue
        rel = os.path.relpath(filename, start)
        if rel.startswith(".." + os.sep):
            continue
        filtered.add(rel)
    return filtered


def copy_file(src: str, dst: str) -> int:
    """Copy a regular file and return the number of bytes written."""
    if not stat.S_ISREG(os.stat(src).st_mode):
        raise ValueError(f"{src} is not a regular file")
    with open(src, "rb") as source, open(dst, "wb") as destination:
        shutil.copyfileobj(source, destination)
        return destination.tell()