"""Cached configuration access.

Entries are keyed by the resolved config path and refreshed automatically when
the file's mtime changes, so a long-running ``serve`` and one-off CLI commands
see edits made with ``taxbridge init`` or by hand.
"""

from __future__ import annotations

import threading
from pathlib import Path

from taxbridge.config.loader import get_config_path, load_config
from taxbridge.config.schema import Config

_lock = threading.RLock()
_cache: dict[Path, tuple[float | None, Config]] = {}


def _resolve(config_path: Path | None) -> Path:
    return Path(config_path or get_config_path()).expanduser().resolve()


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except FileNotFoundError:
        return None


def get_config(*, config_path: Path | None = None, force_reload: bool = False) -> Config:
    """Return the config for a path, loading it on first use or when the file changed."""
    path = _resolve(config_path)
    mtime = _mtime(path)
    with _lock:
        entry = _cache.get(path)
        if force_reload or entry is None or entry[0] != mtime:
            entry = (mtime, load_config(path))
            _cache[path] = entry
        return entry[1]


def clear_config_cache(*, config_path: Path | None = None) -> None:
    """Drop one cached entry, or all of them."""
    with _lock:
        if config_path is None:
            _cache.clear()
        else:
            _cache.pop(_resolve(config_path), None)
