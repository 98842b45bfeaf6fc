from __future__ import annotations

import os
from pathlib import Path

from filelock import FileLock

from .runtime import BUNCH_FOLDER, Settings


def _file_lock(path: Path, settings: Settings) -> FileLock:
    timeout = -1 if settings.lock_timeout is None else settings.lock_timeout
    return FileLock(str(path), timeout=timeout)


def bunch_lock(bunch_root: str | os.PathLike, settings: Settings) -> FileLock:
    """Advisory lock guarding the shared bunch folder under ``bunch_root``."""
    root = Path(bunch_root)
    root.mkdir(parents=True, exist_ok=True)
    return _file_lock(root / f"{BUNCH_FOLDER}.lock", settings)


def rc_lock(rc_path: str | os.PathLike, settings: Settings) -> FileLock:
    """Advisory lock serializing rewrites of one declaration file."""
    path = Path(rc_path)
    return _file_lock(path.with_name(f"{path.name}.lock"), settings)
