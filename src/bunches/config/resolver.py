from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from ..errors import ConfigParseError
from ..git.spec import RepoEntry, RepoPin
from ..runtime import BUNCH_FOLDER, Settings
from .store import BUNCHES_KEY, load, rc_path


@dataclass(frozen=True)
class RcFile:
    path: Path
    cwd: Path
    data: dict[str, Any]


@dataclass
class Resolution:
    bunch_root: Path
    declared: list[RepoEntry] = field(default_factory=list)


def _coerce_entry(raw: Any, path: Path) -> RepoEntry:
    if isinstance(raw, str) and raw.strip():
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("spec"), str):
        folder = raw.get("path")
        if isinstance(folder, str) and folder:
            return RepoPin.from_dict(raw)
        return raw["spec"]
    raise ConfigParseError(
        str(path), tip=f" (invalid entry under '{BUNCHES_KEY}': {raw!r})"
    )


def find_rc_files(start: str | os.PathLike, settings: Settings) -> Iterator[RcFile]:
    """Yield declaration files from ``start`` upwards, nearest first.

    The walk never enters or crosses a shared bunch folder, so resolving from
    inside a cloned bunch only sees that bunch's own declarations.
    """
    current = Path(start).absolute()
    while current.name != BUNCH_FOLDER:
        path = rc_path(current, settings)
        if path.is_file():
            yield RcFile(path=path, cwd=current, data=load(current, settings))
        parent = current.parent
        if parent == current:
            break
        current = parent


def resolve(start: str | os.PathLike, settings: Settings) -> Resolution:
    bunch_root: Path | None = None
    declared: list[RepoEntry] = []

    for rc_file in find_rc_files(start, settings):
        if bunch_root is None:
            bunch_root = rc_file.cwd
        entries = rc_file.data.get(BUNCHES_KEY) or []
        if not isinstance(entries, list):
            raise ConfigParseError(
                str(rc_file.path), tip=f" ('{BUNCHES_KEY}' must be a list)"
            )
        declared.extend(_coerce_entry(entry, rc_file.path) for entry in entries)

    if bunch_root is None:
        bunch_root = Path(start).absolute()
    return Resolution(bunch_root=bunch_root, declared=declared)
