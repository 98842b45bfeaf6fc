from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Union

import yaml

from ..errors import BunchError, ConfigParseError
from ..locking import rc_lock
from ..runtime import Settings

BUNCHES_KEY = "bunches"

# known top-level keys and the factory for their empty value
KNOWN_KEYS: dict[str, Callable[[], Any]] = {BUNCHES_KEY: list}

_MISSING_COLON_RE = re.compile(r"^\s+(?!-)[^:]+\s+\S+", re.MULTILINE)

Document = dict[str, Any]
FieldValue = Union[Callable[[Any], Any], Any]


@dataclass(frozen=True)
class DocumentPatch:
    """Replace the whole document with ``transform(current)``."""

    transform: Callable[[Document], Document]


@dataclass(frozen=True)
class FieldPatch:
    """Set known top-level keys to a static value or ``transform(current)``."""

    fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = sorted(set(self.fields) - set(KNOWN_KEYS))
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")


Patch = Union[DocumentPatch, FieldPatch]


def coerce_patch(
    patch: Patch | Callable[[Document], Document] | Mapping[str, FieldValue],
) -> Patch:
    if isinstance(patch, (DocumentPatch, FieldPatch)):
        return patch
    if callable(patch):
        return DocumentPatch(patch)
    if isinstance(patch, Mapping):
        return FieldPatch(dict(patch))
    raise TypeError(f"Unsupported configuration patch: {patch!r}")


def rc_path(directory: str | os.PathLike, settings: Settings) -> Path:
    return Path(directory) / settings.rc_filename


def parse_document(content: str, path: str | os.PathLike) -> Document:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        tip = ""
        if _MISSING_COLON_RE.search(content):
            tip = " (in particular, make sure you list the colons after each key name)"
        raise ConfigParseError(str(path), tip=tip) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigParseError(str(path), tip=" (the top level must be a mapping)")
    return data


def load(directory: str | os.PathLike, settings: Settings) -> Document:
    path = rc_path(directory, settings)
    if not path.is_file():
        return {}
    return parse_document(path.read_text(encoding="utf-8"), path)


def create(directory: str | os.PathLike, settings: Settings) -> Path:
    path = rc_path(directory, settings)
    with rc_lock(path, settings):
        if path.exists():
            raise BunchError(f"bunches configuration already exists at {path}!")
        _write_atomic(path, "")
    return path


def _apply_document_patch(current: Document, patch: DocumentPatch) -> Document:
    try:
        return patch.transform(copy.deepcopy(current))
    except Exception:
        return patch.transform({})


def _apply_field_patch(current: Document, patch: FieldPatch) -> Document:
    replacement = dict(current)
    for key, value in patch.fields.items():
        current_value = current.get(key)
        if callable(value):
            try:
                next_value = value(copy.deepcopy(current_value))
            except Exception:
                next_value = value(KNOWN_KEYS[key]())
        else:
            next_value = value
        if current_value == next_value:
            continue
        replacement[key] = next_value
    return replacement


def dump_document(document: Document, *, newline: str = "\n") -> str:
    if not document:
        return ""
    text = yaml.safe_dump(
        document, sort_keys=False, default_flow_style=False, allow_unicode=True
    )
    return text.replace("\n", newline)


def update(
    directory: str | os.PathLike,
    patch: Patch | Callable[[Document], Document] | Mapping[str, FieldValue],
    settings: Settings,
) -> bool:
    """Apply ``patch`` to the declaration file in ``directory``.

    Returns True when the file was rewritten. A patch producing a document
    equal to the current one leaves the file untouched.
    """
    patch = coerce_patch(patch)
    path = rc_path(directory, settings)

    with rc_lock(path, settings):
        raw = None
        if path.is_file():
            with open(path, encoding="utf-8", newline="") as f:
                raw = f.read()
        current = parse_document(raw, path) if raw is not None else {}

        if isinstance(patch, DocumentPatch):
            replacement = _apply_document_patch(current, patch)
        else:
            replacement = _apply_field_patch(current, patch)

        if replacement == current:
            return False

        newline = "\r\n" if raw and "\r\n" in raw else "\n"
        content = dump_document(replacement, newline=newline)
        if content == raw:
            return False
        _write_atomic(path, content)
    return True


def _write_atomic(path: Path, content: str) -> None:
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        with open(tmp, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
