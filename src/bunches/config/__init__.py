from .resolver import RcFile, Resolution, find_rc_files, resolve
from .store import (
    BUNCHES_KEY,
    DocumentPatch,
    FieldPatch,
    Patch,
    coerce_patch,
    create,
    load,
    parse_document,
    rc_path,
    update,
)

__all__ = [
    "BUNCHES_KEY",
    "DocumentPatch",
    "FieldPatch",
    "Patch",
    "RcFile",
    "Resolution",
    "coerce_patch",
    "create",
    "find_rc_files",
    "load",
    "parse_document",
    "rc_path",
    "resolve",
    "update",
]
