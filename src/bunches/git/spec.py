from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from ..errors import SpecParseError

DEFAULT_REFERENCE = "default"
GITHUB_ROOT = "https://github.com"

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_SCP_RE = re.compile(r"^[\w.-]+@[\w.-]+:")


@dataclass(frozen=True)
class ParsedSpec:
    source: str
    name: str
    reference: str = DEFAULT_REFERENCE

    @property
    def is_default_reference(self) -> bool:
        return self.reference == DEFAULT_REFERENCE


@dataclass(frozen=True)
class RepoPin:
    spec: str
    path: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepoPin":
        return cls(spec=str(data["spec"]), path=str(data["path"]))

    def to_dict(self) -> dict[str, str]:
        return {"spec": self.spec, "path": self.path}


RepoEntry = Union[str, RepoPin]


def github_url(repo_name: str) -> str:
    return f"{GITHUB_ROOT}/{repo_name}"


def is_url_like(value: str) -> bool:
    return bool(_SCHEME_RE.match(value) or _SCP_RE.match(value))


def _name_from_source(source: str) -> str:
    scheme = _SCHEME_RE.match(source)
    rest = source[scheme.end() :] if scheme else source
    return rest.rstrip("/").rsplit("/", 1)[-1]


def parse_spec(spec: str) -> ParsedSpec:
    """Split ``[scheme://][host/][.../]name[#reference]`` into its parts.

    The source locator is everything before the first ``#``; the name is its
    final path segment, kept verbatim (``repo.git`` stays ``repo.git``).
    """
    if not isinstance(spec, str) or not spec.strip():
        raise SpecParseError(str(spec))

    source, sep, reference = spec.strip().partition("#")
    if sep and not reference:
        raise SpecParseError(spec)
    # git would read a leading dash as an option
    if source.startswith("-") or reference.startswith("-"):
        raise SpecParseError(spec)

    name = _name_from_source(source)
    if not name or name in {".", ".."}:
        raise SpecParseError(spec)

    return ParsedSpec(source=source, name=name, reference=reference or DEFAULT_REFERENCE)


def entry_spec(entry: RepoEntry) -> str:
    return entry.spec if isinstance(entry, RepoPin) else entry


def entry_name(entry: RepoEntry) -> str:
    return parse_spec(entry_spec(entry)).name
