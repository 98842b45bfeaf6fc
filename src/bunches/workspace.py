from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .runtime import BUNCH_FOLDER

MANIFEST_FILENAME = "package.json"
_SKIPPED_DIRS = {BUNCH_FOLDER, "node_modules", ".git"}


def _read_manifest(directory: Path) -> dict[str, Any] | None:
    path = directory / MANIFEST_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValueError(f"Invalid workspace manifest {path}: {exc}") from exc
    return data if isinstance(data, dict) else {}


def _workspace_patterns(manifest: dict[str, Any]) -> list[str]:
    raw = manifest.get("workspaces")
    if isinstance(raw, dict):
        raw = raw.get("packages")
    if not isinstance(raw, list):
        return []
    return [pattern for pattern in raw if isinstance(pattern, str) and pattern]


@dataclass
class Workspace:
    cwd: Path
    manifest: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        name = self.manifest.get("name")
        return name if isinstance(name, str) and name else self.cwd.name

    @property
    def patterns(self) -> list[str]:
        return _workspace_patterns(self.manifest)

    def children(self) -> list["Workspace"]:
        included: dict[Path, None] = {}
        excluded: set[Path] = set()
        for pattern in self.patterns:
            negated = pattern.startswith("!")
            for match in sorted(self.cwd.glob(pattern.lstrip("!").rstrip("/"))):
                if not match.is_dir() or _SKIPPED_DIRS & set(match.relative_to(self.cwd).parts):
                    continue
                if negated:
                    excluded.add(match)
                else:
                    included.setdefault(match)
        children = []
        for path in included:
            if path in excluded or path == self.cwd:
                continue
            manifest = _read_manifest(path)
            if manifest is not None:
                children.append(Workspace(cwd=path, manifest=manifest))
        return children


class Project:
    """The workspace tree rooted at the top-level ``package.json``."""

    def __init__(self, top_level: Workspace):
        self.top_level_workspace = top_level

    @property
    def cwd(self) -> Path:
        return self.top_level_workspace.cwd

    @classmethod
    def find(cls, start: str | os.PathLike) -> "Project":
        start_path = Path(start).absolute()
        candidates: list[Workspace] = []
        for directory in (start_path, *start_path.parents):
            manifest = _read_manifest(directory)
            if manifest is not None:
                candidates.append(Workspace(cwd=directory, manifest=manifest))

        if not candidates:
            return cls(Workspace(cwd=start_path))

        nearest = candidates[0]
        top_level = nearest
        for candidate in candidates[1:]:
            if not candidate.patterns:
                continue
            project = cls(candidate)
            if any(member.cwd == nearest.cwd for member in project.workspace_members()):
                top_level = candidate
        return cls(top_level)

    def workspace_members(self) -> list[Workspace]:
        """Every nested workspace, depth first, excluding the top level."""
        members: list[Workspace] = []
        seen = {self.cwd}
        pending = list(reversed(self.top_level_workspace.children()))
        while pending:
            workspace = pending.pop()
            if workspace.cwd in seen:
                continue
            seen.add(workspace.cwd)
            members.append(workspace)
            pending.extend(reversed(workspace.children()))
        return members

    def locate(self, name: str) -> Workspace | None:
        for workspace in (self.top_level_workspace, *self.workspace_members()):
            if workspace.name == name:
                return workspace
        return None
