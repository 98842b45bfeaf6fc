from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import partial
from pathlib import Path, PurePath
from typing import Any
from urllib.parse import urlparse

from .config import BUNCHES_KEY, DocumentPatch, update
from .errors import BunchError, InvalidReferenceError, SpecParseError
from .git import (
    GitClient,
    GitRepo,
    RepoPin,
    entry_name,
    github_url,
    is_url_like,
    parse_spec,
)
from .graph import Bunch, BunchGraph, entry_folder
from .locking import bunch_lock
from .report import Reporter
from .runtime import Settings
from .workspace import Project, Workspace

CHECK = "✓"

_PATH_LIKE_RE = re.compile(r"^\.{0,2}[\\/]")
_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


@dataclass(frozen=True)
class ListedBunch:
    name: str
    reference: str
    root: bool


def _as_posix(path: str | os.PathLike) -> str:
    return PurePath(path).as_posix()


def normalize_spec(
    spec: str, *, cwd: Path, bunch_root: Path, reporter: Reporter
) -> str:
    """Turn a user-supplied bunch specifier into the form stored on disk.

    Paths become relative to the bunch root, URLs are kept as typed and
    ``owner/repo`` shorthands expand to GitHub URLs.
    """
    locator, sep, reference = spec.partition("#")
    suffix = f"#{reference}" if sep else ""

    if _PATH_LIKE_RE.match(locator) or os.path.isabs(locator):
        candidate = (cwd / locator).resolve()
        reporter.info(f"Reading {candidate}")
        return _as_posix(os.path.relpath(candidate, bunch_root)) + suffix

    if "://" in locator:
        parsed = urlparse(locator)
        if not parsed.scheme or not parsed.netloc:
            raise BunchError(
                f'Bunch specifier "{spec}" is neither a bunch name nor a valid url'
            )
        return spec

    if is_url_like(locator):
        return spec

    if not _SHORTHAND_RE.match(locator):
        raise BunchError(
            f'Bunch specifier "{spec}" is neither a bunch name nor a valid url'
        )
    return github_url(locator) + suffix


def _raw_entry_folder(raw: Any) -> str | None:
    try:
        if isinstance(raw, str):
            return entry_folder(raw)
        if isinstance(raw, dict) and isinstance(raw.get("spec"), str):
            path = raw.get("path")
            return path if isinstance(path, str) and path else entry_folder(raw["spec"])
    except SpecParseError:
        return None
    return None


def _replace_entry(pin: RepoPin, current: dict[str, Any]) -> dict[str, Any]:
    bunches = []
    replaced = False
    for raw in current.get(BUNCHES_KEY) or []:
        if _raw_entry_folder(raw) == pin.path:
            if not replaced:
                bunches.append(pin.to_dict())
            replaced = True
        else:
            bunches.append(raw)
    if not replaced:
        bunches.append(pin.to_dict())
    return {**current, BUNCHES_KEY: bunches}


def _drop_entries(folder: str, current: dict[str, Any]) -> dict[str, Any]:
    entries = current.get(BUNCHES_KEY)
    if not isinstance(entries, list):
        return current
    bunches = [raw for raw in entries if _raw_entry_folder(raw) != folder]
    if len(bunches) == len(entries):
        return current
    return {**current, BUNCHES_KEY: bunches}


def init_bunch(
    cwd: str | os.PathLike,
    *,
    settings: Settings,
    reporter: Reporter,
) -> Bunch:
    bunch = Bunch.create(cwd, settings=settings, reporter=reporter)
    reporter.info("Bunch created!")
    return bunch


def add_bunch(
    spec: str,
    cwd: str | os.PathLike,
    *,
    settings: Settings,
    reporter: Reporter,
    git: GitClient | None = None,
) -> str:
    cwd = Path(cwd).absolute()
    bunch = Bunch.find(cwd, settings=settings, reporter=reporter, git=git)

    with bunch_lock(bunch.cwd, settings):
        graph = bunch.pick()
        # lock first so conflicts with nested declarations surface
        graph.lock_repos()

        repo_spec = normalize_spec(
            spec, cwd=cwd, bunch_root=bunch.cwd, reporter=reporter
        )
        parsed = parse_spec(repo_spec)
        reporter.info(f"Adding {repo_spec}...")
        folder = graph.add_repo(repo_spec, overwrite=True)

        repo = graph.repos[parsed.name]
        if not repo.verify_reference():
            repo.delete()
            del graph.repos[parsed.name]
            raise InvalidReferenceError(parsed.name, parsed.reference)
        repo.sync()

        reporter.info("Updating the configuration...")
        pin = RepoPin(spec=repo_spec, path=folder)
        update(bunch.cwd, DocumentPatch(partial(_replace_entry, pin)), settings)

    reporter.info(f"{CHECK} Added {folder}!")
    return folder


def remove_bunch(
    name: str,
    cwd: str | os.PathLike,
    *,
    settings: Settings,
    reporter: Reporter,
    git: GitClient | None = None,
) -> GitRepo | None:
    bunch = Bunch.find(cwd, settings=settings, reporter=reporter, git=git)

    with bunch_lock(bunch.cwd, settings):
        graph = bunch.pick()
        try:
            repo_name = parse_spec(name).name
        except SpecParseError:
            repo_name = name

        removed = graph.remove_repo(repo_name)
        if removed is None:
            reporter.info("Nothing to do.")
            return None

        reporter.info("Updating the configuration...")
        folder = _as_posix(os.path.relpath(removed.folder_path, bunch.cwd))
        update(bunch.cwd, DocumentPatch(partial(_drop_entries, folder)), settings)

    reporter.info(f"{CHECK} Removed {removed.folder_path}!")
    return removed


def list_bunches(
    cwd: str | os.PathLike,
    *,
    settings: Settings,
    reporter: Reporter,
    git: GitClient | None = None,
) -> list[ListedBunch]:
    bunch = Bunch.find(cwd, settings=settings, reporter=reporter, git=git)
    project = Project.find(cwd)
    top_level = {entry_name(entry) for entry in bunch.repos}

    with bunch_lock(bunch.cwd, settings):
        graph = bunch.pick()
        reporter.info(f"Finding bunches in {project.top_level_workspace.name}...")
        if not graph.repos:
            reporter.info("No bunches to list.")
        else:
            graph.lock_repos(sync=False)

    listed = []
    for name, repo in graph.repos.items():
        root = name in top_level
        reporter.record({"name": name, "reference": repo.reference, "root": root})
        reporter.info(f"{name} [root]" if root else name)
        listed.append(ListedBunch(name=name, reference=repo.reference, root=root))
    return listed


def sync_bunches(
    cwd: str | os.PathLike,
    *,
    settings: Settings,
    reporter: Reporter,
    git: GitClient | None = None,
) -> BunchGraph:
    bunch = Bunch.find(cwd, settings=settings, reporter=reporter, git=git)
    project = Project.find(cwd)
    manifest_name = project.top_level_workspace.name

    with bunch_lock(bunch.cwd, settings):
        graph = bunch.pick()
        reporter.info(f"Syncing bunches in {manifest_name}...")
        if not graph.repos:
            reporter.info("No bunches to sync.")
        else:
            graph.lock_repos()
            graph.link_all_workspace_members(project)

    reporter.info(f"{CHECK} Done syncing {manifest_name}!")
    reporter.info(f"Synced {len(graph.repos)} repos!")
    return graph


def clean_bunches(
    cwd: str | os.PathLike,
    *,
    full: bool = False,
    settings: Settings,
    reporter: Reporter,
) -> None:
    bunch = Bunch.find(cwd, settings=settings, reporter=reporter)
    project = Project.find(cwd)

    with bunch_lock(bunch.cwd, settings):
        bunch.clean_up_links(project)
        if full:
            bunch.clean_up_folder()


def locate_workspace(name: str, cwd: str | os.PathLike) -> Workspace:
    workspace = Project.find(cwd).locate(name)
    if workspace is None:
        raise BunchError(f"Workspace '{name}' not found")
    return workspace
