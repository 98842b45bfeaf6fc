from __future__ import annotations

import os
from collections import deque
from pathlib import Path, PurePosixPath

from .config import create as create_rc
from .config import resolve
from .errors import ConflictError, NotFoundError
from .git import GitClient, GitRepo, RepoEntry, RepoPin, parse_spec
from .git.repo import remove_tree
from .report import Reporter
from .runtime import BUNCH_FOLDER, Settings
from .workspace import Project


def entry_folder(entry: RepoEntry) -> str:
    """Folder of a declared bunch, relative to the bunch root."""
    if isinstance(entry, RepoPin):
        return entry.path
    return str(PurePosixPath(BUNCH_FOLDER, parse_spec(entry).name))


class Bunch:
    """The resolved bunch root of a project tree and its declared bunches."""

    def __init__(
        self,
        cwd: str | os.PathLike,
        repos: list[RepoEntry],
        *,
        settings: Settings,
        reporter: Reporter,
        git: GitClient | None = None,
    ):
        self.cwd = Path(cwd)
        self.repos = repos
        self.settings = settings
        self.reporter = reporter
        self.git = git or GitClient(timeout=settings.git_timeout)

    @classmethod
    def find(
        cls,
        start: str | os.PathLike,
        *,
        settings: Settings,
        reporter: Reporter,
        git: GitClient | None = None,
    ) -> "Bunch":
        resolution = resolve(start, settings)
        return cls(
            resolution.bunch_root,
            resolution.declared,
            settings=settings,
            reporter=reporter,
            git=git,
        )

    @classmethod
    def create(
        cls,
        cwd: str | os.PathLike,
        *,
        settings: Settings,
        reporter: Reporter,
        git: GitClient | None = None,
    ) -> "Bunch":
        path = Path(cwd).absolute()
        reporter.info(f"Creating bunches manifest at: {path / settings.rc_filename}...")
        create_rc(path, settings)
        return cls.find(path, settings=settings, reporter=reporter, git=git)

    @property
    def shared_root(self) -> Path:
        return self.cwd / BUNCH_FOLDER

    def pick(self) -> "BunchGraph":
        graph = BunchGraph(self)
        graph.pick(self.repos)
        return graph

    def clean_up_folder(self) -> None:
        if not self.shared_root.exists():
            return
        self.reporter.info(f"Removing {self.shared_root}...")
        remove_tree(self.shared_root)

    def clean_up_links(self, project: Project) -> int:
        removed = 0
        for member in project.workspace_members():
            portal = member.cwd / BUNCH_FOLDER
            self.reporter.info(f"Unlinking {_relative(member.cwd, project.cwd)}...")
            if not portal.is_symlink():
                continue
            try:
                portal.unlink()
            except FileNotFoundError:
                continue
            removed += 1
        return removed


class BunchGraph:
    """Flat registry of materialized bunches, keyed by short name.

    Repositories declared at any depth share the single folder at
    ``shared_root``; a name is cloned at most once per graph.
    """

    def __init__(self, bunch: Bunch):
        self.bunch = bunch
        self.repos: dict[str, GitRepo] = {}

    @property
    def cwd(self) -> Path:
        return self.bunch.cwd

    @property
    def shared_root(self) -> Path:
        return self.bunch.shared_root

    @property
    def reporter(self) -> Reporter:
        return self.bunch.reporter

    def pick(self, declared: list[RepoEntry]) -> "BunchGraph":
        if not self.shared_root.exists():
            self.reporter.info(f"Creating the root bunch folder at: {self.shared_root}...")
            self.shared_root.mkdir(parents=True, exist_ok=True)
        for entry in declared:
            self.add_repo(entry)
        return self

    def _clone_source(self, source: str) -> str:
        # relative locators point at folders next to the bunch root
        candidate = self.cwd / source
        if not os.path.isabs(source) and candidate.is_dir():
            return str(candidate)
        return source

    def add_repo(self, entry: RepoEntry, overwrite: bool = False) -> str:
        """Register ``entry`` and clone it when missing from disk.

        Returns the folder path relative to the bunch root.
        """
        if isinstance(entry, RepoPin):
            parsed = parse_spec(entry.spec)
            folder = entry.path
        else:
            parsed = parse_spec(entry)
            folder = entry_folder(entry)

        registered = self.repos.get(parsed.name)
        if registered is not None and not overwrite:
            if registered.reference != parsed.reference:
                raise ConflictError(parsed.name, registered.reference, parsed.reference)
            return folder

        absolute = self.cwd / folder
        if overwrite and absolute.exists():
            remove_tree(absolute)

        if not absolute.exists():
            if overwrite:
                self.reporter.info(f"Replacing repository on disk: {parsed.name}")
            else:
                self.reporter.info(f"Repository not found on disk: {parsed.name}")
            GitRepo.fetch(
                self._clone_source(parsed.source),
                absolute,
                git=self.bunch.git,
                reporter=self.reporter,
            )
            self.ensure_link(absolute)

        self.repos[parsed.name] = GitRepo(
            parsed.name,
            absolute,
            parsed.reference,
            git=self.bunch.git,
            reporter=self.reporter,
        )
        return folder

    def remove_repo(self, name: str) -> GitRepo | None:
        repo = self.repos.get(name)
        if repo is None:
            self.reporter.info(f"✗ {NotFoundError(name)}")
            return None
        repo.delete()
        del self.repos[name]
        return repo

    def lock_repos(self, *, sync: bool = True) -> None:
        self.reporter.info(f"Locking bunch repos in {self.cwd}...")
        pending = deque(self.repos.values())
        while pending:
            repo = pending.popleft()
            if sync:
                self.reporter.record({"name": repo.name, "reference": repo.reference})
                repo.sync()
            for child in resolve(repo.folder_path, self.bunch.settings).declared:
                known = len(self.repos)
                self.add_repo(child)
                # newly registered names land at the end of the registry
                if len(self.repos) > known:
                    pending.append(next(reversed(self.repos.values())))

    def ensure_link(self, target_dir: str | os.PathLike) -> bool:
        """Point ``target_dir/.bunches`` at the shared root.

        Returns True when a link was created or repointed.
        """
        portal = Path(target_dir) / BUNCH_FOLDER
        target = self.shared_root.resolve()

        if portal.is_symlink():
            if Path(os.readlink(portal)) == target:
                return False
            self.reporter.info(f"Relinking {_relative(Path(target_dir), self.cwd)}...")
            staged = portal.with_name(f"{BUNCH_FOLDER}.link-{os.getpid()}")
            if staged.is_symlink():
                staged.unlink()
            staged.symlink_to(target, target_is_directory=True)
            os.replace(staged, portal)
            return True
        if portal.exists():
            return False

        self.reporter.info(f"Linking {_relative(Path(target_dir), self.cwd)}...")
        try:
            portal.symlink_to(target, target_is_directory=True)
        except FileExistsError:
            return False
        return True

    def link_all_workspace_members(self, project: Project) -> int:
        linked = 0
        for member in project.workspace_members():
            if self.ensure_link(member.cwd):
                linked += 1
        return linked


def _relative(path: Path, base: Path) -> str:
    try:
        return str(path.relative_to(base)) or "."
    except ValueError:
        return str(path)
