from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

from ..errors import FetchError
from ..report import Reporter
from .client import GitClient
from .spec import DEFAULT_REFERENCE


class GitRepo:
    """One cloned bunch, pinned to a reference."""

    def __init__(
        self,
        name: str,
        folder_path: str | os.PathLike,
        reference: str = DEFAULT_REFERENCE,
        *,
        git: GitClient,
        reporter: Reporter,
    ):
        self.name = name
        self.folder_path = Path(folder_path)
        self.reference = reference
        self.git = git
        self.reporter = reporter

    def __repr__(self) -> str:
        return f"GitRepo({self.name!r}, {str(self.folder_path)!r}, {self.reference!r})"

    @staticmethod
    def fetch(
        source: str,
        destination: str | os.PathLike,
        *,
        git: GitClient,
        reporter: Reporter,
    ) -> None:
        reporter.info(f"Cloning {source}...")
        try:
            git.clone(source, destination)
        except subprocess.CalledProcessError as exc:
            message = (exc.stderr or exc.stdout or "").strip()
            raise FetchError(source, message) from exc

    @property
    def exists(self) -> bool:
        return self.folder_path.is_dir()

    def verify_reference(self, reference: str | None = None) -> bool:
        reference = self.reference if reference is None else reference
        if reference == DEFAULT_REFERENCE:
            return True
        return self.git.verify_ref(self.folder_path, reference)

    def resolved_reference(self) -> str:
        if self.reference == DEFAULT_REFERENCE:
            return self.git.default_branch(self.folder_path)
        return self.reference

    def sync(self) -> None:
        self.reporter.info(f"Syncing {self.name}...")
        self.git.pull(self.folder_path)
        self.git.checkout(self.folder_path, self.resolved_reference())

    def delete(self) -> bool:
        if not self.folder_path.exists():
            return False
        self.reporter.info(f"Removing {self.name}...")
        remove_tree(self.folder_path)
        return True


def remove_tree(path: Path) -> None:
    """Remove ``path`` recursively, moving it out of the way first.

    The rename makes the folder disappear in one step; a failure while
    deleting the renamed copy still propagates.
    """
    if path.is_symlink():
        path.unlink()
        return
    doomed = path.with_name(f".{path.name}.deleting-{os.getpid()}")
    if doomed.exists():
        shutil.rmtree(doomed)
    os.replace(path, doomed)
    shutil.rmtree(doomed)
