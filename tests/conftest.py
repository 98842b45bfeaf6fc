from __future__ import annotations

import io
import subprocess
from pathlib import Path

import pytest

from bunches.graph import Bunch
from bunches.report import Reporter
from bunches.runtime import Settings


class FakeGitClient:
    """In-memory stand-in for ``GitClient``.

    ``remotes`` maps a clone URL to ``{"files": {...}, "refs": [...]}``;
    cloning writes the files into the destination folder.
    """

    def __init__(self, remotes: dict[str, dict] | None = None) -> None:
        self.remotes = remotes or {}
        self.calls: list[tuple[str, ...]] = []
        self.origins: dict[str, str] = {}
        self.checked_out: dict[str, str] = {}

    def clone(self, url: str, destination) -> None:
        self.calls.append(("clone", url, str(destination)))
        remote = self.remotes.get(url)
        if remote is None:
            raise subprocess.CalledProcessError(
                128,
                ["git", "clone", url, str(destination)],
                stderr=f"fatal: repository '{url}' does not exist\n",
            )
        dest = Path(destination)
        dest.mkdir(parents=True)
        for rel_path, content in remote.get("files", {}).items():
            target = dest / rel_path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        self.origins[str(dest)] = url

    def pull(self, repo_dir) -> None:
        self.calls.append(("pull", str(repo_dir)))

    def checkout(self, repo_dir, reference: str) -> None:
        self.calls.append(("checkout", str(repo_dir), reference))
        self.checked_out[str(repo_dir)] = reference

    def verify_ref(self, repo_dir, reference: str) -> bool:
        url = self.origins.get(str(repo_dir))
        refs = self.remotes.get(url, {}).get("refs", ["main"])
        return reference in refs

    def default_branch(self, repo_dir) -> str:
        return "main"

    def calls_named(self, name: str) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def reporter() -> Reporter:
    return Reporter(file=io.StringIO())


@pytest.fixture
def make_bunch(settings, reporter):
    def _make(root: Path, git: FakeGitClient) -> Bunch:
        return Bunch.find(root, settings=settings, reporter=reporter, git=git)

    return _make


def write_rc(directory: Path, content: str, filename: str = ".bunchesrc.yml") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(content, encoding="utf-8")
    return path
