from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

_DEFAULT_BRANCH_FALLBACKS = ("main", "master")


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[git] {message}", file=sys.stderr, flush=True)


class GitClient:
    """Thin wrapper over the ``git`` executable.

    Every call is blocking and bounded by ``timeout`` seconds; failures
    surface as ``subprocess.CalledProcessError`` or
    ``subprocess.TimeoutExpired``.
    """

    def __init__(self, *, timeout: float | None = None, executable: str = "git"):
        self.timeout = timeout
        self.executable = executable

    def _run(
        self, args: list[str], *, cwd: str | os.PathLike | None = None
    ) -> subprocess.CompletedProcess:
        command = [self.executable, *args]
        if cwd is not None:
            command[1:1] = ["-C", str(cwd)]
        _log(" ".join(command))
        return subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )

    def clone(self, url: str, destination: str | os.PathLike) -> None:
        Path(destination).parent.mkdir(parents=True, exist_ok=True)
        self._run(["clone", "--", url, str(destination)])

    def current_branch(self, repo_dir: str | os.PathLike) -> str | None:
        try:
            result = self._run(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=repo_dir)
        except subprocess.CalledProcessError:
            return None
        return result.stdout.strip() or None

    def pull(self, repo_dir: str | os.PathLike) -> None:
        # a detached HEAD (tag or commit pin) has no tracking branch to pull
        if self.current_branch(repo_dir) is None:
            self._run(["fetch", "--tags", "origin"], cwd=repo_dir)
        else:
            self._run(["pull", "--ff-only"], cwd=repo_dir)

    def checkout(self, repo_dir: str | os.PathLike, reference: str) -> None:
        self._run(["checkout", reference, "--"], cwd=repo_dir)

    def verify_ref(self, repo_dir: str | os.PathLike, reference: str) -> bool:
        for candidate in (reference, f"origin/{reference}"):
            try:
                self._run(
                    ["rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"],
                    cwd=repo_dir,
                )
            except subprocess.CalledProcessError:
                continue
            return True
        return False

    def default_branch(self, repo_dir: str | os.PathLike) -> str:
        try:
            result = self._run(
                ["symbolic-ref", "--quiet", "refs/remotes/origin/HEAD"], cwd=repo_dir
            )
            return result.stdout.strip().removeprefix("refs/remotes/origin/")
        except subprocess.CalledProcessError:
            pass
        for branch in _DEFAULT_BRANCH_FALLBACKS:
            if self.verify_ref(repo_dir, branch):
                return branch
        return _DEFAULT_BRANCH_FALLBACKS[0]
