from __future__ import annotations

import json
import os

import pytest

from bunches.config import store
from bunches.errors import ConflictError, FetchError
from bunches.graph import entry_folder
from bunches.git.spec import RepoPin
from bunches.workspace import Project
from conftest import FakeGitClient, write_rc

FOO = "https://github.com/org/foo"
BAR = "https://github.com/org/bar"
BAZ = "https://github.com/org/baz"


def _remotes() -> dict[str, dict]:
    return {
        FOO: {
            "files": {".bunchesrc.yml": f"bunches:\n- {BAR}#v1\n"},
            "refs": ["main", "v1", "v2"],
        },
        BAR: {
            "files": {".bunchesrc.yml": f"bunches:\n- {BAZ}\n"},
            "refs": ["main", "v1"],
        },
        BAZ: {"files": {"README.md": "baz\n"}},
    }


def test_pick_creates_shared_root_and_clones_declared(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()

    assert (tmp_path / ".bunches").is_dir()
    assert list(graph.repos) == ["foo"]
    assert graph.repos["foo"].folder_path == tmp_path / ".bunches" / "foo"
    assert git.calls_named("clone") == [("clone", FOO, str(tmp_path / ".bunches" / "foo"))]


def test_fresh_clone_is_linked_to_shared_root(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    make_bunch(tmp_path, FakeGitClient(_remotes())).pick()

    portal = tmp_path / ".bunches" / "foo" / ".bunches"
    assert portal.is_symlink()
    assert os.path.samefile(portal, tmp_path / ".bunches")


def test_pick_then_lock_is_idempotent(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    git = FakeGitClient(_remotes())

    first = make_bunch(tmp_path, git).pick()
    first.lock_repos(sync=False)
    clones = len(git.calls_named("clone"))

    second = make_bunch(tmp_path, git).pick()
    second.lock_repos(sync=False)
    second.lock_repos(sync=False)

    assert clones == 3
    assert len(git.calls_named("clone")) == clones
    assert {name: repo.reference for name, repo in first.repos.items()} == {
        name: repo.reference for name, repo in second.repos.items()
    }
    assert list(second.repos) == ["foo", "bar", "baz"]


def test_lock_folds_nested_bunches_into_the_shared_pool(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()
    graph.lock_repos(sync=False)

    shared = tmp_path / ".bunches"
    assert graph.repos["bar"].folder_path == shared / "bar"
    assert graph.repos["bar"].reference == "v1"
    assert graph.repos["baz"].folder_path == shared / "baz"
    assert (shared / "foo" / ".bunches" / "bar").is_dir()
    assert sorted(p.name for p in shared.iterdir()) == ["bar", "baz", "foo"]


def test_lock_with_sync_pulls_and_checks_out_each_repo(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}#v2\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()
    graph.lock_repos()

    shared = tmp_path / ".bunches"
    assert git.checked_out == {
        str(shared / "foo"): "v2",
        str(shared / "bar"): "v1",
        str(shared / "baz"): "main",
    }
    assert len(git.calls_named("pull")) == 3


def test_conflicting_reference_requires_overwrite(tmp_path, make_bunch) -> None:
    git = FakeGitClient(_remotes())
    graph = make_bunch(tmp_path, git).pick()

    graph.add_repo(f"{FOO}#v1")
    marker = tmp_path / ".bunches" / "foo" / "local-change"
    marker.write_text("stale", encoding="utf-8")

    with pytest.raises(ConflictError) as excinfo:
        graph.add_repo(f"{FOO}#v2")
    assert excinfo.value.name == "foo"
    assert excinfo.value.registered == "v1"
    assert excinfo.value.requested == "v2"
    assert '"foo"' in str(excinfo.value)

    folder = graph.add_repo(f"{FOO}#v2", overwrite=True)

    assert folder == ".bunches/foo"
    assert graph.repos["foo"].reference == "v2"
    assert not marker.exists()
    assert len(git.calls_named("clone")) == 2


def test_same_reference_is_not_a_conflict(tmp_path, make_bunch) -> None:
    git = FakeGitClient(_remotes())
    graph = make_bunch(tmp_path, git).pick()

    graph.add_repo(f"{FOO}#v1")
    graph.add_repo("git@github.com:org/foo#v1")

    assert len(git.calls_named("clone")) == 1


def test_nested_conflict_is_a_hard_failure(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- {FOO}\n- {BAR}#v2\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()

    with pytest.raises(ConflictError):
        graph.lock_repos(sync=False)


def test_existing_folder_is_reused_without_cloning(tmp_path, make_bunch) -> None:
    (tmp_path / ".bunches" / "foo").mkdir(parents=True)
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()

    assert "foo" in graph.repos
    assert git.calls_named("clone") == []


def test_pins_keep_their_folder(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, f"bunches:\n- spec: {BAZ}\n  path: vendor/baz\n")
    git = FakeGitClient(_remotes())

    graph = make_bunch(tmp_path, git).pick()

    assert graph.repos["baz"].folder_path == tmp_path / "vendor" / "baz"
    assert (tmp_path / "vendor" / "baz" / "README.md").is_file()
    assert entry_folder(RepoPin(spec=BAZ, path="vendor/baz")) == "vendor/baz"
    assert entry_folder(BAZ) == ".bunches/baz"


def test_clone_failure_surfaces_transport_message(tmp_path, make_bunch) -> None:
    write_rc(tmp_path, "bunches:\n- https://github.com/org/missing\n")
    git = FakeGitClient(_remotes())

    with pytest.raises(FetchError) as excinfo:
        make_bunch(tmp_path, git).pick()

    assert str(excinfo.value) == (
        "fatal: repository 'https://github.com/org/missing' does not exist"
    )


def test_remove_unknown_name_is_reported_and_harmless(
    tmp_path, make_bunch, reporter, settings
) -> None:
    write_rc(tmp_path, f"bunches:\n- {BAZ}\n")
    git = FakeGitClient(_remotes())
    graph = make_bunch(tmp_path, git).pick()
    before = store.load(tmp_path, settings)

    assert graph.remove_repo("nope") is None

    assert "doesn't reference nope" in reporter.file.getvalue()
    assert (tmp_path / ".bunches" / "baz").is_dir()
    assert store.load(tmp_path, settings) == before


def test_removed_repo_is_gone_after_config_update(
    tmp_path, make_bunch, settings
) -> None:
    write_rc(tmp_path, f"bunches:\n- {BAZ}\n- {FOO}#v1\n")
    git = FakeGitClient(_remotes())
    graph = make_bunch(tmp_path, git).pick()

    removed = graph.remove_repo("baz")

    assert removed is not None
    assert removed.name == "baz"
    assert not removed.folder_path.exists()
    assert "baz" not in graph.repos

    store.update(
        tmp_path,
        {"bunches": lambda entries: [e for e in entries if e != BAZ]},
        settings,
    )
    assert list(make_bunch(tmp_path, git).pick().repos) == ["foo"]


def test_ensure_link_skips_real_folders(tmp_path, make_bunch) -> None:
    graph = make_bunch(tmp_path, FakeGitClient()).pick()
    member = tmp_path / "packages" / "app"
    (member / ".bunches").mkdir(parents=True)

    assert graph.ensure_link(member) is False
    assert not (member / ".bunches").is_symlink()


def test_ensure_link_is_stable_and_repoints_stale_links(tmp_path, make_bunch) -> None:
    graph = make_bunch(tmp_path, FakeGitClient()).pick()
    member = tmp_path / "packages" / "app"
    member.mkdir(parents=True)
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()

    assert graph.ensure_link(member) is True
    assert graph.ensure_link(member) is False

    (member / ".bunches").unlink()
    (member / ".bunches").symlink_to(elsewhere, target_is_directory=True)

    assert graph.ensure_link(member) is True
    assert os.path.samefile(member / ".bunches", tmp_path / ".bunches")
    assert [p.name for p in member.iterdir()] == [".bunches"]


def _write_workspace(root, patterns, name="root") -> None:
    root.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name}
    if patterns is not None:
        manifest["workspaces"] = patterns
    (root / "package.json").write_text(json.dumps(manifest), encoding="utf-8")


def test_link_all_workspace_members_and_clean_up(tmp_path, make_bunch) -> None:
    _write_workspace(tmp_path, ["packages/*"])
    _write_workspace(tmp_path / "packages" / "a", None, name="a")
    _write_workspace(tmp_path / "packages" / "b", ["plugins/*"], name="b")
    _write_workspace(tmp_path / "packages" / "b" / "plugins" / "c", None, name="c")
    write_rc(tmp_path, f"bunches:\n- {BAZ}\n")
    bunch = make_bunch(tmp_path, FakeGitClient(_remotes()))
    graph = bunch.pick()
    project = Project.find(tmp_path)

    assert graph.link_all_workspace_members(project) == 3
    for member in ("packages/a", "packages/b", "packages/b/plugins/c"):
        assert (tmp_path / member / ".bunches").is_symlink()
    assert not (tmp_path / ".bunches").is_symlink()

    assert bunch.clean_up_links(project) == 3
    assert not (tmp_path / "packages" / "a" / ".bunches").exists()
    assert bunch.clean_up_links(project) == 0

    bunch.clean_up_folder()
    assert not (tmp_path / ".bunches").exists()


def test_shared_dependency_is_visited_once(tmp_path, make_bunch) -> None:
    remotes = _remotes()
    remotes[FOO]["files"][".bunchesrc.yml"] = f"bunches:\n- {BAR}\n- {BAZ}\n"
    write_rc(tmp_path, f"bunches:\n- {FOO}\n")
    git = FakeGitClient(remotes)

    graph = make_bunch(tmp_path, git).pick()
    graph.lock_repos()

    assert list(graph.repos) == ["foo", "bar", "baz"]
    assert [call[1] for call in git.calls_named("pull")] == [
        str(tmp_path / ".bunches" / name) for name in ("foo", "bar", "baz")
    ]
    assert len(git.calls_named("clone")) == 3
