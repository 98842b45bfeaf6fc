from pathlib import Path


def _context(json_output: bool = False):
    from .report import Reporter
    from .runtime import Settings

    return Settings.from_env(), Reporter(json_output=json_output)


def add(spec: str, *, cwd: str | Path | None = None) -> str:
    from .actions import add_bunch

    settings, reporter = _context()
    return add_bunch(spec, cwd or Path.cwd(), settings=settings, reporter=reporter)


def remove(name: str, *, cwd: str | Path | None = None) -> bool:
    from .actions import remove_bunch

    settings, reporter = _context()
    removed = remove_bunch(name, cwd or Path.cwd(), settings=settings, reporter=reporter)
    return removed is not None


def sync(*, cwd: str | Path | None = None) -> list[str]:
    from .actions import sync_bunches

    settings, reporter = _context()
    graph = sync_bunches(cwd or Path.cwd(), settings=settings, reporter=reporter)
    return list(graph.repos)


def list_bunches(*, cwd: str | Path | None = None) -> list[str]:
    from .actions import list_bunches as _list_bunches

    settings, reporter = _context()
    listed = _list_bunches(cwd or Path.cwd(), settings=settings, reporter=reporter)
    return [item.name for item in listed]


def clean(*, full: bool = False, cwd: str | Path | None = None) -> None:
    from .actions import clean_bunches

    settings, reporter = _context()
    clean_bunches(cwd or Path.cwd(), full=full, settings=settings, reporter=reporter)


__all__ = [
    "add",
    "remove",
    "sync",
    "list_bunches",
    "clean",
]
