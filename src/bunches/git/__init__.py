from .client import GitClient
from .repo import GitRepo, remove_tree
from .spec import (
    DEFAULT_REFERENCE,
    ParsedSpec,
    RepoEntry,
    RepoPin,
    entry_name,
    entry_spec,
    github_url,
    is_url_like,
    parse_spec,
)

__all__ = [
    "DEFAULT_REFERENCE",
    "GitClient",
    "GitRepo",
    "ParsedSpec",
    "RepoEntry",
    "RepoPin",
    "entry_name",
    "entry_spec",
    "github_url",
    "is_url_like",
    "parse_spec",
    "remove_tree",
]
