from __future__ import annotations

import os
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Mapping

DEFAULT_RC_FILENAME = ".bunchesrc.yml"
BUNCH_FOLDER = ".bunches"

RC_FILENAME_ENV = "BUNCHES_RC_FILENAME"
GIT_TIMEOUT_ENV = "BUNCHES_GIT_TIMEOUT"
LOCK_TIMEOUT_ENV = "BUNCHES_LOCK_TIMEOUT"
VERBOSE_ENV = "BUNCHES_VERBOSE"

_DEFAULT_GIT_TIMEOUT = 600.0
_DEFAULT_LOCK_TIMEOUT = 60.0

_VERBOSE_LOGGING: ContextVar[bool] = ContextVar(
    "bunches_verbose_logging", default=False
)


def _read_seconds_env(
    environ: Mapping[str, str], name: str, default: float
) -> float | None:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value < 0:
        return default
    # zero disables the deadline
    return value or None


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, resolved once at startup."""

    rc_filename: str = DEFAULT_RC_FILENAME
    git_timeout: float | None = _DEFAULT_GIT_TIMEOUT
    lock_timeout: float | None = _DEFAULT_LOCK_TIMEOUT

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        rc_filename = (env.get(RC_FILENAME_ENV) or "").strip() or DEFAULT_RC_FILENAME
        return cls(
            rc_filename=rc_filename,
            git_timeout=_read_seconds_env(env, GIT_TIMEOUT_ENV, _DEFAULT_GIT_TIMEOUT),
            lock_timeout=_read_seconds_env(
                env, LOCK_TIMEOUT_ENV, _DEFAULT_LOCK_TIMEOUT
            ),
        )


def verbose_from_env(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    raw = (env.get(VERBOSE_ENV) or "").strip().lower()
    return raw in {"1", "true", "yes"}


def get_verbose_logging() -> bool:
    return _VERBOSE_LOGGING.get()


def set_verbose_logging(enabled: bool) -> Token[bool]:
    return _VERBOSE_LOGGING.set(bool(enabled))


def reset_verbose_logging(token: Token[bool]) -> None:
    _VERBOSE_LOGGING.reset(token)
