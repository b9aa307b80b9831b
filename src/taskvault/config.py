"""
Runtime configuration, read from environment variables.

    VAULT_ROOT                    vault directory (required by the server)
    EXCLUDE_DIRS                  directories never scanned
    IGNORED_FOLDERS               archive folders hidden from the index
    IGNORE_ARCHIVED               whether IGNORED_FOLDERS applies at all
    DUE_DATE_ATTRIBUTE            attribute date shorthands expand into
    COMPLETED_DATE_ATTRIBUTE      attribute stamped when a task is closed
    UNDO_ENABLED                  record undo history
    UNDO_HISTORY_SIZE             max operations kept
    UNDO_HISTORY_MAX_AGE_SECONDS  max age of an undoable operation
    POLL_INTERVAL                 watcher polling interval (seconds)
    API_ENABLED / API_PORT        REST API switch and port
    LOG_LEVEL                     logging level name
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Set

_DEFAULT_EXCLUDE_DIRS = ".git,.obsidian,node_modules,.trash"
_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class Settings:
    vault_root: Optional[Path] = None
    exclude_dirs: Set[str] = field(default_factory=lambda: _parse_list(_DEFAULT_EXCLUDE_DIRS))
    ignored_folders: List[str] = field(default_factory=lambda: ["Archive"])
    ignore_archived: bool = True
    due_date_attribute: str = "due"
    completed_date_attribute: str = "completed"
    undo_enabled: bool = True
    undo_history_size: int = 10
    undo_history_max_age_seconds: float = 300.0
    poll_interval: float = 5.0
    api_enabled: bool = True
    api_port: int = 9400
    log_level: str = "INFO"

    @property
    def undo_history_max_age_ms(self) -> float:
        return self.undo_history_max_age_seconds * 1000


def _parse_list(raw: str) -> Set[str]:
    """Parse a comma-separated list, dropping blanks."""
    return {part.strip() for part in raw.split(",") if part.strip()}


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


def _parse_number(environ: Mapping[str, str], name: str, default, cast):
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from ``environ`` (defaults to ``os.environ``)."""
    env = os.environ if environ is None else environ
    defaults = Settings()

    vault_root = env.get("VAULT_ROOT", "")
    ignored_raw = env.get("IGNORED_FOLDERS")

    return Settings(
        vault_root=Path(vault_root) if vault_root else None,
        exclude_dirs=_parse_list(env.get("EXCLUDE_DIRS", _DEFAULT_EXCLUDE_DIRS)),
        ignored_folders=(
            sorted(_parse_list(ignored_raw)) if ignored_raw is not None else defaults.ignored_folders
        ),
        ignore_archived=_parse_bool(env.get("IGNORE_ARCHIVED", "true")),
        due_date_attribute=env.get("DUE_DATE_ATTRIBUTE", defaults.due_date_attribute),
        completed_date_attribute=env.get(
            "COMPLETED_DATE_ATTRIBUTE", defaults.completed_date_attribute
        ),
        undo_enabled=_parse_bool(env.get("UNDO_ENABLED", "true")),
        undo_history_size=_parse_number(env, "UNDO_HISTORY_SIZE", defaults.undo_history_size, int),
        undo_history_max_age_seconds=_parse_number(
            env, "UNDO_HISTORY_MAX_AGE_SECONDS", defaults.undo_history_max_age_seconds, float
        ),
        poll_interval=_parse_number(env, "POLL_INTERVAL", defaults.poll_interval, float),
        api_enabled=_parse_bool(env.get("API_ENABLED", "true")),
        api_port=_parse_number(env, "API_PORT", defaults.api_port, int),
        log_level=env.get("LOG_LEVEL", defaults.log_level).upper(),
    )
