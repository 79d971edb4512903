"""Configuration utilities.

All tunables are read from environment variables, optionally loaded from
a .env file first.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

STORAGE_BACKENDS = ("inmemory", "file")


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def get_draft_storage_path() -> Path:
    """
    Get the draft file location.

    Expands ~ and environment variables in DRAFT_STORAGE_PATH.

    Returns:
        Path from DRAFT_STORAGE_PATH, defaults to ~/.pawdiary/activity-drafts.json
    """
    raw = os.getenv("DRAFT_STORAGE_PATH", "~/.pawdiary/activity-drafts.json")
    return Path(os.path.expandvars(raw)).expanduser()


@dataclass(frozen=True)
class Settings:
    """
    Engine settings.

    Attributes:
        max_drafts_per_pet: Drafts retained per pet before eviction
        draft_expiry_days: Drafts untouched for longer are purged
        autosave_delay_s: Debounce window of the auto-save scheduler
        retry_attempts: Total attempts for a remote call
        retry_initial_delay_s: Wait after the first failure
        retry_backoff: Multiplier applied to the wait after each failure
        cache_stale_time_s: Cached reads younger than this are served as-is
        cache_gc_time_s: Unobserved cache entries older than this are dropped
        draft_storage_backend: "inmemory" or "file"
        draft_storage_path: JSON file used by the "file" backend
        log_level: Root level for structlog filtering
    """

    max_drafts_per_pet: int = 5
    draft_expiry_days: int = 7
    autosave_delay_s: float = 2.0
    retry_attempts: int = 3
    retry_initial_delay_s: float = 1.0
    retry_backoff: float = 1.5
    cache_stale_time_s: float = 30.0
    cache_gc_time_s: float = 300.0
    draft_storage_backend: str = "file"
    draft_storage_path: Path = Path("~/.pawdiary/activity-drafts.json").expanduser()
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Environment Variables:
            PAWDIARY_MAX_DRAFTS_PER_PET (5)
            PAWDIARY_DRAFT_EXPIRY_DAYS (7)
            PAWDIARY_AUTOSAVE_DELAY_S (2.0)
            PAWDIARY_RETRY_ATTEMPTS (3)
            PAWDIARY_RETRY_INITIAL_DELAY_S (1.0)
            PAWDIARY_RETRY_BACKOFF (1.5)
            PAWDIARY_CACHE_STALE_TIME_S (30)
            PAWDIARY_CACHE_GC_TIME_S (300)
            DRAFT_STORAGE_BACKEND (file | inmemory)
            DRAFT_STORAGE_PATH (~/.pawdiary/activity-drafts.json)
            LOG_LEVEL (INFO)

        Raises:
            ValueError: If a variable has an invalid value
        """
        backend = os.getenv("DRAFT_STORAGE_BACKEND", "file").strip().lower()
        if backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown DRAFT_STORAGE_BACKEND value: '{backend}'. "
                f"Supported values: {', '.join(STORAGE_BACKENDS)}"
            )

        return cls(
            max_drafts_per_pet=_get_int("PAWDIARY_MAX_DRAFTS_PER_PET", 5, minimum=1),
            draft_expiry_days=_get_int("PAWDIARY_DRAFT_EXPIRY_DAYS", 7, minimum=1),
            autosave_delay_s=_get_float("PAWDIARY_AUTOSAVE_DELAY_S", 2.0),
            retry_attempts=_get_int("PAWDIARY_RETRY_ATTEMPTS", 3, minimum=1),
            retry_initial_delay_s=_get_float("PAWDIARY_RETRY_INITIAL_DELAY_S", 1.0),
            retry_backoff=_get_float("PAWDIARY_RETRY_BACKOFF", 1.5, minimum=1.0),
            cache_stale_time_s=_get_float("PAWDIARY_CACHE_STALE_TIME_S", 30.0),
            cache_gc_time_s=_get_float("PAWDIARY_CACHE_GC_TIME_S", 300.0),
            draft_storage_backend=backend,
            draft_storage_path=get_draft_storage_path(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load .env (if present) and build Settings.

    Values already set in the process environment win over the file.

    Args:
        env_file: Explicit .env path; defaults to ./.env
    """
    path = Path(env_file) if env_file is not None else Path.cwd() / ".env"
    if path.exists():
        load_dotenv(path)
    return Settings.from_env()
