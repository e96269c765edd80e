"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class AppSettings:
    """
    Process-wide settings read at start-up.
    """

    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    return AppSettings(log_level=_get_str_env("LOG_LEVEL", "INFO").upper())


@dataclass(frozen=True)
class BusinessImportSettings:
    """
    Runtime settings for bulk business CSV imports.

    ``confirm_threshold`` is a soft gate: imports with more rows than this
    need explicit confirmation before anything is written.

    ``retained_finished_jobs`` bounds how many finished imports stay in
    memory for live status; older ones are served from their job record.
    """

    batch_size: int = 50
    batch_delay_seconds: float = 0.1
    confirm_threshold: int = 100
    max_upload_bytes: int = _DEFAULT_MAX_UPLOAD_BYTES
    log_row_errors: bool = True
    retained_finished_jobs: int = 20


@lru_cache(maxsize=1)
def get_business_import_settings() -> BusinessImportSettings:
    """
    Return cached business import settings from environment variables.
    """

    return BusinessImportSettings(
        batch_size=max(1, _get_int_env("BUSINESS_IMPORT_BATCH_SIZE", 50)),
        batch_delay_seconds=max(0.0, _get_float_env("BUSINESS_IMPORT_BATCH_DELAY_SECONDS", 0.1)),
        confirm_threshold=max(1, _get_int_env("BUSINESS_IMPORT_CONFIRM_THRESHOLD", 100)),
        max_upload_bytes=max(
            1,
            _get_int_env("BUSINESS_IMPORT_MAX_UPLOAD_BYTES", _DEFAULT_MAX_UPLOAD_BYTES),
        ),
        log_row_errors=_get_bool_env("BUSINESS_IMPORT_LOG_ROW_ERRORS", True),
        retained_finished_jobs=max(0, _get_int_env("BUSINESS_IMPORT_RETAINED_FINISHED_JOBS", 20)),
    )


_POSITIVE_INT_ENV = (
    "BUSINESS_IMPORT_BATCH_SIZE",
    "BUSINESS_IMPORT_CONFIRM_THRESHOLD",
    "BUSINESS_IMPORT_MAX_UPLOAD_BYTES",
)


def business_import_env_problems() -> list[str]:
    """
    Describe every BUSINESS_IMPORT_* variable that is set to an invalid value.

    The settings getter falls back to defaults for such values; startup
    validation uses this list to refuse them instead.
    """

    _load_env_once()
    problems: list[str] = []

    for name in _POSITIVE_INT_ENV:
        problem = _env_number_problem(name, int, 1, "a positive integer")
        if problem:
            problems.append(problem)

    for name, parse, description in (
        ("BUSINESS_IMPORT_RETAINED_FINISHED_JOBS", int, "a non-negative integer"),
        ("BUSINESS_IMPORT_BATCH_DELAY_SECONDS", float, "a non-negative number of seconds"),
    ):
        problem = _env_number_problem(name, parse, 0, description)
        if problem:
            problems.append(problem)

    return problems


def _env_number_problem(name: str, parse: type, minimum: float, description: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        value = parse(raw.strip())
    except ValueError:
        return f"{name}='{raw}' must be {description}."
    # Written so that NaN fails too.
    if not value >= minimum:
        return f"{name}='{raw}' must be {description}."
    return None
