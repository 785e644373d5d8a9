"""
Runtime configuration, read once from the environment.
A local .env is loaded first (dev convenience; in prod the platform injects env vars).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .secret import MAX_LEVEL

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./bullscows.db"


@dataclass(frozen=True)
class GameSettings:
    app_env: str = "local"
    database_url: str = DEFAULT_DATABASE_URL
    storage_backend: str = "sql"
    levels: tuple[int, ...] = (3, 4, 5)
    default_level: int = 4
    max_scores_per_level: int = 10
    max_pending_scores: int = 50
    sync_interval_seconds: float = 60.0
    sync_max_retries: int = 3
    score_store_url: str | None = None
    score_store_token: str | None = None


def _parse_levels(raw: str) -> tuple[int, ...]:
    try:
        levels = tuple(sorted({int(part) for part in raw.split(",") if part.strip()}))
    except ValueError as exc:
        raise ValueError(f"Invalid GAME_LEVELS={raw!r}. Expected comma separated integers.") from exc
    if not levels:
        raise ValueError("GAME_LEVELS must name at least one level.")
    for level in levels:
        if level < 1 or level > MAX_LEVEL:
            raise ValueError(f"Invalid level {level} in GAME_LEVELS. Must be between 1 and {MAX_LEVEL}.")
    return levels


def _positive_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid {name}={raw!r}. Expected an integer.") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}.")
    return value


def load_settings() -> GameSettings:
    load_dotenv()

    levels = _parse_levels(os.getenv("GAME_LEVELS", "3,4,5"))
    default_level = _positive_int("DEFAULT_LEVEL", "4")
    if default_level not in levels:
        raise ValueError(f"DEFAULT_LEVEL={default_level} is not one of GAME_LEVELS {levels}.")

    storage_backend = os.getenv("STORAGE_BACKEND", "sql").lower()
    if storage_backend not in ("sql", "memory"):
        raise ValueError(f"Invalid STORAGE_BACKEND={storage_backend!r}. Must be 'sql' or 'memory'.")

    interval_raw = os.getenv("SYNC_INTERVAL_SECONDS", "60")
    try:
        sync_interval = float(interval_raw)
    except ValueError as exc:
        raise ValueError(f"Invalid SYNC_INTERVAL_SECONDS={interval_raw!r}.") from exc
    if sync_interval <= 0:
        raise ValueError("SYNC_INTERVAL_SECONDS must be positive.")

    return GameSettings(
        app_env=os.getenv("APP_ENV", "local"),
        database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        storage_backend=storage_backend,
        levels=levels,
        default_level=default_level,
        max_scores_per_level=_positive_int("MAX_SCORES_PER_LEVEL", "10"),
        max_pending_scores=_positive_int("MAX_PENDING_SCORES", "50"),
        sync_interval_seconds=sync_interval,
        sync_max_retries=_positive_int("SYNC_MAX_RETRIES", "3"),
        score_store_url=os.getenv("SCORE_STORE_URL") or None,
        score_store_token=os.getenv("SCORE_STORE_TOKEN") or None,
    )
