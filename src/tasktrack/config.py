# src/tasktrack/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- State emoji also accept the legacy DEFAULT_TASK_<STATE>_EMOJI names.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

ENV_PREFIX = "TASKTRACK"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _state_emoji(state: str, default: str) -> str:
    upper = state.upper()
    raw = _first_env(_k(f"{upper}_EMOJI"), f"DEFAULT_TASK_{upper}_EMOJI", default=default) or default
    return raw.strip().strip(":")


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: List[str]
    auto_join: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    matrix_store_path: Path
    tasks_db_path: Path

    # ---- Task states ----
    state_emoji: Dict[str, str]

    # ---- History scan ----
    scan_lookback_days: int
    scan_history_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="tasktrack") or "tasktrack"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        matrix_homeserver = (_first_env(_k("MATRIX_HOMESERVER"), "MATRIX_HOMESERVER", default="") or "").strip()
        matrix_user_id = (_first_env(_k("MATRIX_USER_ID"), "MATRIX_USER_ID", default="") or "").strip()
        matrix_password = (_first_env(_k("MATRIX_PASSWORD"), "MATRIX_PASSWORD", default="") or "").strip()
        matrix_rooms = _env_list(_k("MATRIX_ROOMS"), _env_list("MATRIX_ROOMS", []))
        auto_join = _env_bool(_k("AUTO_JOIN"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasktrack"))
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), _env_path("SQLITE_PATH", data_dir / "tasks.sqlite3"))

        state_emoji = {
            "open": _state_emoji("open", "eyes"),
            "working": _state_emoji("working", "hammer"),
            "review": _state_emoji("review", "mag"),
            "finished": _state_emoji("finished", "white_check_mark"),
        }

        scan_lookback_days = max(0, _env_int(_k("SCAN_LOOKBACK_DAYS"), 90))
        scan_history_limit = max(1, _env_int(_k("SCAN_HISTORY_LIMIT"), 1000))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_rooms=matrix_rooms,
            auto_join=auto_join,
            data_dir=data_dir,
            matrix_store_path=matrix_store_path,
            tasks_db_path=tasks_db_path,
            state_emoji=state_emoji,
            scan_lookback_days=scan_lookback_days,
            scan_history_limit=scan_history_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
