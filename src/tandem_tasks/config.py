# src/tandem_tasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets, nothing required at import time.
- Every value has a default that runs a local two-person demo.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "TANDEM"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


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


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    # Participant names may contain spaces, so only commas separate items.
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.split(",") if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Participants / approval ----
    participants: List[str]
    current_user: str
    quorum: int

    # ---- Sync ----
    poll_interval_seconds: float
    poll_timeout_seconds: float
    transport_latency_seconds: float

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    persist_store: bool
    store_snapshot_path: Path
    client_cache_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tandem")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        participants = _env_list(_k("PARTICIPANTS"), ["Maya", "Rayanha"])
        current_user = _env(_k("CURRENT_USER"), participants[0] if participants else "").strip()
        quorum = max(2, _env_int(_k("QUORUM"), 2))

        poll_interval_seconds = max(0.5, _env_float(_k("POLL_INTERVAL_SECONDS"), 5.0))
        poll_timeout_seconds = max(0.5, _env_float(_k("POLL_TIMEOUT_SECONDS"), 10.0))
        transport_latency_seconds = max(0.0, _env_float(_k("TRANSPORT_LATENCY_SECONDS"), 0.0))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tandem"))
        persist_store = _env_bool(_k("PERSIST_STORE"), True)
        store_snapshot_path = _env_path(_k("STORE_SNAPSHOT_PATH"), data_dir / "store.json")
        client_cache_path = _env_path(_k("CLIENT_CACHE_PATH"), data_dir / "client_cache.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            participants=participants,
            current_user=current_user,
            quorum=quorum,
            poll_interval_seconds=poll_interval_seconds,
            poll_timeout_seconds=poll_timeout_seconds,
            transport_latency_seconds=transport_latency_seconds,
            console_enabled=console_enabled,
            data_dir=data_dir,
            persist_store=persist_store,
            store_snapshot_path=store_snapshot_path,
            client_cache_path=client_cache_path,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
