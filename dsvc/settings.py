from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    # Monitor timing (milliseconds)
    wait_delay_ms: int = _env_int("DSVC_WAIT_DELAY_MS", 2000)
    monitor_for_ms: int = _env_int("DSVC_MONITOR_FOR_MS", 3000)
    wait_time_ms: int = _env_int("DSVC_WAIT_TIME_MS", 60_000)

    # Event store
    db_path: str = os.getenv("DSVC_DB_PATH", "dsvc.db")
    record_events: bool = _env_bool("DSVC_RECORD_EVENTS", True)

    # Registry credentials (optional)
    registry_username: str | None = os.getenv("DSVC_REGISTRY_USERNAME")
    registry_password: str | None = os.getenv("DSVC_REGISTRY_PASSWORD")
    registry_server: str | None = os.getenv("DSVC_REGISTRY_SERVER")


settings = Settings()


def registry_auth(cfg: Settings | None = None) -> dict[str, Any] | None:
    """Build a docker auth_config from the configured registry credentials.

    Returns None when no username is configured, which lets the engine fall
    back to the daemon's own credential store.
    """
    cfg = cfg or settings
    if not cfg.registry_username:
        return None
    auth: dict[str, Any] = {
        "username": cfg.registry_username,
        "password": cfg.registry_password or "",
    }
    if cfg.registry_server:
        auth["serveraddress"] = cfg.registry_server
    return auth
