from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Tuple

from shared.settings import load_settings

DEFAULT_CONFIG: Dict[str, Any] = {
    "queen_host": "127.0.0.1",
    "hive_port": 2001,
    "mounts": "/",
    "initial_bands": 1,
    "reconnect_backoff": 1,
    "max_reconnect_backoff": 30,
    "max_reconnect_retries": 5,
    "log_level": "INFO",
    "body_chunk_size": 64 * 1024,
    "max_frame_size": 16 * 1024 * 1024,
}

CELL_CONFIG: Dict[str, Any] = DEFAULT_CONFIG.copy()


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def parse_mounts(spec: str) -> List[Tuple[str, str]]:
    """Parse ``host/path,other.host/path,/path`` into (host, path) pairs."""
    mounts: List[Tuple[str, str]] = []
    for item in spec.split(","):
        item = item.strip()
        if not item:
            continue
        slash = item.find("/")
        if slash == -1:
            mounts.append((item, "/"))
        else:
            mounts.append((item[:slash], item[slash:]))
    return mounts


def load_config(env_path: str = ".env") -> Dict[str, Any]:
    """Load cell configuration from env file/environment variables."""
    settings = load_settings(env_path)
    CELL_CONFIG["queen_host"] = settings.queen_host
    CELL_CONFIG["hive_port"] = settings.hive_port
    CELL_CONFIG["log_level"] = settings.log_level
    CELL_CONFIG["body_chunk_size"] = settings.body_chunk_size
    CELL_CONFIG["max_frame_size"] = settings.max_frame_size

    CELL_CONFIG["mounts"] = os.getenv("CELL_MOUNTS", CELL_CONFIG["mounts"])
    try:
        CELL_CONFIG["initial_bands"] = int(os.getenv("CELL_INITIAL_BANDS", CELL_CONFIG["initial_bands"]))
        CELL_CONFIG["reconnect_backoff"] = int(os.getenv("CELL_RECONNECT_BACKOFF", CELL_CONFIG["reconnect_backoff"]))
        CELL_CONFIG["max_reconnect_backoff"] = int(
            os.getenv("CELL_MAX_RECONNECT_BACKOFF", CELL_CONFIG["max_reconnect_backoff"])
        )
        CELL_CONFIG["max_reconnect_retries"] = int(
            os.getenv("CELL_MAX_RECONNECT_RETRIES", CELL_CONFIG["max_reconnect_retries"])
        )
    except ValueError as exc:
        raise ConfigError(f"Invalid numeric cell setting: {exc}") from exc
    if CELL_CONFIG["initial_bands"] < 0:
        raise ConfigError("CELL_INITIAL_BANDS must not be negative")

    logging.getLogger(__name__).debug("Cell config loaded: %s", CELL_CONFIG)
    return CELL_CONFIG


__all__ = ["CELL_CONFIG", "DEFAULT_CONFIG", "ConfigError", "load_config", "parse_mounts"]
