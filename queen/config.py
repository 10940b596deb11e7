from __future__ import annotations

import os
from typing import Any, Dict

from shared.settings import load_settings

DEFAULT_QUEEN_CONFIG: Dict[str, Any] = {
    "host": "0.0.0.0",
    "hive_port": 2001,
    "http_host": "0.0.0.0",
    "http_port": 8080,
    "log_level": "INFO",
    "mount_policy": "reject",
    "band_batch": 1,
    "band_wait_timeout": 10.0,
    "body_chunk_size": 64 * 1024,
    "max_frame_size": 16 * 1024 * 1024,
}

QUEEN_CONFIG = DEFAULT_QUEEN_CONFIG.copy()


def load_queen_config(env_path: str = ".env") -> Dict[str, Any]:
    settings = load_settings(env_path)
    QUEEN_CONFIG["hive_port"] = settings.hive_port
    QUEEN_CONFIG["http_port"] = settings.http_port
    QUEEN_CONFIG["log_level"] = settings.log_level
    QUEEN_CONFIG["body_chunk_size"] = settings.body_chunk_size
    QUEEN_CONFIG["max_frame_size"] = settings.max_frame_size

    QUEEN_CONFIG["host"] = os.getenv("QUEEN_HOST", QUEEN_CONFIG["host"])
    QUEEN_CONFIG["http_host"] = os.getenv("QUEEN_HTTP_HOST", QUEEN_CONFIG["http_host"])
    QUEEN_CONFIG["mount_policy"] = os.getenv("QUEEN_MOUNT_POLICY", QUEEN_CONFIG["mount_policy"])
    QUEEN_CONFIG["band_batch"] = int(os.getenv("QUEEN_BAND_BATCH", QUEEN_CONFIG["band_batch"]))
    QUEEN_CONFIG["band_wait_timeout"] = float(
        os.getenv("QUEEN_BAND_WAIT_TIMEOUT", QUEEN_CONFIG["band_wait_timeout"])
    )
    return QUEEN_CONFIG


__all__ = ["QUEEN_CONFIG", "load_queen_config"]
