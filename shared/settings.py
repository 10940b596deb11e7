from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from shared.protocol.constants import DEFAULT_BODY_CHUNK_SIZE, MAX_FRAME_SIZE


@dataclass
class Settings:
    """Shared baseline settings (queen and cell configs build on top)."""

    queen_host: str = "127.0.0.1"
    hive_port: int = 2001
    http_port: int = 8080
    log_level: str = "INFO"
    max_frame_size: int = MAX_FRAME_SIZE
    body_chunk_size: int = DEFAULT_BODY_CHUNK_SIZE


SETTINGS = Settings()


def load_settings(env_path: str = ".env") -> Settings:
    """Load shared settings from env/.env."""
    if Path(env_path).exists():
        load_dotenv(env_path)
    SETTINGS.queen_host = os.getenv("HIVE_QUEEN_HOST", SETTINGS.queen_host)
    SETTINGS.hive_port = int(os.getenv("HIVE_PORT", SETTINGS.hive_port))
    SETTINGS.http_port = int(os.getenv("HIVE_HTTP_PORT", SETTINGS.http_port))
    SETTINGS.log_level = os.getenv("HIVE_LOG_LEVEL", SETTINGS.log_level)
    SETTINGS.max_frame_size = int(os.getenv("HIVE_MAX_FRAME_SIZE", SETTINGS.max_frame_size))
    SETTINGS.body_chunk_size = int(os.getenv("HIVE_BODY_CHUNK_SIZE", SETTINGS.body_chunk_size))
    return SETTINGS


__all__ = ["Settings", "SETTINGS", "load_settings"]
