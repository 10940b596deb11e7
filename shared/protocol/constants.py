"""Protocol-wide constants shared by queen and cell."""

ENCODING = "utf-8"
LENGTH_PREFIX_SIZE = 4  # bytes, big-endian, ahead of every transport frame
MAX_FRAME_SIZE = 16 * 1024 * 1024  # 16 MiB upper bound for a single frame
DEFAULT_BODY_CHUNK_SIZE = 64 * 1024

__all__ = [
    "ENCODING",
    "LENGTH_PREFIX_SIZE",
    "MAX_FRAME_SIZE",
    "DEFAULT_BODY_CHUNK_SIZE",
]
