from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import uuid4


def generate_session_id(prefix: Optional[str] = None) -> str:
    """Generate a fresh session identifier."""
    base = str(uuid4())
    return f"{prefix}-{base}" if prefix else base


def utc_timestamp() -> int:
    """Current UTC timestamp in seconds."""
    return int(time.time())


def to_multidict(items: Iterable[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Group (name, value) pairs into name -> values, keeping value order."""
    result: Dict[str, List[str]] = {}
    for name, value in items:
        result.setdefault(name, []).append(value)
    return result


__all__ = ["generate_session_id", "utc_timestamp", "to_multidict"]
