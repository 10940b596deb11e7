from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional

import jsonschema

from .errors import PayloadDecodeError
from .kinds import FrameKind, PayloadShape
from .messages import CATALOG


@lru_cache(maxsize=16)
def load_schema(kind: FrameKind) -> Optional[dict]:
    """JSON schema for a structured kind, generated from its catalog model."""
    entry = CATALOG.get(kind)
    if entry is None or entry.shape is not PayloadShape.STRUCTURED:
        return None
    return entry.model.model_json_schema(by_alias=True)


def validate_payload(kind: FrameKind, payload: Dict[str, Any], schema: Optional[dict] = None) -> None:
    """Check a decoded structured payload against the schema of its kind."""
    if not schema:
        schema = load_schema(kind)
    if not schema:
        return
    try:
        jsonschema.validate(instance=payload, schema=schema)
    except jsonschema.ValidationError as exc:
        raise PayloadDecodeError(f"{kind.name} payload failed schema validation: {exc.message}") from exc


__all__ = ["load_schema", "validate_payload"]
