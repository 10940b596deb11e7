from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Dict, Iterable, Optional, Tuple


class FrameKind(IntEnum):
    """
    Tag byte identifying what a frame carries.
    These numbers are part of the wire contract: never renumber them and never
    let them be assigned automatically.
    """

    # Setup
    IAM = 0x00
    ACCEPT = 0x08

    # Mounting
    MOUNT = 0x10
    UNMOUNT = 0x11

    # Resource scaling
    NEED_BAND = 0x20

    # HTTP request leg
    HTTP_REQ_HEAD = 0x30
    HTTP_REQ_BODY = 0x31
    HTTP_REQ_END = 0x32

    # HTTP response leg
    HTTP_RES_HEAD = 0x38
    HTTP_RES_BODY = 0x39
    HTTP_RES_END = 0x3A


class KindFamily(StrEnum):
    SETUP = "setup"
    MOUNTING = "mounting"
    SCALING = "scaling"
    HTTP_REQUEST = "http-request"
    HTTP_RESPONSE = "http-response"


class ConnRole(IntEnum):
    """Role a connection plays, as carried in the IAm ``connKind`` field."""

    CELL = 0x0
    BAND = 0x1


class Peer(StrEnum):
    """Side of a connection allowed to send a given kind."""

    QUEEN = "queen"
    CELL = "cell"


class PayloadShape(StrEnum):
    EMPTY = "empty"
    RAW = "raw"
    STRUCTURED = "structured"


# Inclusive tag ranges per family.
FAMILY_RANGES: Dict[KindFamily, Tuple[int, int]] = {
    KindFamily.SETUP: (0x00, 0x0F),
    KindFamily.MOUNTING: (0x10, 0x1F),
    KindFamily.SCALING: (0x20, 0x2F),
    KindFamily.HTTP_REQUEST: (0x30, 0x37),
    KindFamily.HTTP_RESPONSE: (0x38, 0x3F),
}


def family_of(tag: int) -> Optional[KindFamily]:
    """Return the family a tag belongs to, or None outside every range."""
    for family, (low, high) in FAMILY_RANGES.items():
        if low <= tag <= high:
            return family
    return None


def is_kind(tag: int) -> bool:
    """Check if `tag` is a known frame kind."""
    try:
        FrameKind(tag)
        return True
    except ValueError:
        return False


def kinds_in_family(family: KindFamily) -> Iterable[FrameKind]:
    """Yield kinds belonging to the specified family, in tag order."""
    for kind in FrameKind:
        if family_of(kind) == family:
            yield kind


__all__ = [
    "FrameKind",
    "KindFamily",
    "ConnRole",
    "Peer",
    "PayloadShape",
    "FAMILY_RANGES",
    "family_of",
    "is_kind",
    "kinds_in_family",
]
