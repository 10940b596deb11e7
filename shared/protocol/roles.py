"""Which kinds each connection role may carry, and which peer may send them."""

from __future__ import annotations

from typing import Dict, FrozenSet

from .errors import ProtocolViolation, RoleViolation
from .kinds import ConnRole, FrameKind, Peer
from .messages import catalog_entry

LEGAL_KINDS: Dict[ConnRole, FrozenSet[FrameKind]] = {
    ConnRole.CELL: frozenset(
        {
            FrameKind.IAM,
            FrameKind.ACCEPT,
            FrameKind.MOUNT,
            FrameKind.UNMOUNT,
            FrameKind.NEED_BAND,
        }
    ),
    ConnRole.BAND: frozenset(
        {
            FrameKind.HTTP_REQ_HEAD,
            FrameKind.HTTP_REQ_BODY,
            FrameKind.HTTP_REQ_END,
            FrameKind.HTTP_RES_HEAD,
            FrameKind.HTTP_RES_BODY,
            FrameKind.HTTP_RES_END,
        }
    ),
}


def legal_kinds(role: ConnRole) -> FrozenSet[FrameKind]:
    return LEGAL_KINDS[ConnRole(role)]


def check_legal(role: ConnRole, kind: int) -> FrameKind:
    """Return the kind if `role` may carry it, raise RoleViolation otherwise."""
    entry = catalog_entry(kind)
    if entry.kind not in legal_kinds(role):
        raise RoleViolation(f"{entry.kind.name} is not allowed on a {ConnRole(role).name} connection")
    return entry.kind


def check_sender(kind: int, sender: Peer) -> None:
    """Reject a kind arriving from a peer that is not allowed to send it."""
    entry = catalog_entry(kind)
    if entry.sender is not sender:
        raise ProtocolViolation(f"{entry.kind.name} may only be sent by the {entry.sender.value}, not the {sender.value}")


__all__ = ["LEGAL_KINDS", "legal_kinds", "check_legal", "check_sender"]
