"""
Explicit state machines for the two connection roles.

`on_frame` is the pure transition function: it looks the (state, kind) pair up
in the role's transition table, checks message-level preconditions and returns
the next state together with the effects the connection owner must apply.
`CellMachine` and `BandMachine` keep the state of one connection and feed it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Tuple, Union

from .errors import NotMountOwner, ProtocolViolation
from .kinds import ConnRole, FrameKind
from .messages import (
    Accept,
    BaseFrame,
    HTTPReqBody,
    HTTPReqHead,
    HTTPResBody,
    HTTPResHead,
    IAm,
    Mount,
    NeedBand,
    Unmount,
)
from .roles import check_legal


class CellState(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    AWAITING_ACCEPT = "awaiting-accept"
    AUTHENTICATED = "authenticated"
    MOUNTED = "mounted"
    CLOSED = "closed"


class ExchangeState(StrEnum):
    IDLE = "idle"
    REQ_HEAD_RECEIVED = "req-head-received"
    REQ_BODY_OPEN = "req-body-open"
    REQ_COMPLETE = "req-complete"
    RES_HEAD_SENT = "res-head-sent"
    RES_BODY_OPEN = "res-body-open"
    CLOSED = "closed"


def normalize_path(path: str) -> str:
    """Mount paths always start with '/' and never end with one (except the root)."""
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


class MountPoint(NamedTuple):
    """A (host, path) mount. Hosts compare case-insensitively, paths without trailing slashes."""

    host: str
    path: str

    @classmethod
    def of(cls, message: Union[Mount, Unmount]) -> "MountPoint":
        return cls(message.host, message.path).normalized()

    def normalized(self) -> "MountPoint":
        return MountPoint(self.host.lower(), normalize_path(self.path))


# --- Effects ---------------------------------------------------------------
@dataclass(frozen=True)
class IssueSession:
    """A cell IAm was accepted; the queen must issue a session id and send Accept."""


@dataclass(frozen=True)
class SessionAccepted:
    session_id: str


@dataclass(frozen=True)
class RegisterMount:
    mount: MountPoint


@dataclass(frozen=True)
class ReleaseMount:
    mount: MountPoint


@dataclass(frozen=True)
class OpenBands:
    count: int


@dataclass(frozen=True)
class CloseBands:
    pass


@dataclass(frozen=True)
class RequestStarted:
    head: HTTPReqHead


@dataclass(frozen=True)
class RequestBodyChunk:
    data: bytes


@dataclass(frozen=True)
class RequestEnded:
    pass


@dataclass(frozen=True)
class ResponseStarted:
    head: HTTPResHead


@dataclass(frozen=True)
class ResponseBodyChunk:
    data: bytes


@dataclass(frozen=True)
class ResponseEnded:
    pass


@dataclass
class Exchange:
    """One request/response cycle reassembled from band frames."""

    request: Optional[HTTPReqHead] = None
    request_body: bytearray = field(default_factory=bytearray)
    response: Optional[HTTPResHead] = None
    response_body: bytearray = field(default_factory=bytearray)

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response else None


@dataclass(frozen=True)
class ExchangeComplete:
    exchange: Exchange


Effect = Union[
    IssueSession,
    SessionAccepted,
    RegisterMount,
    ReleaseMount,
    OpenBands,
    CloseBands,
    RequestStarted,
    RequestBodyChunk,
    RequestEnded,
    ResponseStarted,
    ResponseBodyChunk,
    ResponseEnded,
    ExchangeComplete,
]

# --- Transition tables -----------------------------------------------------
CELL_TRANSITIONS: Dict[Tuple[CellState, FrameKind], CellState] = {
    (CellState.UNAUTHENTICATED, FrameKind.IAM): CellState.AWAITING_ACCEPT,
    (CellState.AWAITING_ACCEPT, FrameKind.ACCEPT): CellState.AUTHENTICATED,
    (CellState.AUTHENTICATED, FrameKind.MOUNT): CellState.MOUNTED,
    (CellState.MOUNTED, FrameKind.MOUNT): CellState.MOUNTED,
    (CellState.AUTHENTICATED, FrameKind.UNMOUNT): CellState.AUTHENTICATED,
    (CellState.MOUNTED, FrameKind.UNMOUNT): CellState.MOUNTED,
    (CellState.AUTHENTICATED, FrameKind.NEED_BAND): CellState.AUTHENTICATED,
    (CellState.MOUNTED, FrameKind.NEED_BAND): CellState.MOUNTED,
}

BAND_TRANSITIONS: Dict[Tuple[ExchangeState, FrameKind], ExchangeState] = {
    (ExchangeState.IDLE, FrameKind.HTTP_REQ_HEAD): ExchangeState.REQ_HEAD_RECEIVED,
    (ExchangeState.REQ_HEAD_RECEIVED, FrameKind.HTTP_REQ_BODY): ExchangeState.REQ_BODY_OPEN,
    (ExchangeState.REQ_BODY_OPEN, FrameKind.HTTP_REQ_BODY): ExchangeState.REQ_BODY_OPEN,
    (ExchangeState.REQ_HEAD_RECEIVED, FrameKind.HTTP_REQ_END): ExchangeState.REQ_COMPLETE,
    (ExchangeState.REQ_BODY_OPEN, FrameKind.HTTP_REQ_END): ExchangeState.REQ_COMPLETE,
    (ExchangeState.REQ_COMPLETE, FrameKind.HTTP_RES_HEAD): ExchangeState.RES_HEAD_SENT,
    (ExchangeState.RES_HEAD_SENT, FrameKind.HTTP_RES_BODY): ExchangeState.RES_BODY_OPEN,
    (ExchangeState.RES_BODY_OPEN, FrameKind.HTTP_RES_BODY): ExchangeState.RES_BODY_OPEN,
    (ExchangeState.RES_HEAD_SENT, FrameKind.HTTP_RES_END): ExchangeState.IDLE,
    (ExchangeState.RES_BODY_OPEN, FrameKind.HTTP_RES_END): ExchangeState.IDLE,
}


def role_from_handshake(message: BaseFrame) -> ConnRole:
    """Fix the role of a fresh connection from its first message."""
    if not isinstance(message, IAm):
        raise ProtocolViolation(f"Connection must open with IAM, got {message.kind.name}")
    role = message.role
    if role is None:
        raise ProtocolViolation(f"Unrecognized connection kind {message.conn_kind}")
    return role


def on_frame(
    role: ConnRole,
    state: Union[CellState, ExchangeState],
    message: BaseFrame,
    mounts: Iterable[MountPoint] = (),
) -> Tuple[Union[CellState, ExchangeState], List[Effect]]:
    """Validate `message` for the role and state, return (new_state, effects)."""
    role = ConnRole(role)
    kind = check_legal(role, message.kind)
    if role is ConnRole.CELL:
        return _cell_transition(CellState(state), kind, message, frozenset(mounts))
    return _band_transition(ExchangeState(state), kind, message)


def _cell_transition(
    state: CellState,
    kind: FrameKind,
    message: BaseFrame,
    mounts: FrozenSet[MountPoint],
) -> Tuple[CellState, List[Effect]]:
    if state is CellState.CLOSED:
        raise ProtocolViolation(f"{kind.name} received on a closed session")
    if kind is FrameKind.IAM and state is not CellState.UNAUTHENTICATED:
        raise ProtocolViolation("IAM received on a connection that already authenticated")
    next_state = CELL_TRANSITIONS.get((state, kind))
    if next_state is None:
        raise ProtocolViolation(f"{kind.name} not allowed while {state.value}")

    if isinstance(message, IAm):
        if message.role is not ConnRole.CELL:
            raise ProtocolViolation(f"IAM on the cell connection declares connection kind {message.conn_kind}")
        return next_state, [IssueSession()]
    if isinstance(message, Accept):
        if not message.uuid:
            raise ProtocolViolation("ACCEPT without a session id")
        return next_state, [SessionAccepted(message.uuid)]
    if isinstance(message, Mount):
        return next_state, [RegisterMount(MountPoint.of(message))]
    if isinstance(message, Unmount):
        mount = MountPoint.of(message)
        if mount not in mounts:
            raise NotMountOwner(f"Session does not own mount {mount.host}{mount.path}")
        remaining = mounts - {mount}
        return (CellState.MOUNTED if remaining else CellState.AUTHENTICATED), [ReleaseMount(mount)]
    if isinstance(message, NeedBand):
        return next_state, [OpenBands(message.count)]
    raise ProtocolViolation(f"No handler for {kind.name}")


def _band_transition(
    state: ExchangeState,
    kind: FrameKind,
    message: BaseFrame,
) -> Tuple[ExchangeState, List[Effect]]:
    if state is ExchangeState.CLOSED:
        raise ProtocolViolation(f"{kind.name} received on a closed band")
    next_state = BAND_TRANSITIONS.get((state, kind))
    if next_state is None:
        raise ProtocolViolation(f"{kind.name} not allowed while {state.value}")

    if isinstance(message, HTTPReqHead):
        return next_state, [RequestStarted(message)]
    if isinstance(message, HTTPReqBody):
        return next_state, [RequestBodyChunk(message.data)]
    if kind is FrameKind.HTTP_REQ_END:
        return next_state, [RequestEnded()]
    if isinstance(message, HTTPResHead):
        return next_state, [ResponseStarted(message)]
    if isinstance(message, HTTPResBody):
        return next_state, [ResponseBodyChunk(message.data)]
    return next_state, [ResponseEnded()]


class CellMachine:
    """State of one cell connection, from either side of it."""

    def __init__(self) -> None:
        self.state = CellState.UNAUTHENTICATED
        self.session_id: Optional[str] = None
        self.mounts: set[MountPoint] = set()

    @property
    def closed(self) -> bool:
        return self.state is CellState.CLOSED

    def feed(self, message: BaseFrame) -> List[Effect]:
        next_state, effects = on_frame(ConnRole.CELL, self.state, message, self.mounts)
        for effect in effects:
            if isinstance(effect, SessionAccepted):
                self.session_id = effect.session_id
            elif isinstance(effect, RegisterMount):
                self.mounts.add(effect.mount)
            elif isinstance(effect, ReleaseMount):
                self.mounts.discard(effect.mount)
        self.state = next_state
        return effects

    def forget_mount(self, mount: MountPoint) -> None:
        """Drop a mount another session took over."""
        self.mounts.discard(mount.normalized())
        if self.state is CellState.MOUNTED and not self.mounts:
            self.state = CellState.AUTHENTICATED

    def close(self) -> List[Effect]:
        """Tear the session down; returns the releases the owner must apply."""
        if self.closed:
            return []
        effects: List[Effect] = [ReleaseMount(mount) for mount in sorted(self.mounts)]
        effects.append(CloseBands())
        self.mounts.clear()
        self.state = CellState.CLOSED
        return effects


class BandMachine:
    """Exchange state of one band; carries at most one open exchange."""

    def __init__(self) -> None:
        self.state = ExchangeState.IDLE
        self.exchange: Optional[Exchange] = None
        self.last_exchange: Optional[Exchange] = None
        self.completed = 0

    @property
    def idle(self) -> bool:
        return self.state is ExchangeState.IDLE

    @property
    def closed(self) -> bool:
        return self.state is ExchangeState.CLOSED

    def feed(self, message: BaseFrame) -> List[Effect]:
        next_state, effects = on_frame(ConnRole.BAND, self.state, message)
        for effect in list(effects):
            if isinstance(effect, RequestStarted):
                self.exchange = Exchange(request=effect.head)
            elif isinstance(effect, RequestBodyChunk):
                self.exchange.request_body.extend(effect.data)
            elif isinstance(effect, ResponseStarted):
                self.exchange.response = effect.head
            elif isinstance(effect, ResponseBodyChunk):
                self.exchange.response_body.extend(effect.data)
            elif isinstance(effect, ResponseEnded):
                effects.append(ExchangeComplete(self.exchange))
                self.last_exchange = self.exchange
                self.exchange = None
                self.completed += 1
        self.state = next_state
        return effects

    def abort(self) -> Optional[Exchange]:
        """Discard a partial exchange and return to idle."""
        if self.closed:
            return None
        dropped, self.exchange = self.exchange, None
        self.state = ExchangeState.IDLE
        return dropped

    def close(self) -> None:
        self.exchange = None
        self.state = ExchangeState.CLOSED


__all__ = [
    "CellState",
    "ExchangeState",
    "MountPoint",
    "normalize_path",
    "IssueSession",
    "SessionAccepted",
    "RegisterMount",
    "ReleaseMount",
    "OpenBands",
    "CloseBands",
    "RequestStarted",
    "RequestBodyChunk",
    "RequestEnded",
    "ResponseStarted",
    "ResponseBodyChunk",
    "ResponseEnded",
    "Exchange",
    "ExchangeComplete",
    "Effect",
    "CELL_TRANSITIONS",
    "BAND_TRANSITIONS",
    "role_from_handshake",
    "on_frame",
    "CellMachine",
    "BandMachine",
]
