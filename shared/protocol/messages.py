from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import UnknownKind
from .kinds import ConnRole, FrameKind, PayloadShape, Peer

MultiDict = Dict[str, List[str]]


class BaseFrame(BaseModel):
    """Base of every message; subclasses pin kind, payload shape and sender."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: ClassVar[FrameKind]
    shape: ClassVar[PayloadShape] = PayloadShape.STRUCTURED
    sender: ClassVar[Peer]


class IAm(BaseFrame):
    """Sent by a cell to open a connection; ``conn_kind`` fixes the connection role."""

    kind = FrameKind.IAM
    sender = Peer.CELL

    conn_kind: int = Field(..., description="0 for the cell connection, 1 for a band")
    uuid: str = Field(default="", description="Session id; empty when a cell first connects")

    @property
    def role(self) -> Optional[ConnRole]:
        try:
            return ConnRole(self.conn_kind)
        except ValueError:
            return None


class Accept(BaseFrame):
    """Sent by the queen in reply to a cell IAm, assigning the session id."""

    kind = FrameKind.ACCEPT
    sender = Peer.QUEEN

    uuid: str


class Mount(BaseFrame):
    kind = FrameKind.MOUNT
    sender = Peer.CELL

    host: str = ""
    path: str = "/"


class Unmount(BaseFrame):
    kind = FrameKind.UNMOUNT
    sender = Peer.CELL

    host: str = ""
    path: str = "/"


class NeedBand(BaseFrame):
    """Queen asks the cell to open ``count`` more bands. Never acknowledged."""

    kind = FrameKind.NEED_BAND
    sender = Peer.QUEEN

    count: int = Field(default=1, ge=1)


class HTTPReqHead(BaseFrame):
    """Everything about an inbound HTTP request except its body."""

    kind = FrameKind.HTTP_REQ_HEAD
    sender = Peer.QUEEN

    remote_addr_real: str = ""
    remote_addr: str = ""
    method: str
    scheme: str = "http"
    host: str = ""
    port: int = 0
    path: str
    fragment: str = ""
    query: MultiDict = Field(default_factory=dict)
    proto: str = "HTTP/1.1"
    proto_major: int = 1
    proto_minor: int = 1
    headers: MultiDict = Field(default_factory=dict)
    form: MultiDict = Field(default_factory=dict)

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a header, matched case-insensitively."""
        lowered = name.lower()
        for key, values in self.headers.items():
            if key.lower() == lowered and values:
                return values[0]
        return default


class HTTPReqBody(BaseFrame):
    kind = FrameKind.HTTP_REQ_BODY
    shape = PayloadShape.RAW
    sender = Peer.QUEEN

    data: bytes = b""


class HTTPReqEnd(BaseFrame):
    kind = FrameKind.HTTP_REQ_END
    shape = PayloadShape.EMPTY
    sender = Peer.QUEEN


class HTTPResHead(BaseFrame):
    kind = FrameKind.HTTP_RES_HEAD
    sender = Peer.CELL

    status_code: int = 200
    headers: MultiDict = Field(default_factory=dict)


class HTTPResBody(BaseFrame):
    kind = FrameKind.HTTP_RES_BODY
    shape = PayloadShape.RAW
    sender = Peer.CELL

    data: bytes = b""


class HTTPResEnd(BaseFrame):
    kind = FrameKind.HTTP_RES_END
    shape = PayloadShape.EMPTY
    sender = Peer.CELL


Message = Union[
    IAm,
    Accept,
    Mount,
    Unmount,
    NeedBand,
    HTTPReqHead,
    HTTPReqBody,
    HTTPReqEnd,
    HTTPResHead,
    HTTPResBody,
    HTTPResEnd,
]


@dataclass(frozen=True)
class CatalogEntry:
    kind: FrameKind
    shape: PayloadShape
    sender: Peer
    model: Type[BaseFrame]


def _entry(model: Type[BaseFrame]) -> CatalogEntry:
    return CatalogEntry(kind=model.kind, shape=model.shape, sender=model.sender, model=model)


CATALOG: Dict[FrameKind, CatalogEntry] = {
    entry.kind: entry
    for entry in map(
        _entry,
        (
            IAm,
            Accept,
            Mount,
            Unmount,
            NeedBand,
            HTTPReqHead,
            HTTPReqBody,
            HTTPReqEnd,
            HTTPResHead,
            HTTPResBody,
            HTTPResEnd,
        ),
    )
}


def catalog_entry(tag: int) -> CatalogEntry:
    """Resolve a tag byte to its catalog entry."""
    try:
        return CATALOG[FrameKind(tag)]
    except ValueError as exc:
        raise UnknownKind(f"Unknown frame kind 0x{tag:02X}") from exc


__all__ = [
    "BaseFrame",
    "MultiDict",
    "IAm",
    "Accept",
    "Mount",
    "Unmount",
    "NeedBand",
    "HTTPReqHead",
    "HTTPReqBody",
    "HTTPReqEnd",
    "HTTPResHead",
    "HTTPResBody",
    "HTTPResEnd",
    "Message",
    "CatalogEntry",
    "CATALOG",
    "catalog_entry",
]
