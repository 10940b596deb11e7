"""
Shared protocol package: frame kinds, the message catalog, the frame codec,
the connection role model and the per-connection state machines used by both
queen and cell.
"""

from .constants import DEFAULT_BODY_CHUNK_SIZE, ENCODING, LENGTH_PREFIX_SIZE, MAX_FRAME_SIZE
from .errors import (
    ErrorCode,
    MalformedFrame,
    MountConflict,
    NotMountOwner,
    PayloadDecodeError,
    ProtocolError,
    ProtocolViolation,
    RoleViolation,
    UnknownKind,
    UnknownSession,
)
from .framing import (
    decode_frame,
    decode_message,
    encode_frame,
    encode_message,
    read_frame,
    read_message,
    write_frame,
    write_message,
)
from .kinds import ConnRole, FrameKind, KindFamily, PayloadShape, Peer, family_of, is_kind, kinds_in_family
from .messages import (
    CATALOG,
    Accept,
    BaseFrame,
    HTTPReqBody,
    HTTPReqEnd,
    HTTPReqHead,
    HTTPResBody,
    HTTPResEnd,
    HTTPResHead,
    IAm,
    Message,
    Mount,
    NeedBand,
    Unmount,
    catalog_entry,
)
from .roles import check_legal, check_sender, legal_kinds
from .state import BandMachine, CellMachine, CellState, Exchange, ExchangeState, MountPoint, normalize_path, on_frame
from .validator import load_schema, validate_payload

__all__ = [
    "DEFAULT_BODY_CHUNK_SIZE",
    "ENCODING",
    "LENGTH_PREFIX_SIZE",
    "MAX_FRAME_SIZE",
    "ErrorCode",
    "ProtocolError",
    "MalformedFrame",
    "PayloadDecodeError",
    "ProtocolViolation",
    "RoleViolation",
    "UnknownKind",
    "NotMountOwner",
    "MountConflict",
    "UnknownSession",
    "decode_frame",
    "encode_frame",
    "decode_message",
    "encode_message",
    "read_frame",
    "write_frame",
    "read_message",
    "write_message",
    "FrameKind",
    "KindFamily",
    "ConnRole",
    "Peer",
    "PayloadShape",
    "family_of",
    "is_kind",
    "kinds_in_family",
    "CATALOG",
    "catalog_entry",
    "BaseFrame",
    "Message",
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
    "legal_kinds",
    "check_legal",
    "check_sender",
    "CellState",
    "ExchangeState",
    "MountPoint",
    "normalize_path",
    "Exchange",
    "CellMachine",
    "BandMachine",
    "on_frame",
    "load_schema",
    "validate_payload",
]
