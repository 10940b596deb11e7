from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict


class ErrorCode(IntEnum):
    """Reasons a connection is torn down."""

    MALFORMED_FRAME = 1001
    PAYLOAD_DECODE = 1002
    PROTOCOL_VIOLATION = 1003
    ROLE_VIOLATION = 1004
    UNKNOWN_KIND = 1005
    NOT_MOUNT_OWNER = 1006
    MOUNT_CONFLICT = 1007
    UNKNOWN_SESSION = 1008


class ProtocolError(Exception):
    """Structured protocol exception carrying an error code and a message.

    Every protocol error is fatal to the connection it was raised on.
    """

    default_code = ErrorCode.PROTOCOL_VIOLATION

    def __init__(self, message: str = "", code: ErrorCode | None = None) -> None:
        self.code = code if code is not None else self.default_code
        self.message = message
        super().__init__(f"{self.code.name} ({int(self.code)}): {message}")

    def to_payload(self) -> Dict[str, Any]:
        """Map error into a dict suitable for structured logs."""
        return {
            "error": type(self).__name__,
            "error_code": int(self.code),
            "error_message": self.message,
        }


class MalformedFrame(ProtocolError):
    """The frame has no tag byte, or violates transport framing limits."""

    default_code = ErrorCode.MALFORMED_FRAME


class PayloadDecodeError(ProtocolError):
    """The tag is known but the payload does not parse per its schema."""

    default_code = ErrorCode.PAYLOAD_DECODE


class ProtocolViolation(ProtocolError):
    """A well-formed message arrived where the role or state forbids it."""

    default_code = ErrorCode.PROTOCOL_VIOLATION


class RoleViolation(ProtocolViolation):
    default_code = ErrorCode.ROLE_VIOLATION


class UnknownKind(ProtocolViolation):
    default_code = ErrorCode.UNKNOWN_KIND


class NotMountOwner(ProtocolViolation):
    default_code = ErrorCode.NOT_MOUNT_OWNER


class MountConflict(ProtocolViolation):
    default_code = ErrorCode.MOUNT_CONFLICT


class UnknownSession(ProtocolViolation):
    default_code = ErrorCode.UNKNOWN_SESSION


__all__ = [
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
]
