from __future__ import annotations

import asyncio
import json
from typing import Tuple

from pydantic import ValidationError

from .constants import ENCODING, LENGTH_PREFIX_SIZE, MAX_FRAME_SIZE
from .errors import MalformedFrame, PayloadDecodeError
from .kinds import FrameKind, PayloadShape
from .messages import BaseFrame, Message, catalog_entry
from .validator import validate_payload


def decode_frame(data: bytes) -> Tuple[int, bytes]:
    """Split a frame into its tag byte and the untouched payload."""
    if len(data) < 1:
        raise MalformedFrame("Empty frame has no kind tag")
    return data[0], bytes(data[1:])


def encode_frame(kind: int, payload: bytes = b"") -> bytes:
    """Tag byte followed by the payload, no length and no delimiter."""
    if not (0 <= int(kind) <= 255):
        raise MalformedFrame(f"Kind {kind} does not fit in a tag byte")
    return bytes((int(kind),)) + bytes(payload)


def encode_payload(message: BaseFrame) -> bytes:
    """Serialize the payload of a message according to its catalog shape."""
    entry = catalog_entry(message.kind)
    if entry.shape is PayloadShape.EMPTY:
        return b""
    if entry.shape is PayloadShape.RAW:
        return bytes(message.data)
    return message.model_dump_json(by_alias=True).encode(ENCODING)


def encode_message(message: BaseFrame) -> bytes:
    """Encode a message into a complete frame."""
    return encode_frame(message.kind, encode_payload(message))


def decode_payload(kind: FrameKind, payload: bytes) -> Message:
    """Build the message for `kind` from its payload bytes."""
    entry = catalog_entry(kind)
    if entry.shape is PayloadShape.EMPTY:
        if payload:
            raise PayloadDecodeError(f"{entry.kind.name} carries no payload, got {len(payload)} bytes")
        return entry.model()
    if entry.shape is PayloadShape.RAW:
        return entry.model(data=payload)

    try:
        fields = json.loads(payload.decode(ENCODING))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadDecodeError(f"{entry.kind.name} payload is not valid JSON: {exc}") from exc
    if not isinstance(fields, dict):
        raise PayloadDecodeError(f"{entry.kind.name} payload must be a JSON object")
    validate_payload(entry.kind, fields)
    try:
        return entry.model.model_validate(fields)
    except ValidationError as exc:
        raise PayloadDecodeError(f"{entry.kind.name} payload validation failed: {exc}") from exc


def decode_message(data: bytes) -> Message:
    """Decode a complete frame into a message."""
    tag, payload = decode_frame(data)
    return decode_payload(tag, payload)


async def read_frame(reader: asyncio.StreamReader, max_size: int = MAX_FRAME_SIZE) -> bytes:
    """Read one length-prefixed frame; EOF surfaces as IncompleteReadError."""
    header = await reader.readexactly(LENGTH_PREFIX_SIZE)
    length = int.from_bytes(header, "big")
    if length > max_size:
        raise MalformedFrame(f"Frame of {length} bytes exceeds limit of {max_size}")
    return await reader.readexactly(length)


async def write_frame(writer: asyncio.StreamWriter, frame: bytes) -> None:
    writer.write(len(frame).to_bytes(LENGTH_PREFIX_SIZE, "big") + frame)
    await writer.drain()


async def read_message(reader: asyncio.StreamReader, max_size: int = MAX_FRAME_SIZE) -> Message:
    """Read a single frame from the stream and decode it."""
    return decode_message(await read_frame(reader, max_size))


async def write_message(writer: asyncio.StreamWriter, message: BaseFrame) -> None:
    await write_frame(writer, encode_message(message))


__all__ = [
    "decode_frame",
    "encode_frame",
    "encode_payload",
    "encode_message",
    "decode_payload",
    "decode_message",
    "read_frame",
    "write_frame",
    "read_message",
    "write_message",
]
