import asyncio

import pytest

from shared.protocol import MalformedFrame, Mount, read_frame, read_message
from shared.protocol.framing import encode_message


def _reader(data: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


def test_read_frames_in_order():
    async def scenario():
        frame = encode_message(Mount(host="example.com", path="/"))
        data = len(frame).to_bytes(4, "big") + frame + (3).to_bytes(4, "big") + b"\x31ab"
        reader = _reader(data)
        assert await read_message(reader) == Mount(host="example.com", path="/")
        assert await read_frame(reader) == b"\x31ab"
        with pytest.raises(asyncio.IncompleteReadError):
            await read_frame(reader)

    asyncio.run(scenario())


def test_zero_length_transport_frame_is_malformed():
    async def scenario():
        with pytest.raises(MalformedFrame):
            await read_message(_reader((0).to_bytes(4, "big")))

    asyncio.run(scenario())


def test_oversized_frame_is_rejected():
    async def scenario():
        with pytest.raises(MalformedFrame):
            await read_frame(_reader((1024).to_bytes(4, "big") + b"x" * 1024), max_size=512)

    asyncio.run(scenario())
