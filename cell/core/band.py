from __future__ import annotations

import asyncio
import logging
from typing import Optional

from shared.protocol import (
    BandMachine,
    BaseFrame,
    ConnRole,
    DEFAULT_BODY_CHUNK_SIZE,
    ExchangeState,
    HTTPResBody,
    HTTPResEnd,
    HTTPResHead,
    IAm,
    MAX_FRAME_SIZE,
    Peer,
    ProtocolError,
    check_sender,
    read_message,
    write_message,
)

from .http import CellRequest, CellResponse, RequestHandler

logger = logging.getLogger(__name__)


class BandWorker:
    """Cell side of one band: serves exchanges one after another until closed."""

    def __init__(
        self,
        host: str,
        port: int,
        session_id: str,
        handler: RequestHandler,
        body_chunk_size: int = DEFAULT_BODY_CHUNK_SIZE,
        max_frame_size: int = MAX_FRAME_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.session_id = session_id
        self.handler = handler
        self.body_chunk_size = body_chunk_size
        self.max_frame_size = max_frame_size
        self.machine = BandMachine()
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None

    async def open(self) -> None:
        self.reader, self.writer = await asyncio.open_connection(self.host, self.port)
        await write_message(self.writer, IAm(conn_kind=ConnRole.BAND, uuid=self.session_id))
        logger.debug("Band opened for session %s", self.session_id)

    async def run(self) -> None:
        """Open the band if needed, then serve exchanges until the queen hangs up."""
        if self.writer is None:
            await self.open()
        try:
            while True:
                await self.serve_exchange()
        except asyncio.IncompleteReadError:
            logger.debug("Band for session %s closed by queen", self.session_id)
        except ProtocolError as exc:
            logger.warning("Protocol error on band for session %s: %s", self.session_id, exc)
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError) as exc:
            logger.info("Band for session %s connection reset: %s", self.session_id, exc)
        finally:
            await self.close()

    async def serve_exchange(self) -> None:
        assert self.reader is not None
        while self.machine.state is not ExchangeState.REQ_COMPLETE:
            message = await read_message(self.reader, self.max_frame_size)
            check_sender(message.kind, Peer.QUEEN)
            self.machine.feed(message)

        request = CellRequest.from_exchange(self.machine.exchange)
        try:
            response = await self.handler(request)
        except Exception as exc:
            logger.exception("Handler failed for %s %s: %s", request.method, request.path, exc)
            response = CellResponse.text("Internal Server Error\n", status_code=500)
        await self._respond(response)

    async def _respond(self, response: CellResponse) -> None:
        await self._send(HTTPResHead(status_code=response.status_code, headers=response.headers))
        body = response.body
        for start in range(0, len(body), self.body_chunk_size):
            await self._send(HTTPResBody(data=body[start : start + self.body_chunk_size]))
        await self._send(HTTPResEnd())

    async def _send(self, message: BaseFrame) -> None:
        assert self.writer is not None
        self.machine.feed(message)
        await write_message(self.writer, message)

    async def close(self) -> None:
        self.machine.close()
        if self.writer is None or self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
