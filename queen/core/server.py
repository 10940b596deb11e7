from __future__ import annotations

import asyncio
import logging
from typing import Optional

from shared.protocol import (
    BaseFrame,
    CellMachine,
    ConnRole,
    MAX_FRAME_SIZE,
    Peer,
    ProtocolError,
    check_sender,
    read_message,
)
from shared.protocol.state import role_from_handshake

from .bands import BandLink
from .connection import ConnectionContext
from .registry import SessionRegistry
from .router import FrameRouter

logger = logging.getLogger(__name__)


class QueenServer:
    """Accepts cell and band connections and services each with one reader."""

    def __init__(
        self,
        host: str,
        port: int,
        router: FrameRouter,
        registry: SessionRegistry,
        max_frame_size: int = MAX_FRAME_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.router = router
        self.registry = registry
        self.max_frame_size = max_frame_size
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def sockets(self):
        return self._server.sockets if self._server else ()

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        logger.info("Queen listening for cells on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._server:
            self._server.close()
        for session in self.registry.sessions():
            await self.registry.close(session.session_id)
            await session.cell.close()
        if self._server:
            await self._server.wait_closed()
            self._server = None

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        ctx = ConnectionContext(reader=reader, writer=writer, peername=str(writer.get_extra_info("peername")))
        band: Optional[BandLink] = None
        try:
            hello = await read_message(reader, self.max_frame_size)
            role = role_from_handshake(hello)
            ctx.role = role
            if role is ConnRole.CELL:
                ctx.machine = CellMachine()
                await self._serve_cell(ctx, hello)
            else:
                await self._dispatch(hello, ctx)
                band = BandLink(ctx, self.max_frame_size)
                self.registry.attach_band(ctx.session_id, band)
                await band.run()
        except ProtocolError as exc:
            logger.warning("Protocol error for %s: %s", ctx.peername, exc)
        except asyncio.IncompleteReadError:
            logger.info("%s %s disconnected", _role_name(ctx), ctx.peername)
        except (ConnectionResetError, ConnectionAbortedError, BrokenPipeError, OSError) as exc:
            logger.info("%s %s connection reset: %s", _role_name(ctx), ctx.peername, exc)
        except Exception as exc:
            logger.exception("Unhandled error: %s", exc)
        finally:
            if ctx.role is ConnRole.CELL and ctx.session_id:
                await self.registry.close(ctx.session_id)
            elif band is not None:
                session = self.registry.get(ctx.session_id)
                if session is not None:
                    session.bands.discard(band)
            await ctx.close()

    async def _serve_cell(self, ctx: ConnectionContext, hello: BaseFrame) -> None:
        await self._dispatch(hello, ctx)
        while True:
            message = await read_message(ctx.reader, self.max_frame_size)
            ctx.touch()
            await self._dispatch(message, ctx)

    async def _dispatch(self, message: BaseFrame, ctx: ConnectionContext) -> None:
        check_sender(message.kind, Peer.CELL)
        effects = ctx.machine.feed(message) if ctx.machine is not None else []
        response = await self.router.dispatch(message, ctx, effects)
        if response is not None:
            await ctx.send(response)


def _role_name(ctx: ConnectionContext) -> str:
    return ctx.role.name.lower() if ctx.role is not None else "connection"
