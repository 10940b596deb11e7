from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional, Set, Union

from shared.protocol import (
    BandMachine,
    BaseFrame,
    MAX_FRAME_SIZE,
    Message,
    Peer,
    check_sender,
    read_message,
)

from .connection import ConnectionContext

logger = logging.getLogger(__name__)

ShortageCallback = Callable[[], Awaitable[None]]


class BandClosed(ConnectionError):
    """The band went away while an exchange was using it."""


class BandLink:
    """Queen side of one band connection.

    The connection handler task drives `run`, the band's only reader. Incoming
    frames are checked against the band state machine and queued for whoever
    holds the band for an exchange.
    """

    def __init__(self, ctx: ConnectionContext, max_frame_size: int = MAX_FRAME_SIZE) -> None:
        self.ctx = ctx
        self.machine = BandMachine()
        self.max_frame_size = max_frame_size
        self._inbox: asyncio.Queue[Union[Message, None]] = asyncio.Queue()
        ctx.machine = self.machine

    @property
    def session_id(self) -> Optional[str]:
        return self.ctx.session_id

    @property
    def closed(self) -> bool:
        return self.machine.closed

    async def run(self) -> None:
        """Read frames until the transport closes or the cell breaks protocol."""
        try:
            while True:
                message = await read_message(self.ctx.reader, self.max_frame_size)
                self.ctx.touch()
                check_sender(message.kind, Peer.CELL)
                self.machine.feed(message)
                self._inbox.put_nowait(message)
        finally:
            self.machine.close()
            self._inbox.put_nowait(None)

    async def send(self, message: BaseFrame) -> None:
        if self.closed:
            raise BandClosed(f"Band {self.ctx.peername} is closed")
        try:
            await self.ctx.send(message)
        except (ConnectionError, OSError) as exc:
            raise BandClosed(f"Band {self.ctx.peername} write failed: {exc}") from exc

    async def receive(self) -> Message:
        message = await self._inbox.get()
        if message is None:
            self._inbox.put_nowait(None)
            raise BandClosed(f"Band {self.ctx.peername} closed mid-exchange")
        return message

    async def close(self) -> None:
        self.machine.close()
        await self.ctx.close()


class BandPool:
    """Bands of one session plus the queue of those ready for an exchange."""

    def __init__(self) -> None:
        self._bands: Set[BandLink] = set()
        self._idle: asyncio.Queue[BandLink] = asyncio.Queue()

    def __len__(self) -> int:
        return len(self._bands)

    @property
    def idle_count(self) -> int:
        return self._idle.qsize()

    def add(self, band: BandLink) -> None:
        self._bands.add(band)
        self._idle.put_nowait(band)

    def discard(self, band: BandLink) -> None:
        self._bands.discard(band)

    def _take_idle(self) -> Optional[BandLink]:
        while not self._idle.empty():
            band = self._idle.get_nowait()
            if band in self._bands and not band.closed:
                return band
        return None

    async def lease(self, timeout: float, on_shortage: Optional[ShortageCallback] = None) -> BandLink:
        """Take an idle band, asking for more when none is free.

        Raises asyncio.TimeoutError when no band becomes idle within `timeout`.
        """
        band = self._take_idle()
        if band is not None:
            return band
        if on_shortage is not None:
            await on_shortage()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise asyncio.TimeoutError()
            band = await asyncio.wait_for(self._idle.get(), remaining)
            if band in self._bands and not band.closed:
                return band

    async def release(self, band: BandLink) -> None:
        """Return a band after an exchange; bands left mid-exchange are dropped."""
        if band.closed or not band.machine.idle:
            self.discard(band)
            await band.close()
            return
        if band in self._bands:
            self._idle.put_nowait(band)

    async def close_all(self) -> None:
        bands = list(self._bands)
        self._bands.clear()
        for band in bands:
            await band.close()
        if bands:
            logger.debug("Closed %s bands", len(bands))
