from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from shared.protocol import BandMachine, BaseFrame, CellMachine, ConnRole, Peer, check_sender, write_message


@dataclass
class ConnectionContext:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    peername: str
    role: Optional[ConnRole] = None
    session_id: Optional[str] = None
    machine: Union[CellMachine, BandMachine, None] = None
    last_seen: float = field(default_factory=time.time)

    def bind(self, role: ConnRole, session_id: str) -> None:
        self.role = role
        self.session_id = session_id
        self.touch()

    def touch(self) -> None:
        self.last_seen = time.time()

    async def send(self, message: BaseFrame) -> None:
        """Advance the connection state with an outgoing message, then write it."""
        check_sender(message.kind, Peer.QUEEN)
        if self.machine is not None:
            self.machine.feed(message)
        await write_message(self.writer, message)

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
