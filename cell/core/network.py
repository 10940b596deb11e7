from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from cell.config import CELL_CONFIG, parse_mounts
from shared.protocol import (
    Accept,
    BaseFrame,
    CellMachine,
    ConnRole,
    IAm,
    Mount,
    MountPoint,
    Peer,
    ProtocolError,
    ProtocolViolation,
    Unmount,
    check_sender,
    read_message,
    write_message,
)
from shared.protocol.state import Effect, OpenBands

from .band import BandWorker
from .http import RequestHandler

logger = logging.getLogger(__name__)


class NetworkError(ProtocolError):
    """Network level error surfaced to higher layers."""

    pass


class CellClient:
    """Cell connection to a queen: authenticates, mounts and opens bands on demand."""

    def __init__(
        self,
        handler: RequestHandler,
        mounts: Optional[Iterable[Tuple[str, str]]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config = config or CELL_CONFIG
        self.handler = handler
        self.host: str = self.config["queen_host"]
        self.port: int = int(self.config["hive_port"])
        self.initial_bands: int = int(self.config["initial_bands"])
        self.backoff: int = int(self.config["reconnect_backoff"])
        self.max_backoff: int = int(self.config["max_reconnect_backoff"])
        self.max_retries: int = int(self.config["max_reconnect_retries"])
        self.body_chunk_size: int = int(self.config["body_chunk_size"])
        self.max_frame_size: int = int(self.config["max_frame_size"])
        self.mounts: List[MountPoint] = [
            MountPoint(host, path)
            for host, path in (mounts if mounts is not None else parse_mounts(self.config["mounts"]))
        ]

        self.machine = CellMachine()
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.connected: bool = False
        self._receive_task: Optional[asyncio.Task] = None
        self._band_tasks: Set[asyncio.Task] = set()

    @property
    def session_id(self) -> Optional[str]:
        return self.machine.session_id

    @property
    def band_count(self) -> int:
        return len(self._band_tasks)

    async def connect(self) -> None:
        if self.connected:
            return

        retries = 0
        delay = self.backoff
        while retries <= self.max_retries:
            try:
                self.reader, self.writer = await asyncio.open_connection(self.host, self.port)
                break
            except (OSError, asyncio.TimeoutError) as exc:
                retries += 1
                logger.warning("Connect attempt %s failed: %s", retries, exc)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_backoff)
        else:
            raise NetworkError("Exceeded max reconnect attempts")

        self.machine = CellMachine()
        await self._send(IAm(conn_kind=ConnRole.CELL))
        accept = await read_message(self.reader, self.max_frame_size)
        self._receive(accept)
        if not isinstance(accept, Accept):
            raise ProtocolViolation(f"Expected ACCEPT, got {accept.kind.name}")
        self.connected = True
        logger.info("Connected to %s:%s as session %s", self.host, self.port, self.session_id)

        await self.open_bands(self.initial_bands)
        for mount in self.mounts:
            await self.mount(mount.host, mount.path)
        self._receive_task = asyncio.create_task(self._receive_loop(), name="cell-recv-loop")

    async def mount(self, host: str, path: str) -> None:
        await self._send(Mount(host=host, path=path))
        logger.info("Mounted %s%s", host, path)

    async def unmount(self, host: str, path: str) -> None:
        await self._send(Unmount(host=host, path=path))
        logger.info("Unmounted %s%s", host, path)

    async def open_bands(self, count: int) -> None:
        """Open up to `count` bands; a band that fails to connect is logged and skipped."""
        opened = 0
        for _ in range(count):
            worker = BandWorker(
                self.host,
                self.port,
                self.session_id,
                self.handler,
                body_chunk_size=self.body_chunk_size,
                max_frame_size=self.max_frame_size,
            )
            try:
                await worker.open()
            except (ConnectionError, OSError) as exc:
                logger.warning("Could not open band for session %s: %s", self.session_id, exc)
                await worker.close()
                continue
            task = asyncio.create_task(worker.run(), name="cell-band")
            self._band_tasks.add(task)
            task.add_done_callback(self._band_tasks.discard)
            opened += 1
        if count:
            logger.debug("Opened %s of %s bands (%s running)", opened, count, len(self._band_tasks))

    async def wait_closed(self) -> None:
        if self._receive_task:
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task

    async def close(self) -> None:
        self.connected = False
        if self._receive_task and self._receive_task is not asyncio.current_task():
            self._receive_task.cancel()
        bands = list(self._band_tasks)
        for task in bands:
            task.cancel()
        if bands:
            await asyncio.gather(*bands, return_exceptions=True)
        if self.writer and not self.writer.is_closing():
            self.writer.close()
            with contextlib.suppress(ConnectionError, OSError):
                await self.writer.wait_closed()
        self.machine.close()
        logger.info("Cell client closed")

    async def _send(self, message: BaseFrame) -> None:
        assert self.writer is not None
        self.machine.feed(message)
        await write_message(self.writer, message)

    def _receive(self, message: BaseFrame) -> List[Effect]:
        check_sender(message.kind, Peer.QUEEN)
        return self.machine.feed(message)

    async def _receive_loop(self) -> None:
        assert self.reader is not None
        try:
            while True:
                message = await read_message(self.reader, self.max_frame_size)
                for effect in self._receive(message):
                    if isinstance(effect, OpenBands):
                        await self.open_bands(effect.count)
        except asyncio.CancelledError:
            raise
        except ProtocolError as exc:
            logger.warning("Protocol error: %s", exc)
        except (asyncio.IncompleteReadError, ConnectionError, OSError) as exc:
            logger.error("Receive loop terminated: %s", exc)
        finally:
            if self.connected:
                await self.close()
