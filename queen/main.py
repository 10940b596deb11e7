from __future__ import annotations

import asyncio
import logging

from queen.config import QUEEN_CONFIG, load_queen_config
from queen.core import FrameRouter, QueenServer, SessionRegistry
from queen.services import AuthService, MountService
from queen.workers import HttpGateway
from shared.protocol import FrameKind


def build_router(registry: SessionRegistry) -> FrameRouter:
    auth_service = AuthService(registry)
    mount_service = MountService(registry)

    router = FrameRouter()
    router.register(FrameKind.IAM, auth_service.handle_iam)
    router.register(FrameKind.MOUNT, mount_service.handle_mount)
    router.register(FrameKind.UNMOUNT, mount_service.handle_unmount)
    return router


async def run_queen() -> None:
    load_queen_config()
    logging.basicConfig(level=QUEEN_CONFIG["log_level"])

    registry = SessionRegistry(
        mount_policy=QUEEN_CONFIG["mount_policy"],
        band_batch=QUEEN_CONFIG["band_batch"],
    )
    server = QueenServer(
        QUEEN_CONFIG["host"],
        QUEEN_CONFIG["hive_port"],
        build_router(registry),
        registry,
        max_frame_size=QUEEN_CONFIG["max_frame_size"],
    )
    gateway = HttpGateway(
        QUEEN_CONFIG["http_host"],
        QUEEN_CONFIG["http_port"],
        registry,
        band_wait_timeout=QUEEN_CONFIG["band_wait_timeout"],
        body_chunk_size=QUEEN_CONFIG["body_chunk_size"],
    )
    await server.start()
    await gateway.start()
    try:
        await asyncio.Event().wait()  # keep running
    finally:
        await gateway.stop()
        await server.stop()


def main() -> None:
    asyncio.run(run_queen())


if __name__ == "__main__":
    main()
