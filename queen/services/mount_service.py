from __future__ import annotations

from typing import List, Optional

from shared.protocol import BaseFrame
from shared.protocol.state import Effect, RegisterMount, ReleaseMount

from queen.core.connection import ConnectionContext
from queen.core.registry import SessionRegistry


class MountService:
    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    async def handle_mount(self, message: BaseFrame, ctx: ConnectionContext, effects: List[Effect]) -> Optional[BaseFrame]:
        for effect in effects:
            if isinstance(effect, RegisterMount):
                self.registry.register_mount(ctx.session_id, effect.mount)
        return None

    async def handle_unmount(self, message: BaseFrame, ctx: ConnectionContext, effects: List[Effect]) -> Optional[BaseFrame]:
        for effect in effects:
            if isinstance(effect, ReleaseMount):
                self.registry.unregister_mount(ctx.session_id, effect.mount)
        return None
