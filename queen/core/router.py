from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Dict, List, Optional, TYPE_CHECKING

from shared.protocol import BaseFrame, FrameKind
from shared.protocol.state import Effect

if TYPE_CHECKING:
    from .connection import ConnectionContext

Handler = Callable[[BaseFrame, "ConnectionContext", List[Effect]], Awaitable[Optional[BaseFrame]]]


class FrameRouter:
    """Maps frame kinds arriving on cell connections to async handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[FrameKind, Handler] = {}

    def register(self, kind: FrameKind, handler: Handler) -> None:
        self._handlers[FrameKind(kind)] = handler

    async def dispatch(
        self, message: BaseFrame, ctx: "ConnectionContext", effects: List[Effect]
    ) -> Optional[BaseFrame]:
        handler = self._handlers.get(message.kind)
        if handler:
            return await handler(message, ctx, effects)
        return None
