from __future__ import annotations

import logging
from typing import List, Optional

from shared.protocol import Accept, BaseFrame, ConnRole, IAm
from shared.protocol.state import Effect, IssueSession

from queen.core.connection import ConnectionContext
from queen.core.registry import SessionRegistry

logger = logging.getLogger(__name__)


class AuthService:
    """Handles IAm: opens a session for a cell, binds a band to its session."""

    def __init__(self, registry: SessionRegistry) -> None:
        self.registry = registry

    async def handle_iam(self, message: BaseFrame, ctx: ConnectionContext, effects: List[Effect]) -> Optional[BaseFrame]:
        assert isinstance(message, IAm)
        if message.role is ConnRole.BAND:
            session = self.registry.require(message.uuid)
            ctx.bind(ConnRole.BAND, session.session_id)
            return None

        if not any(isinstance(effect, IssueSession) for effect in effects):
            return None
        session = self.registry.create(ctx, ctx.machine)
        ctx.bind(ConnRole.CELL, session.session_id)
        return Accept(uuid=session.session_id)
