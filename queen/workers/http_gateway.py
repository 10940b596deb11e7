from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiohttp import hdrs, web

from shared.protocol import (
    DEFAULT_BODY_CHUNK_SIZE,
    HTTPReqBody,
    HTTPReqEnd,
    HTTPReqHead,
    HTTPResBody,
    HTTPResEnd,
    HTTPResHead,
    ProtocolError,
)
from shared.utils.common import to_multidict

from queen.core.bands import BandClosed, BandLink
from queen.core.registry import Session, SessionRegistry

logger = logging.getLogger(__name__)

# Connection-level headers the queen manages itself.
HOP_BY_HOP = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


async def build_request_head(request: web.Request) -> HTTPReqHead:
    """Describe an inbound aiohttp request as an HTTPReqHead."""
    peer = request.transport.get_extra_info("peername") if request.transport else None
    remote_real = f"{peer[0]}:{peer[1]}" if peer else (request.remote or "")
    forwarded = request.headers.get(hdrs.X_FORWARDED_FOR, "")
    remote = forwarded.split(",")[0].strip() if forwarded else remote_real

    form = {}
    if request.method in ("POST", "PUT", "PATCH") and request.content_type == FORM_CONTENT_TYPE:
        posted = await request.post()
        form = to_multidict((name, str(value)) for name, value in posted.items())

    url = request.url
    return HTTPReqHead(
        remote_addr_real=remote_real,
        remote_addr=remote,
        method=request.method,
        scheme=request.scheme,
        host=url.host or "",
        port=url.port or 0,
        path=request.path,
        fragment=url.fragment,
        query=to_multidict(request.query.items()),
        proto=f"HTTP/{request.version.major}.{request.version.minor}",
        proto_major=request.version.major,
        proto_minor=request.version.minor,
        headers=to_multidict(request.headers.items()),
        form=form,
    )


class HttpGateway:
    """Inbound HTTP server that forwards each request over a band of the mounted cell."""

    def __init__(
        self,
        host: str,
        port: int,
        registry: SessionRegistry,
        band_wait_timeout: float = 10.0,
        body_chunk_size: int = DEFAULT_BODY_CHUNK_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.registry = registry
        self.band_wait_timeout = band_wait_timeout
        self.body_chunk_size = body_chunk_size
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self.handle_request)
        self._runner: Optional[web.AppRunner] = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("HTTP gateway listening on %s:%s", self.host, self.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def handle_request(self, request: web.Request) -> web.StreamResponse:
        session = self.registry.route(request.url.host or "", request.path)
        if session is None:
            return web.Response(status=404, text="No cell is mounted here\n")

        try:
            band = await session.bands.lease(self.band_wait_timeout, session.request_bands)
        except asyncio.TimeoutError:
            logger.warning("No band available for session %s within %ss", session.session_id, self.band_wait_timeout)
            return web.Response(status=503, text="No band available\n")
        except (ProtocolError, ConnectionError, OSError) as exc:
            logger.warning("Could not request bands from session %s: %s", session.session_id, exc)
            return web.Response(status=503, text="Cell unavailable\n")

        try:
            return await self._forward(request, session, band)
        finally:
            await session.bands.release(band)

    async def _forward(self, request: web.Request, session: Session, band: BandLink) -> web.StreamResponse:
        response: Optional[web.StreamResponse] = None
        try:
            head = await build_request_head(request)
            await band.send(head)
            if head.form:
                body = await request.read()
                for start in range(0, len(body), self.body_chunk_size):
                    await band.send(HTTPReqBody(data=body[start : start + self.body_chunk_size]))
            else:
                async for chunk in request.content.iter_chunked(self.body_chunk_size):
                    await band.send(HTTPReqBody(data=chunk))
            await band.send(HTTPReqEnd())

            res_head = await band.receive()
            assert isinstance(res_head, HTTPResHead)
            response = web.StreamResponse(status=res_head.status_code)
            for name, values in res_head.headers.items():
                if name.lower() in HOP_BY_HOP:
                    continue
                for value in values:
                    response.headers.add(name, value)
            await response.prepare(request)

            while True:
                message = await band.receive()
                if isinstance(message, HTTPResBody):
                    await response.write(message.data)
                elif isinstance(message, HTTPResEnd):
                    break
            await response.write_eof()
            return response
        except (ProtocolError, BandClosed) as exc:
            logger.warning("Exchange on band %s of session %s failed: %s", band.ctx.peername, session.session_id, exc)
            await band.close()
            if response is None:
                return web.Response(status=502, text="Bad gateway\n")
            return response
