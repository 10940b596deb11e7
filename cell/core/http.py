from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from shared.protocol import Exchange, HTTPReqHead


@dataclass
class CellRequest:
    """An HTTP request as reassembled from a band exchange."""

    head: HTTPReqHead
    body: bytes = b""

    @classmethod
    def from_exchange(cls, exchange: Exchange) -> "CellRequest":
        return cls(head=exchange.request, body=bytes(exchange.request_body))

    @property
    def method(self) -> str:
        return self.head.method

    @property
    def path(self) -> str:
        return self.head.path

    @property
    def query(self) -> Dict[str, List[str]]:
        return self.head.query

    @property
    def form(self) -> Dict[str, List[str]]:
        return self.head.form

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.head.get_header(name, default)


@dataclass
class CellResponse:
    status_code: int = 200
    headers: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def text(cls, text: str, status_code: int = 200) -> "CellResponse":
        return cls(
            status_code=status_code,
            headers={"Content-Type": ["text/plain; charset=utf-8"]},
            body=text.encode("utf-8"),
        )


RequestHandler = Callable[[CellRequest], Awaitable[CellResponse]]
