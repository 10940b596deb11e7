from .bands import BandClosed, BandLink, BandPool
from .connection import ConnectionContext
from .registry import MountTable, Session, SessionRegistry
from .router import FrameRouter
from .server import QueenServer

__all__ = [
    "BandClosed",
    "BandLink",
    "BandPool",
    "ConnectionContext",
    "MountTable",
    "Session",
    "SessionRegistry",
    "FrameRouter",
    "QueenServer",
]
