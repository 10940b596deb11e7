"""Cell side of the hive protocol: serve HTTP exchanges forwarded by a queen."""

from .core import CellClient, CellRequest, CellResponse

__all__ = ["CellClient", "CellRequest", "CellResponse"]
