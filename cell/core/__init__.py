from .band import BandWorker
from .http import CellRequest, CellResponse, RequestHandler
from .network import CellClient, NetworkError

__all__ = ["BandWorker", "CellClient", "CellRequest", "CellResponse", "NetworkError", "RequestHandler"]
