from .http_gateway import HttpGateway, build_request_head

__all__ = ["HttpGateway", "build_request_head"]
