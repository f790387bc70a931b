from .server import Server
from .middlewares import RequestContextMiddleware

__all__ = ["Server", "RequestContextMiddleware"]
