"""Apply server."""

from fragments.server.server import ApplyServer

__all__ = ["ApplyServer"]
