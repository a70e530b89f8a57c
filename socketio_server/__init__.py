"""Socket.IO relay package for Penci.

This package provides the relay server and a Python client for the real-time
collaboration and notification layer.

Components:
- server: Socket.IO server with connection registry, rooms and event relay
- http_routes: health, notification trigger and CORS endpoints
- client: asyncio Socket.IO client for Python participants
"""

from . import client
from . import http_routes
from . import server

__all__ = [
    'client',
    'http_routes',
    'server'
]
