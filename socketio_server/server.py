#!/usr/bin/env python3
"""Penci Socket.IO relay server

This module implements the real-time relay behind the Penci admin platform.
Browser clients hold a Socket.IO connection, join collaboration rooms and
exchange design updates and notifications; server-side code injects
notifications over plain HTTP on the same port.

Key Features:
- Explicit connection registry and room router, purged on disconnect
- Room-minus-sender fan-out for design updates
- Broadcast notifications and admin messages
- Per-user notifications keyed by an `identify` event or connect auth
- Health endpoint reporting the connected client count

The relay is built once per application by `create_app` and handed to the
HTTP handlers through the aiohttp application context.
"""
import sys
from pathlib import Path
import logging
import argparse
import asyncio
import socketio
from aiohttp import web
from typing import Any, Callable, Dict, Optional

# Ensure the project root is in the Python path when run as a script
project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.append(str(project_root))

from core.errors import RelayError
from core.registry import ConnectionRegistry
from core.relay import EventRelay
from utils.config_loader import ConfigManager, get_config
from utils.event_utils import InboundEvent, OutboundEvent
from utils.log_utils import setup_logging
from utils.message_utils import create_error_message
from socketio_server.http_routes import make_cors_middleware, setup_routes

logger = logging.getLogger(__name__)


class RelayServer:
    """Owns the Socket.IO server, the registry and the relay for one process."""

    def __init__(self, cors_origins: Any = "*", socketio_path: str = "socket.io"):
        self.sio = socketio.AsyncServer(
            async_mode='aiohttp',
            cors_allowed_origins=cors_origins,
            logger=False,
            engineio_logger=False
        )
        self.socketio_path = socketio_path
        self.registry = ConnectionRegistry()
        self.relay = EventRelay(self.sio, self.registry)
        self.register_handlers()

    def register_handlers(self):
        """Register Socket.IO event handlers."""
        self.sio.on('connect', self.on_connect)
        self.sio.on('disconnect', self.on_disconnect)
        self.sio.on(InboundEvent.IDENTIFY.value, self.on_identify)
        self.sio.on(InboundEvent.JOIN_ROOM.value, self.on_join_room)
        self.sio.on(InboundEvent.LEAVE_ROOM.value, self.on_leave_room)
        self.sio.on(InboundEvent.DESIGN_UPDATE.value, self.on_design_update)
        self.sio.on(InboundEvent.SEND_NOTIFICATION.value, self.on_send_notification)
        self.sio.on(InboundEvent.ADMIN_BROADCAST.value, self.on_admin_broadcast)

    def attach(self, app: web.Application) -> None:
        self.sio.attach(app, socketio_path=self.socketio_path)

    # --- Connection lifecycle ---

    async def on_connect(self, sid: str, environ: Dict, auth: Optional[Dict] = None):
        """Handle new client connections."""
        client_ip = environ.get('REMOTE_ADDR', 'Unknown IP')
        user_id = None
        if isinstance(auth, dict) and isinstance(auth.get('userId'), str) and auth['userId']:
            user_id = auth['userId']

        self.registry.on_connect(sid, user_id=user_id)
        logger.info(
            f"Client connected: {sid} ({client_ip})"
            + (f" as user {user_id}" if user_id else "")
            + f" - total: {self.registry.count()}"
        )

    async def on_disconnect(self, sid: str, reason: Any = None):
        """Handle client disconnections."""
        if not self.registry.is_connected(sid):
            logger.warning(f"Disconnect event received for unknown SID: {sid}")
            return
        rooms = self.registry.rooms_of(sid)
        self.registry.on_disconnect(sid)
        logger.info(f"Client disconnected: {sid} (left rooms: {sorted(rooms)}) - total: {self.registry.count()}")

    # --- Inbound events ---

    async def on_identify(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.IDENTIFY, lambda: self.relay.identify(sid, data), "userId")

    async def on_join_room(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.JOIN_ROOM, lambda: self.relay.join_room(sid, data), "roomId")

    async def on_leave_room(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.LEAVE_ROOM, lambda: self.relay.leave_room(sid, data), "left")

    async def on_design_update(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.DESIGN_UPDATE, lambda: self.relay.design_update(sid, data), "delivered")

    async def on_send_notification(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.SEND_NOTIFICATION, lambda: self.relay.send_notification(sid, data), "delivered")

    async def on_admin_broadcast(self, sid: str, data: Any = None):
        return await self._dispatch(sid, InboundEvent.ADMIN_BROADCAST, lambda: self.relay.admin_broadcast(sid, data), "delivered")

    async def _dispatch(self, sid: str, event: InboundEvent, action: Callable[[], Any], result_key: str) -> Dict[str, Any]:
        """Run one relay action and turn its outcome into an acknowledgement.

        Rejected input gets a private error message and mutates nothing.
        """
        try:
            result = action()
            if asyncio.iscoroutine(result):
                result = await result
        except RelayError as e:
            logger.warning(f"Rejected '{event.value}' from {sid}: {e}")
            await self.sio.emit(OutboundEvent.MESSAGE.value, create_error_message(str(e), target_sid=sid), to=sid)
            return {"success": False, "error": str(e)}
        except Exception as e:
            logger.error(f"Error handling '{event.value}' from {sid}: {e}", exc_info=True)
            return {"success": False, "error": "Internal server error"}
        return {"success": True, result_key: result}


RELAY_SERVER_KEY = web.AppKey("relay_server", RelayServer)


def create_app(config: Optional[ConfigManager] = None) -> web.Application:
    """Build the aiohttp application serving Socket.IO and the HTTP endpoints."""
    config = config or get_config()
    socketio_path = config.get('server', 'socketio_path', default='socket.io')

    server = RelayServer(
        cors_origins=config.get('server', 'cors_origins', default='*'),
        socketio_path=socketio_path
    )
    app = web.Application(middlewares=[make_cors_middleware(socketio_path)])
    server.attach(app)
    setup_routes(app, server.relay)
    app[RELAY_SERVER_KEY] = server
    return app


# --- Argument Parsing ---
def parse_args(config: ConfigManager, argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Penci Socket.IO relay server")
    parser.add_argument('--host', type=str, default=config.get('server', 'host', default='0.0.0.0'),
                        help='Host IP address to bind the server to.')
    parser.add_argument('--port', type=int, default=config.get('server', 'port', default=8080),
                        help='Port number to bind the server to.')
    parser.add_argument('--log-level', type=str, default=config.get('logging', 'level', default='INFO'),
                        help='Logging level (DEBUG, INFO, WARNING, ERROR).')
    return parser.parse_args(argv)


# --- Server Lifecycle ---

async def start_server(app: web.Application, host: str, port: int):
    """Serve `app` until cancelled."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)

    logger.info(f"Starting relay server on {host}:{port}")
    await site.start()
    logger.info(f"Socket.IO and HTTP endpoints ready. Health check: http://{host}:{port}/health")

    try:
        await asyncio.Event().wait()
    finally:
        logger.info("Stopping relay server...")
        await runner.cleanup()


def main(argv=None):
    config = get_config()
    args = parse_args(config, argv)
    setup_logging(
        args.log_level,
        log_file=config.get('logging', 'file'),
        log_format=config.get('logging', 'format')
    )

    app = create_app(config)
    try:
        asyncio.run(start_server(app, args.host, args.port))
    except KeyboardInterrupt:
        logger.info("Server stopped by user (KeyboardInterrupt).")
    except Exception as e:
        logger.critical(f"Server encountered critical error: {e}", exc_info=True)
        sys.exit(1)
    logger.info("Server shutdown complete.")


if __name__ == '__main__':
    main()
