"""Penci relay Socket.IO client

A thin asyncio client for Python processes that want to take part in the
relay the way browser clients do: identify as a user, join design rooms,
publish design updates and listen for notifications.
"""
import logging
from typing import Any, Callable, Dict, Optional

import socketio
from socketio.exceptions import ConnectionError as SocketIOConnectionError

from utils.event_utils import InboundEvent, OutboundEvent, user_notification_event

logger = logging.getLogger(__name__)


class RelayClient:
    def __init__(self, url: str, user_id: Optional[str] = None, socketio_path: str = "socket.io"):
        self.url = url
        self.user_id = user_id
        self.socketio_path = socketio_path
        self.sio = socketio.AsyncClient(logger=False, engineio_logger=False)
        self.register_handlers()

    def register_handlers(self):
        self.sio.on('connect', self.on_connect)
        self.sio.on('disconnect', self.on_disconnect)

    async def on_connect(self):
        logger.info(f"Connected to relay {self.url} with SID: {self.sid}")

    async def on_disconnect(self, *args):
        logger.info(f"Disconnected from relay {self.url}")

    @property
    def connected(self) -> bool:
        return self.sio.connected

    @property
    def sid(self) -> Optional[str]:
        return self.sio.get_sid()

    async def connect(self, wait_timeout: float = 5) -> bool:
        """Connect to the relay, identifying through connect auth when a user id is set."""
        auth = {"userId": self.user_id} if self.user_id else None
        try:
            await self.sio.connect(
                self.url,
                auth=auth,
                socketio_path=self.socketio_path,
                wait_timeout=wait_timeout
            )
        except SocketIOConnectionError as e:
            logger.error(f"Failed to connect to relay {self.url}: {e}")
            return False
        return True

    async def disconnect(self):
        if self.sio.connected:
            await self.sio.disconnect()

    # --- Outbound events (acknowledged) ---

    async def identify(self, user_id: str, timeout: float = 5) -> Dict[str, Any]:
        self.user_id = user_id
        return await self.sio.call(InboundEvent.IDENTIFY.value, user_id, timeout=timeout)

    async def join_room(self, room_id: str, timeout: float = 5) -> Dict[str, Any]:
        return await self.sio.call(InboundEvent.JOIN_ROOM.value, room_id, timeout=timeout)

    async def leave_room(self, room_id: str, timeout: float = 5) -> Dict[str, Any]:
        return await self.sio.call(InboundEvent.LEAVE_ROOM.value, room_id, timeout=timeout)

    async def design_update(self, room_id: str, timeout: float = 5, **fields) -> Dict[str, Any]:
        payload = dict(fields, roomId=room_id)
        return await self.sio.call(InboundEvent.DESIGN_UPDATE.value, payload, timeout=timeout)

    async def send_notification(self, message: str, notification_type: Optional[str] = None,
                                timeout: float = 5) -> Dict[str, Any]:
        payload = {"message": message}
        if notification_type is not None:
            payload["type"] = notification_type
        return await self.sio.call(InboundEvent.SEND_NOTIFICATION.value, payload, timeout=timeout)

    async def admin_broadcast(self, message: str, timeout: float = 5) -> Dict[str, Any]:
        return await self.sio.call(InboundEvent.ADMIN_BROADCAST.value, {"message": message}, timeout=timeout)

    # --- Inbound event subscriptions ---

    def on_design_updated(self, handler: Callable[[Dict[str, Any]], Any]):
        self.sio.on(OutboundEvent.DESIGN_UPDATED.value, handler)

    def on_notification(self, handler: Callable[[Dict[str, Any]], Any]):
        self.sio.on(OutboundEvent.NOTIFICATION.value, handler)

    def on_admin_message(self, handler: Callable[[Dict[str, Any]], Any]):
        self.sio.on(OutboundEvent.ADMIN_MESSAGE.value, handler)

    def on_user_notification(self, handler: Callable[[Any], Any], user_id: Optional[str] = None):
        """Subscribe to notifications targeted at `user_id` (defaults to this client's user)."""
        user_id = user_id or self.user_id
        if not user_id:
            raise ValueError("A user id is required to subscribe to user notifications")
        self.sio.on(user_notification_event(user_id), handler)

    def on_server_message(self, handler: Callable[[Dict[str, Any]], Any]):
        self.sio.on(OutboundEvent.MESSAGE.value, handler)
