"""Event relay for the Penci real-time layer.

The relay resolves an event's delivery scope against the connection
registry and hands the payload to the transport once per recipient.

Key Features:
- Room-minus-sender, broadcast-all and per-user scopes
- Concurrent fan-out: every send of one emit is issued before any is awaited
- At-most-once delivery; failed sends are skipped, never raised to the sender
- Delivery counts are sends accepted by the transport, not client receipts
- Payload augmentation for design updates, notifications and admin messages
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set, Union

from utils.event_utils import OutboundEvent, user_notification_event
from utils.message_utils import (
    create_admin_message_payload,
    create_design_updated_payload,
    create_notification_payload,
)
from .errors import InvalidEventError
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToRoomExcept:
    room_id: str
    sender_id: Optional[str] = None


@dataclass(frozen=True)
class ToAll:
    pass


@dataclass(frozen=True)
class ToUser:
    user_id: str


Scope = Union[ToRoomExcept, ToAll, ToUser]


def _require_text(event: str, value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidEventError(event, f"'{name}' must be a non-empty string")
    return value


def _require_mapping(event: str, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidEventError(event, "payload must be an object")
    return data


def extract_room_id(event: str, data: Any) -> str:
    """Room events carry the id as a bare string or as {'roomId': ...}."""
    if isinstance(data, dict):
        data = data.get("roomId")
    return _require_text(event, data, "roomId")


def extract_user_id(event: str, data: Any) -> str:
    if isinstance(data, dict):
        data = data.get("userId")
    return _require_text(event, data, "userId")


class EventRelay:
    """Resolves scopes and dispatches events over a transport.

    `transport` is anything exposing `async emit(event, data, to=...)`;
    in production that is the socketio.AsyncServer.
    """

    def __init__(self, transport, registry: ConnectionRegistry):
        self.transport = transport
        self.registry = registry

    # --- Scope resolution and delivery ---

    def resolve(self, scope: Scope) -> Set[str]:
        if isinstance(scope, ToRoomExcept):
            recipients = self.registry.members_of(scope.room_id)
            recipients.discard(scope.sender_id)
            return recipients
        if isinstance(scope, ToAll):
            return self.registry.connection_ids()
        if isinstance(scope, ToUser):
            return self.registry.connections_for_user(scope.user_id)
        raise TypeError(f"Unsupported scope: {scope!r}")

    async def emit(self, scope: Scope, event: str, payload: Any) -> int:
        """Deliver `payload` as `event` to every connection in `scope`.

        Returns the number of sends the transport accepted without raising.
        This is not a receipt: socketio.AsyncServer silently drops a send to
        a sid that closed before its disconnect handler ran, and that send
        is still counted.
        No recipients is not an error.
        """
        recipients = self.resolve(scope)
        if not recipients:
            logger.debug(f"No recipients for '{event}' ({scope}), dropping")
            return 0

        ordered = sorted(recipients)
        results = await asyncio.gather(
            *(self.transport.emit(event, payload, to=sid) for sid in ordered),
            return_exceptions=True,
        )
        delivered = 0
        for sid, result in zip(ordered, results):
            if isinstance(result, Exception):
                logger.debug(f"Skipping delivery of '{event}' to {sid}: {result}")
            else:
                delivered += 1
        logger.debug(f"Relayed '{event}' to {delivered}/{len(ordered)} connections ({scope})")
        return delivered

    # --- Inbound event actions ---

    def identify(self, sender_id: str, data: Any) -> str:
        user_id = extract_user_id("identify", data)
        self.registry.identify(sender_id, user_id)
        logger.info(f"Connection {sender_id} identified as user {user_id}")
        return user_id

    def join_room(self, sender_id: str, data: Any) -> str:
        room_id = extract_room_id("join-room", data)
        self.registry.join(sender_id, room_id)
        logger.info(f"Connection {sender_id} joined room {room_id}")
        return room_id

    def leave_room(self, sender_id: str, data: Any) -> bool:
        room_id = extract_room_id("leave-room", data)
        left = self.registry.leave(sender_id, room_id)
        if left:
            logger.info(f"Connection {sender_id} left room {room_id}")
        else:
            logger.warning(f"Connection {sender_id} tried to leave room '{room_id}' but was not in it")
        return left

    async def design_update(self, sender_id: str, data: Any) -> int:
        data = _require_mapping("design-update", data)
        room_id = extract_room_id("design-update", data)
        payload = create_design_updated_payload(sender_id, data)
        return await self.emit(ToRoomExcept(room_id, sender_id), OutboundEvent.DESIGN_UPDATED.value, payload)

    async def send_notification(self, sender_id: Optional[str], data: Any) -> int:
        data = _require_mapping("send-notification", data)
        payload = create_notification_payload(data.get("message"), data.get("type"))
        return await self.emit(ToAll(), OutboundEvent.NOTIFICATION.value, payload)

    async def admin_broadcast(self, sender_id: Optional[str], data: Any) -> int:
        data = _require_mapping("admin-broadcast", data)
        payload = create_admin_message_payload(data.get("message"))
        return await self.emit(ToAll(), OutboundEvent.ADMIN_MESSAGE.value, payload)

    async def notify_user(self, user_id: str, data: Any) -> int:
        """Push opaque `data` to every connection owned by `user_id`."""
        user_id = _require_text("emit-notification", user_id, "userId")
        delivered = await self.emit(ToUser(user_id), user_notification_event(user_id), data)
        logger.info(f"Emitted notification to user {user_id} ({delivered} connections)")
        return delivered

    async def broadcast_notification(self, data: Any) -> int:
        """Broadcast a notification from a server-side trigger."""
        return await self.send_notification(None, data)
