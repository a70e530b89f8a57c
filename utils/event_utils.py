import enum


class InboundEvent(enum.Enum):
    """
    Events sent by clients to the relay.
    Each one maps to exactly one relay action.
    """
    IDENTIFY = "identify"  # Payload: str user id or {"userId": str}
    JOIN_ROOM = "join-room"  # Payload: str room id
    LEAVE_ROOM = "leave-room"  # Payload: str room id
    DESIGN_UPDATE = "design-update"  # Payload: {"roomId": str, ...}
    SEND_NOTIFICATION = "send-notification"  # Payload: {"message": str, "type": Optional[str]}
    ADMIN_BROADCAST = "admin-broadcast"  # Payload: {"message": str}


class OutboundEvent(enum.Enum):
    """
    Events emitted by the relay to clients.
    """
    DESIGN_UPDATED = "design-updated"  # Payload: {"userId": str, "roomId": str, ...}
    NOTIFICATION = "notification"  # Payload: {"id": int, "message": str, "type": str, "timestamp": str}
    ADMIN_MESSAGE = "admin-message"  # Payload: {"message": str, "from": "admin", "timestamp": str}
    MESSAGE = "message"  # Private server envelope, see message_utils.create_socket_message


USER_NOTIFICATION_PREFIX = "notification:"


def user_notification_event(user_id: str) -> str:
    """Event name used for notifications targeted at a single user."""
    return f"{USER_NOTIFICATION_PREFIX}{user_id}"
