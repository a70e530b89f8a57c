"""Utilities for creating standardized relay payloads and messages."""

import enum
import time
from typing import Dict, Any, Union, Optional
from datetime import datetime, timezone

DEFAULT_NOTIFICATION_TYPE = "info"
ADMIN_SENDER = "admin"


class MessageType(enum.Enum):
    """
    Types of private messages the relay sends back to a single client.
    """
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def iso_timestamp(moment: Optional[datetime] = None) -> str:
    """Return an ISO 8601 UTC timestamp with millisecond precision and a 'Z' suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def create_socket_message(
    message_type: MessageType,
    value: Union[str, Dict[str, Any]],
    sender: str = "relay",
    timestamp: bool = True,
    target_sid: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a standardized dictionary object for private Socket.IO messages.

    Args:
        message_type: The type of the message (from MessageType enum).
        value: The payload of the message (string or dictionary).
        sender: The source of the message.
        timestamp: Whether to include an ISO 8601 timestamp.
        target_sid: Optional SID this message is intended for.

    Returns:
        A dictionary representing the structured message.
    """
    message = {
        "messageType": message_type.value,
        "value": value,
        "from": sender,
    }
    if timestamp:
        message["timestamp"] = iso_timestamp()
    if target_sid:
        message["target_sid"] = target_sid

    return message


def create_error_message(reason: str, target_sid: Optional[str] = None) -> Dict[str, Any]:
    return create_socket_message(MessageType.ERROR, reason, target_sid=target_sid)


def create_notification_payload(message: Any, notification_type: Optional[str] = None) -> Dict[str, Any]:
    """Payload broadcast for a notification. Empty or missing types become 'info'."""
    return {
        "id": int(time.time() * 1000),
        "message": message,
        "type": notification_type or DEFAULT_NOTIFICATION_TYPE,
        "timestamp": iso_timestamp(),
    }


def create_admin_message_payload(message: Any) -> Dict[str, Any]:
    return {
        "message": message,
        "from": ADMIN_SENDER,
        "timestamp": iso_timestamp(),
    }


def create_design_updated_payload(sender_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of the design update tagged with the sender's connection id.

    The sender id always wins over a client-supplied 'userId'.
    """
    payload = dict(data)
    payload["userId"] = sender_id
    return payload
