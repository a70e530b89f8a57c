"""HTTP helpers for pushing notifications into the relay.

Server-side code (for example the admin "send notification" action) calls
these instead of holding a Socket.IO connection. A relay that is down must
not break the caller's own action, so failures are logged and reported as
False rather than raised.
"""
import logging
from typing import Any, Dict, Optional

import requests

from .config_loader import get_config

logger = logging.getLogger(__name__)


def get_relay_url(base_url: Optional[str] = None) -> str:
    """Resolve the relay base URL, falling back to configuration."""
    if base_url is None:
        base_url = get_config().get('client', 'base_url', default='http://localhost:8080')
    return base_url.rstrip('/')


def _default_timeout() -> float:
    return get_config().get('client', 'timeout', default=5)


def _post(path: str, payload: Dict[str, Any], base_url: Optional[str], timeout: Optional[float]) -> bool:
    url = f"{get_relay_url(base_url)}{path}"
    try:
        response = requests.post(url, json=payload, timeout=timeout or _default_timeout())
    except requests.RequestException as e:
        logger.warning(f"Relay not available at {url}: {e}")
        return False

    if response.status_code != 200:
        logger.warning(f"Relay rejected {path} ({response.status_code}): {response.text}")
        return False
    return True


def emit_notification(user_id: str, data: Any, base_url: Optional[str] = None, timeout: Optional[float] = None) -> bool:
    """Push `data` to every connection identified as `user_id`."""
    sent = _post("/emit-notification", {"userId": user_id, "data": data}, base_url, timeout)
    if sent:
        logger.info(f"Notification sent to user {user_id} via relay")
    return sent


def broadcast_notification(message: str, notification_type: str = "info", base_url: Optional[str] = None,
                           timeout: Optional[float] = None) -> bool:
    """Push a notification to every connected client."""
    return _post("/broadcast-notification", {"message": message, "type": notification_type}, base_url, timeout)


def check_health(base_url: Optional[str] = None, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """Return the relay health payload, or None if the relay cannot be reached."""
    url = f"{get_relay_url(base_url)}/health"
    try:
        response = requests.get(url, timeout=timeout or _default_timeout())
        response.raise_for_status()
        return response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Relay health check failed for {url}: {e}")
        return None
