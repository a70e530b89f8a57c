"""Connection registry and room router for the Penci relay.

This module keeps the in-memory bookkeeping the relay needs to resolve
recipients: which connections are open, which rooms each one joined, and
which external user owns a connection.

Key Features:
- Lazily created rooms, removed once their last member leaves
- Automatic purge of room and user entries on disconnect
- Explicit user id -> connection index for targeted notifications

All state is touched from the event loop only, so nothing here locks.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from .errors import UnknownConnectionError

logger = logging.getLogger(__name__)


class RoomRouter:
    """Maps room ids to the set of member connection ids."""

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = {}

    def join(self, connection_id: str, room_id: str) -> None:
        members = self._rooms.setdefault(room_id, set())
        members.add(connection_id)

    def leave(self, connection_id: str, room_id: str) -> bool:
        """Remove one membership. Returns False if the connection was not in the room."""
        members = self._rooms.get(room_id)
        if not members or connection_id not in members:
            return False
        members.discard(connection_id)
        if not members:
            del self._rooms[room_id]
        return True

    def leave_all(self, connection_id: str) -> Set[str]:
        """Remove the connection from every room and return the rooms it left."""
        left = set()
        for room_id in list(self._rooms):
            if self.leave(connection_id, room_id):
                left.add(room_id)
        return left

    def members_of(self, room_id: str) -> Set[str]:
        return set(self._rooms.get(room_id, ()))

    def rooms_of(self, connection_id: str) -> Set[str]:
        return {room_id for room_id, members in self._rooms.items() if connection_id in members}

    def room_ids(self) -> Set[str]:
        return set(self._rooms)

    def room_count(self) -> int:
        return len(self._rooms)


@dataclass
class Connection:
    """A single open client connection."""
    connection_id: str
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


class ConnectionRegistry:
    """Tracks open connections, their rooms and their owning users.

    Room membership is delegated to a RoomRouter; the registry mirrors each
    connection's rooms on its Connection record so `rooms_of` does not scan
    every room.
    """

    def __init__(self, router: Optional[RoomRouter] = None):
        self.router = router if router is not None else RoomRouter()
        self._connections: Dict[str, Connection] = {}
        self._users: Dict[str, Set[str]] = {}

    # --- Lifecycle ---

    def on_connect(self, connection_id: Optional[str] = None, user_id: Optional[str] = None) -> str:
        """Register a new connection and return its id.

        The Socket.IO layer passes its own sid; other callers get a
        generated id.
        """
        if connection_id is None:
            connection_id = uuid.uuid4().hex
        if connection_id in self._connections:
            logger.warning(f"Connection {connection_id} registered twice, resetting its state")
            self.on_disconnect(connection_id)
        self._connections[connection_id] = Connection(connection_id=connection_id)
        if user_id:
            self.identify(connection_id, user_id)
        logger.debug(f"Registered connection {connection_id} (total: {len(self._connections)})")
        return connection_id

    def on_disconnect(self, connection_id: str) -> None:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return
        self.router.leave_all(connection_id)
        if connection.user_id is not None:
            self._drop_user_entry(connection.user_id, connection_id)
        logger.debug(f"Removed connection {connection_id} (total: {len(self._connections)})")

    # --- Rooms ---

    def join(self, connection_id: str, room_id: str) -> None:
        connection = self._require(connection_id)
        self.router.join(connection_id, room_id)
        connection.rooms.add(room_id)

    def leave(self, connection_id: str, room_id: str) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        connection.rooms.discard(room_id)
        return self.router.leave(connection_id, room_id)

    def rooms_of(self, connection_id: str) -> Set[str]:
        connection = self._connections.get(connection_id)
        if connection is None:
            return set()
        return set(connection.rooms)

    def members_of(self, room_id: str) -> Set[str]:
        return self.router.members_of(room_id)

    # --- Users ---

    def identify(self, connection_id: str, user_id: str) -> None:
        """Associate a connection with an external user id.

        A connection belongs to at most one user; identifying again moves it.
        """
        connection = self._require(connection_id)
        if connection.user_id == user_id:
            return
        if connection.user_id is not None:
            self._drop_user_entry(connection.user_id, connection_id)
        connection.user_id = user_id
        self._users.setdefault(user_id, set()).add(connection_id)

    def connections_for_user(self, user_id: str) -> Set[str]:
        return set(self._users.get(user_id, ()))

    def user_of(self, connection_id: str) -> Optional[str]:
        connection = self._connections.get(connection_id)
        return connection.user_id if connection else None

    # --- Introspection ---

    def connection_ids(self) -> Set[str]:
        return set(self._connections)

    def count(self) -> int:
        return len(self._connections)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def info(self, connection_id: str) -> Connection:
        return self._require(connection_id)

    def _require(self, connection_id: str) -> Connection:
        try:
            return self._connections[connection_id]
        except KeyError:
            raise UnknownConnectionError(connection_id) from None

    def _drop_user_entry(self, user_id: str, connection_id: str) -> None:
        owned = self._users.get(user_id)
        if owned is None:
            return
        owned.discard(connection_id)
        if not owned:
            del self._users[user_id]
