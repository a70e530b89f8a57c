"""Core relay components for Penci: connection registry, room router and event relay."""
from .errors import RelayError, InvalidEventError, UnknownConnectionError
from .registry import Connection, ConnectionRegistry, RoomRouter
from .relay import EventRelay, Scope, ToAll, ToRoomExcept, ToUser

__all__ = [
    'RelayError',
    'InvalidEventError',
    'UnknownConnectionError',
    'Connection',
    'ConnectionRegistry',
    'RoomRouter',
    'EventRelay',
    'Scope',
    'ToAll',
    'ToRoomExcept',
    'ToUser'
]
