"""Exceptions raised by the relay core."""


class RelayError(Exception):
    """Base class for relay errors."""


class InvalidEventError(RelayError):
    """Raised when an inbound event payload is malformed."""

    def __init__(self, event: str, reason: str):
        self.event = event
        self.reason = reason
        super().__init__(f"Invalid '{event}' payload: {reason}")


class UnknownConnectionError(RelayError):
    """Raised when an operation needs a connection the registry does not hold."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Unknown connection: {connection_id}")
