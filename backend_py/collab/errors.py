"""Exceptions raised by the realtime core.

Every failure detected while handling a client event is one of these.
The hub catches them at the handler boundary and turns them into an
``error`` event sent only to the originating connection. A rejected
handshake is the only failure that ends a connection.
"""

from __future__ import annotations


class CollabError(Exception):
    """Base exception for all realtime collaboration errors."""

    code = "COLLAB_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_event(self) -> str:
        """Message sent to the client in the ``error`` event."""
        return self.message


class AuthenticationFailure(CollabError):
    """Missing or invalid credential. Terminal for a handshake."""

    code = "AUTHENTICATION_FAILED"


class MissingCredential(AuthenticationFailure):
    def __init__(self, message: str = "Authentication token required") -> None:
        super().__init__(message, code="TOKEN_REQUIRED")


class InvalidCredential(AuthenticationFailure):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message, code="INVALID_TOKEN")


class AuthorizationFailure(CollabError):
    """Valid identity without an access record for the project."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this project") -> None:
        super().__init__(message)


class StateMismatch(CollabError):
    """Event references a room the connection is not in."""

    code = "NOT_IN_ROOM"

    def __init__(self, message: str = "You are not connected to this project") -> None:
        super().__init__(message)


class PersistenceFailure(CollabError):
    """Durable store unavailable or erroring."""

    code = "PERSISTENCE_FAILED"


class MalformedPayload(CollabError):
    """Client event failed boundary validation."""

    code = "MALFORMED_PAYLOAD"

    def __init__(self, event: str, detail: str | None = None) -> None:
        self.event = event
        message = f"Malformed payload for '{event}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
