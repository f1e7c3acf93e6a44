"""
Domain exceptions raised by the statistics and session services.

ValidationError and NotFoundError subclass ValueError so route handlers can
keep the usual `except ValueError` -> 400 mapping for anything not matched
more specifically.
"""

from typing import Optional


class ValidationError(ValueError):
    """Malformed input. Never retried."""


class SessionNotEndedError(ValidationError):
    """A snapshot was requested for a session that is still active."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} has not ended")


class NotFoundError(ValueError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, identifier: Optional[str] = None, message: Optional[str] = None):
        self.entity = entity
        self.identifier = identifier
        if message is None:
            message = f"{entity} not found" if identifier is None else f"{entity} {identifier} not found"
        super().__init__(message)


class StoreError(RuntimeError):
    """The record store failed. Wraps the underlying database error."""
