"""Persistence-related exceptions."""

from tradetalk.domain.entities import TradetalkError


class PersistenceError(TradetalkError):
    """Base exception for persistence-related errors."""


class DatabaseError(PersistenceError):
    """Database operation error."""


class SnapshotDecodeError(PersistenceError):
    """A stored context snapshot could not be decoded."""

    def __init__(self, identity: str, reason: str) -> None:
        super().__init__(f"Invalid context snapshot for {identity}: {reason}")
        self.identity = identity
