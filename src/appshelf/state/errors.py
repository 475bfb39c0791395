"""State management errors."""


class StateError(Exception):
    """Base exception for metadata persistence."""


class PersistenceWriteError(StateError):
    """Raised when a record set cannot be written to the store."""


class DecodeError(StateError):
    """Raised when a stored record set cannot be decoded."""


class PersistenceReadError(StateError):
    """Raised when the store cannot read a record set that exists."""
