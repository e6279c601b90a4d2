"""Exceptions."""


class SessionStoreError(RuntimeError):
    """Base class for session store errors."""


class ConfigurationError(SessionStoreError):
    """Raised when a required parameter is missing or invalid."""


class IdentifierGenerationError(SessionStoreError):
    """Failed to obtain secure random bytes for a session ID."""


class EncodingError(SessionStoreError):
    """Failed to encode a session ID as a cookie value."""


class DecodingError(SessionStoreError):
    """A cookie value could not be verified; treat as absent."""


class SerializationError(SessionStoreError):
    """Session values contain something that cannot be encoded."""


class DeserializationError(SessionStoreError):
    """Stored session values are corrupt or use an unknown type."""


class RecordNotFound(SessionStoreError):
    """No record exists for the requested session ID."""


class StoreReadError(SessionStoreError):
    """Failed to read a record from the backing store."""


class StoreWriteError(SessionStoreError):
    """Failed to write a record to the backing store."""


class StoreDeleteError(SessionStoreError):
    """Failed to delete a record from the backing store."""


class IllegalSessionError(SessionStoreError):
    """Attempted to save a session that has no ID."""
