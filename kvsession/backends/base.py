"""Interface for session record backends."""

from abc import ABC, abstractmethod

from ..domain import StoredRecord


class SessionBackend(ABC):
    """Stores session records keyed by session ID."""

    @abstractmethod
    def get(self, session_id: str) -> StoredRecord:
        """
        Get the record for ``session_id``.

        Raises
        ------
        :class:`.RecordNotFound`
            Raised if there is no such record. This is not a failure.
        :class:`.StoreReadError`
            Raised if the store could not be reached.
        :class:`.DeserializationError`
            Raised if the stored record does not have the expected shape.

        """

    @abstractmethod
    def put(self, record: StoredRecord) -> None:
        """
        Write ``record``, replacing any existing record with the same ID.

        Raises
        ------
        :class:`.StoreWriteError`

        """

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """
        Delete the record for ``session_id``, if it exists.

        Raises
        ------
        :class:`.StoreDeleteError`

        """
